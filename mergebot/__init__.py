"""Merge bot core: webhooks, repository configuration, permissions and GitHub API access."""

__version__ = "0.1.0"