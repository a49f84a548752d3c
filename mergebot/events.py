"""Events produced from incoming webhooks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from mergebot.github import (
    CommitSha,
    GithubRepoName,
    GithubUser,
    PullRequest,
    PullRequestNumber,
)
from mergebot.models import WorkflowStatus, WorkflowType


@dataclass(frozen=True)
class InstallationsChanged:
    """The set of app installations (repositories) has changed."""


@dataclass(frozen=True)
class PullRequestComment:
    repository: GithubRepoName
    author: GithubUser
    pr_number: PullRequestNumber
    text: str
    html_url: str


@dataclass(frozen=True)
class PullRequestEdited:
    repository: GithubRepoName
    pull_request: PullRequest
    from_base_sha: CommitSha | None
    """The previous base SHA, if the base changed."""


@dataclass(frozen=True)
class PullRequestPushed:
    repository: GithubRepoName
    pull_request: PullRequest


@dataclass(frozen=True)
class PullRequestOpened:
    repository: GithubRepoName
    pull_request: PullRequest


@dataclass(frozen=True)
class WorkflowStarted:
    repository: GithubRepoName
    name: str
    branch: str
    commit_sha: CommitSha
    run_id: int
    workflow_type: WorkflowType
    url: str


@dataclass(frozen=True)
class WorkflowCompleted:
    repository: GithubRepoName
    branch: str
    commit_sha: CommitSha
    run_id: int
    status: WorkflowStatus
    running_time: timedelta | None


@dataclass(frozen=True)
class CheckSuiteCompleted:
    repository: GithubRepoName
    branch: str
    commit_sha: CommitSha


GlobalEvent = InstallationsChanged

RepositoryEvent = (
    PullRequestComment
    | PullRequestEdited
    | PullRequestPushed
    | PullRequestOpened
    | WorkflowStarted
    | WorkflowCompleted
    | CheckSuiteCompleted
)

Event = GlobalEvent | RepositoryEvent