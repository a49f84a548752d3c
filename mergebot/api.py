"""Access to a single repository through the GitHub REST API."""

from __future__ import annotations

import asyncio
import base64
import binascii
import enum
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from urllib.parse import quote

import httpx

from mergebot.config import CONFIG_FILE_PATH, ConfigError, RepositoryConfig, load_config
from mergebot.events import PullRequestComment
from mergebot.github import CommitSha, GithubRepoName, PullRequest, PullRequestNumber

logger = logging.getLogger(__name__)

GITHUB_HTML_URL = "https://github.com"

_CONTENT_WHITESPACE = str.maketrans("", "", " \n\t\r\x0b\x0c")

_FAILED_CONCLUSIONS = frozenset(
    {
        "failure",
        "neutral",
        "cancelled",
        "skipped",
        "timed_out",
        "action_required",
        "startup_failure",
        "stale",
    }
)


class MergeError(Exception):
    """Merging two branches failed."""


class MergeNotFound(MergeError):
    def __init__(self) -> None:
        super().__init__("Branch not found")


class MergeConflict(MergeError):
    def __init__(self) -> None:
        super().__init__("Merge conflict")


class AlreadyMerged(MergeError):
    def __init__(self) -> None:
        super().__init__("Branch was already merged")


class MergeUnknownError(MergeError):
    def __init__(self, status: int, text: str) -> None:
        super().__init__(f"Unknown error ({status}): {text}")
        self.status = status
        self.text = text


class MergeNetworkError(MergeError):
    def __init__(self, error: Exception) -> None:
        super().__init__(f"Network error: {error}")
        self.error = error


class BranchUpdateError(Exception):
    """A branch could not be set to a commit."""


class BranchNotFound(BranchUpdateError):
    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch {branch} was not found")
        self.branch = branch


class CheckSuiteStatus(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class CheckSuite:
    status: CheckSuiteStatus


def _check_suite_status(conclusion: str | None, context: str) -> CheckSuiteStatus:
    if conclusion is None:
        return CheckSuiteStatus.PENDING
    if conclusion == "success":
        return CheckSuiteStatus.SUCCESS
    if conclusion in _FAILED_CONCLUSIONS:
        return CheckSuiteStatus.FAILURE
    logger.warning("Received unknown check suite status for %s: %s", context, conclusion)
    return CheckSuiteStatus.PENDING


def _decode_content(item: Mapping[str, Any]) -> str | None:
    content = item.get("content")
    if not isinstance(content, str):
        return None
    try:
        return base64.b64decode(
            content.translate(_CONTENT_WHITESPACE), validate=True
        ).decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return ""
    if isinstance(data, Mapping):
        message = data.get("message")
        if isinstance(message, str):
            return message
    return ""


class GithubRepositoryClient:
    """Provides access to one repository of an app installation.

    ``client`` is an authenticated client whose base URL is the GitHub API.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        repo_name: GithubRepoName,
        app_html_url: str,
        repository_html_url: str | None = None,
        html_base_url: str = GITHUB_HTML_URL,
    ) -> None:
        self.client = client
        self.repo_name = repo_name
        self.app_html_url = app_html_url
        self.repository_html_url = repository_html_url
        self.html_base_url = html_base_url

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.repo_name.owner}/{self.repo_name.name}"

    async def is_comment_internal(self, comment: PullRequestComment) -> bool:
        """Was the comment created by the bot itself?"""
        return comment.author.html_url == self.app_html_url

    async def load_config(self) -> RepositoryConfig:
        """Load the repository configuration from the default branch."""
        response = await self.client.get(f"{self._repo_path}/contents/{CONFIG_FILE_PATH}")
        response.raise_for_status()
        data = response.json()
        items = data if isinstance(data, list) else [data]
        content = _decode_content(items[0]) if items and isinstance(items[0], Mapping) else None
        if content is None:
            raise ConfigError("Configuration file not found")
        try:
            return load_config(content)
        except ConfigError as error:
            raise ConfigError(f"Could not deserialize repository config: {error}") from error

    async def get_branch_sha(self, name: str) -> CommitSha:
        """Return the current SHA of the given branch."""
        response = await self.client.get(f"/repos/{self.repo_name}/branches/{name}")
        response.raise_for_status()
        return CommitSha(response.json()["commit"]["sha"])

    async def get_pull_request(self, pr: PullRequestNumber) -> PullRequest:
        response = await self.client.get(f"{self._repo_path}/pulls/{pr.value}")
        response.raise_for_status()
        return PullRequest.from_payload(response.json())

    async def post_comment(self, pr: PullRequestNumber, text: str) -> None:
        """Post a comment to the pull request as the bot user."""
        response = await self.client.post(
            f"{self._repo_path}/issues/{pr.value}/comments", json={"body": text}
        )
        response.raise_for_status()

    async def set_branch_to_sha(self, branch: str, sha: CommitSha) -> None:
        await set_branch_to_commit(self, branch, sha)

    async def merge_branches(
        self, base: str, head: CommitSha, commit_message: str
    ) -> CommitSha:
        """Merge ``head`` into ``base`` and return the SHA of the merge commit."""
        return await merge_branches(self, base, head, commit_message)

    async def get_check_suites_for_commit(
        self, branch: str, sha: CommitSha
    ) -> list[CheckSuite]:
        """Return the check suites of the given commit that ran on ``branch``."""
        response = await self.client.get(f"{self._repo_path}/commits/{sha}/check-suites")
        response.raise_for_status()
        context = f"{self.repo_name}/{sha}"
        return [
            CheckSuite(_check_suite_status(suite.get("conclusion"), context))
            for suite in response.json()["check_suites"]
            if suite["head_branch"] == branch
        ]

    async def cancel_workflows(self, run_ids: Iterable[int]) -> None:
        """Cancel GitHub Actions workflow runs, all at once."""

        async def cancel(run_id: int) -> None:
            response = await self.client.post(f"{self._repo_path}/actions/runs/{run_id}/cancel")
            response.raise_for_status()

        await asyncio.gather(*(cancel(run_id) for run_id in run_ids))

    async def add_labels(self, pr: PullRequestNumber, labels: Sequence[str]) -> None:
        if not labels:
            return
        response = await self.client.post(
            f"{self._repo_path}/issues/{pr.value}/labels", json={"labels": list(labels)}
        )
        response.raise_for_status()

    async def remove_labels(self, pr: PullRequestNumber, labels: Sequence[str]) -> None:
        """Remove labels from a pull request; labels it does not carry are skipped."""

        async def remove(label: str) -> None:
            response = await self.client.delete(
                f"{self._repo_path}/issues/{pr.value}/labels/{quote(label, safe='')}"
            )
            if response.is_error and "Label does not exist" in _error_message(response):
                logger.debug("Trying to remove label which does not exist on PR %s", pr)
                return
            response.raise_for_status()

        # The API removes labels one at a time, so send the requests together.
        await asyncio.gather(*(remove(label) for label in labels))

    def get_workflow_url(self, run_id: int) -> str:
        html_url = self.repository_html_url or f"{self.html_base_url}/{self.repo_name}"
        return f"{html_url}/actions/runs/{run_id}"

    def get_workflow_urls(self, run_ids: Iterable[int]) -> Iterator[str]:
        return (self.get_workflow_url(run_id) for run_id in run_ids)


async def merge_branches(
    repo: GithubRepositoryClient,
    base_ref: str,
    head_sha: CommitSha,
    commit_message: str,
) -> CommitSha:
    """Create a merge commit of ``head_sha`` into ``base_ref``."""
    request = {"base": base_ref, "head": head_sha.value, "commit_message": commit_message}
    try:
        response = await repo.client.post(f"/repos/{repo.repo_name}/merges", json=request)
    except httpx.HTTPError as error:
        logger.debug(
            "Merging `%s` into `%s` in `%s` failed: %r", head_sha, base_ref, repo.repo_name, error
        )
        raise MergeNetworkError(error) from error

    status = response.status_code
    text = response.text
    logger.debug(
        "Response from merging `%s` into `%s` in `%s`: %s (%s)",
        head_sha,
        base_ref,
        repo.repo_name,
        status,
        text,
    )
    if status == HTTPStatus.CREATED:
        try:
            return CommitSha(response.json()["sha"])
        except (ValueError, KeyError, TypeError) as error:
            raise MergeUnknownError(status, repr(error)) from error
    if status == HTTPStatus.NOT_FOUND:
        raise MergeNotFound()
    if status == HTTPStatus.CONFLICT:
        raise MergeConflict()
    if status == HTTPStatus.NO_CONTENT:
        raise AlreadyMerged()
    raise MergeUnknownError(status, text)


async def _update_branch(repo: GithubRepositoryClient, branch_name: str, sha: CommitSha) -> None:
    url = f"/repos/{repo.repo_name}/git/refs/heads/{branch_name}"
    logger.debug("Updating branch %s to SHA %s", url, sha)
    try:
        response = await repo.client.patch(url, json={"sha": sha.value, "force": True})
    except httpx.HTTPError as error:
        raise BranchUpdateError("IO error") from error
    logger.debug("Updating branch response: status=%s, text=%r", response.status_code, response.text)
    if response.status_code != HTTPStatus.OK:
        raise BranchNotFound(branch_name)


async def _create_branch(repo: GithubRepositoryClient, name: str, sha: CommitSha) -> None:
    response = await repo.client.post(
        f"/repos/{repo.repo_name.owner}/{repo.repo_name.name}/git/refs",
        json={"ref": f"refs/heads/{name}", "sha": sha.value},
    )
    response.raise_for_status()


async def set_branch_to_commit(
    repo: GithubRepositoryClient, branch_name: str, sha: CommitSha
) -> None:
    """Force the branch to ``sha``, creating the branch if it does not exist."""
    try:
        await _update_branch(repo, branch_name, sha)
    except BranchNotFound:
        try:
            await _create_branch(repo, branch_name, sha)
        except httpx.HTTPError as error:
            raise BranchUpdateError(
                f"Unknown error: Cannot create branch: {error}"
            ) from error