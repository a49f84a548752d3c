"""Turning GitHub webhook payloads into bot events."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from mergebot.events import (
    CheckSuiteCompleted,
    Event,
    InstallationsChanged,
    PullRequestComment,
    PullRequestEdited,
    PullRequestOpened,
    PullRequestPushed,
    WorkflowCompleted,
    WorkflowStarted,
)
from mergebot.github import (
    CommitSha,
    GithubRepoName,
    GithubUser,
    PullRequest,
    PullRequestNumber,
)
from mergebot.models import WorkflowStatus, WorkflowType

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]


class WebhookError(ValueError):
    """A webhook payload could not be parsed."""


def _text(value: Any) -> str:
    return "" if value is None else value


def _timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def parse_repository_name(repository: Payload) -> GithubRepoName:
    """Return the name of the repository described by a webhook ``repository`` object."""
    repo_name = repository["name"]
    owner = repository.get("owner")
    if owner is None:
        raise WebhookError(f"Owner for repo {repo_name} is missing")
    return GithubRepoName(owner["login"], repo_name)


def _parse_issue_comment(payload: Payload) -> Event | None:
    repository = parse_repository_name(payload["repository"])
    if payload["action"] != "created":
        return None
    issue = payload["issue"]
    if issue.get("pull_request") is None:
        logger.debug("Ignoring comment event because it does not belong to a pull request")
        return None
    comment = payload["comment"]
    return PullRequestComment(
        repository=repository,
        author=GithubUser.from_payload(comment["user"]),
        pr_number=PullRequestNumber(issue["number"]),
        text=_text(comment.get("body")),
        html_url=comment["html_url"],
    )


def _parse_pull_request(payload: Payload) -> Event | None:
    repository = parse_repository_name(payload["repository"])
    action = payload["action"]
    if action == "edited":
        changes = payload.get("changes")
        if changes is None:
            raise WebhookError("Edited pull request event should have `changes` field")
        base = changes.get("base") or {}
        sha = base.get("sha")
        return PullRequestEdited(
            repository=repository,
            pull_request=PullRequest.from_payload(payload["pull_request"]),
            from_base_sha=None if sha is None else CommitSha(sha["from"]),
        )
    if action == "synchronize":
        return PullRequestPushed(
            repository=repository,
            pull_request=PullRequest.from_payload(payload["pull_request"]),
        )
    if action == "opened":
        return PullRequestOpened(
            repository=repository,
            pull_request=PullRequest.from_payload(payload["pull_request"]),
        )
    return None


def _parse_pull_request_review(payload: Payload) -> Event | None:
    if payload["action"] != "submitted":
        return None
    review = payload["review"]
    return PullRequestComment(
        repository=parse_repository_name(payload["repository"]),
        author=GithubUser.from_payload(payload["sender"]),
        pr_number=PullRequestNumber(payload["pull_request"]["number"]),
        text=_text(review.get("body")),
        html_url=review["html_url"],
    )


def _parse_pull_request_review_comment(payload: Payload) -> Event | None:
    repository = parse_repository_name(payload["repository"])
    if payload["action"] != "created":
        return None
    comment = payload["comment"]
    return PullRequestComment(
        repository=repository,
        author=GithubUser.from_payload(comment["user"]),
        pr_number=PullRequestNumber(payload["pull_request"]["number"]),
        text=_text(comment.get("body")),
        html_url=comment["html_url"],
    )


def _parse_workflow_run(payload: Payload) -> Event | None:
    repository = parse_repository_name(payload["repository"])
    run = payload["workflow_run"]
    action = payload["action"]
    if action == "requested":
        return WorkflowStarted(
            repository=repository,
            name=run["name"],
            branch=run["head_branch"],
            commit_sha=CommitSha(run["head_sha"]),
            run_id=run["id"],
            workflow_type=WorkflowType.GITHUB,
            url=run["html_url"],
        )
    if action == "completed":
        running_time = _timestamp(run["updated_at"]) - _timestamp(run["created_at"])
        status = (
            WorkflowStatus.SUCCESS
            if _text(run.get("conclusion")) == "success"
            else WorkflowStatus.FAILURE
        )
        return WorkflowCompleted(
            repository=repository,
            branch=run["head_branch"],
            commit_sha=CommitSha(run["head_sha"]),
            run_id=run["id"],
            status=status,
            running_time=running_time,
        )
    return None


def _parse_check_run(payload: Payload) -> Event | None:
    check_run = payload["check_run"]
    # Only check runs from external CI services are of interest; GitHub's own
    # correspond to workflow runs, which arrive separately.
    if check_run["app"]["owner"]["login"] == "github":
        return None
    repository = parse_repository_name(payload["repository"])
    if payload["action"] != "created":
        return None
    suite = check_run["check_suite"]
    run_id = check_run.get("id")
    return WorkflowStarted(
        repository=repository,
        name=check_run["name"],
        branch=suite["head_branch"],
        commit_sha=CommitSha(suite["head_sha"]),
        run_id=0 if run_id is None else run_id,
        workflow_type=WorkflowType.EXTERNAL,
        url=_text(check_run.get("html_url")),
    )


def _parse_check_suite(payload: Payload) -> Event | None:
    repository = parse_repository_name(payload["repository"])
    if payload["action"] != "completed":
        return None
    suite = payload["check_suite"]
    return CheckSuiteCompleted(
        repository=repository,
        branch=suite["head_branch"],
        commit_sha=CommitSha(suite["head_sha"]),
    )


def _installations_changed(payload: Payload) -> Event:
    return InstallationsChanged()


_PARSERS: dict[str, Callable[[Payload], Event | None]] = {
    "issue_comment": _parse_issue_comment,
    "pull_request": _parse_pull_request,
    "pull_request_review": _parse_pull_request_review,
    "pull_request_review_comment": _parse_pull_request_review_comment,
    "installation_repositories": _installations_changed,
    "installation": _installations_changed,
    "workflow_run": _parse_workflow_run,
    "check_run": _parse_check_run,
    "check_suite": _parse_check_suite,
}


def parse_webhook_event(event_type: str, body: bytes | str) -> Event | None:
    """Parse a webhook of the given ``x-github-event`` type.

    Returns ``None`` for events the bot ignores and raises ``WebhookError``
    when the payload is malformed.
    """
    parser = _PARSERS.get(event_type)
    if parser is None:
        logger.debug("Ignoring unknown event type %r", event_type)
        return None
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as error:
        raise WebhookError(f"Invalid JSON payload: {error}") from error
    if not isinstance(payload, Mapping):
        raise WebhookError("Webhook payload must be a JSON object")
    try:
        return parser(payload)
    except WebhookError:
        raise
    except (KeyError, TypeError, AttributeError, ValueError) as error:
        raise WebhookError(f"Malformed `{event_type}` payload: {error!r}") from error