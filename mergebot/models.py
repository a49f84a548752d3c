"""Records stored by the bot: builds, pull requests, workflows and repositories."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from mergebot.github import GithubRepoName, PullRequestNumber


@dataclass(frozen=True)
class ApprovalInfo:
    approver: str
    """The user who approved the pull request."""
    sha: str
    """The SHA of the commit that was approved."""


@dataclass(frozen=True)
class ApprovalStatus:
    """Approval state of a pull request; ``info`` is ``None`` when not approved."""

    info: ApprovalInfo | None = None

    @classmethod
    def not_approved(cls) -> ApprovalStatus:
        return cls(None)

    @classmethod
    def approved(cls, approver: str, sha: str) -> ApprovalStatus:
        return cls(ApprovalInfo(approver=approver, sha=sha))

    @classmethod
    def from_columns(cls, approver: str | None, sha: str | None) -> ApprovalStatus:
        """Build the status from the stored approver and SHA columns."""
        if approver is not None and sha is not None:
            return cls.approved(approver, sha)
        if approver is None and sha is None:
            return cls.not_approved()
        raise ValueError(
            f"Inconsistent approval state: approver={approver!r}, sha={sha!r}"
        )

    def approver(self) -> str | None:
        return None if self.info is None else self.info.approver

    def sha(self) -> str | None:
        return None if self.info is None else self.info.sha


class BuildStatus(enum.Enum):
    """Status of a build."""

    PENDING = "pending"
    """The build is still waiting for results."""
    SUCCESS = "success"
    """The build has succeeded."""
    FAILURE = "failure"
    """The build has failed."""
    CANCELLED = "cancelled"
    """The build has been manually cancelled by a user."""
    TIMEOUTED = "timeouted"
    """The build ran for too long and was stopped by the bot."""

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BuildModel:
    """A single (merged) commit being built."""

    id: int
    repository: GithubRepoName
    branch: str
    commit_sha: str
    status: BuildStatus
    parent: str
    created_at: datetime


@dataclass(frozen=True)
class PullRequestModel:
    id: int
    repository: GithubRepoName
    number: PullRequestNumber
    base_branch: str
    approval_status: ApprovalStatus
    delegated: bool
    priority: int | None
    rollup: str | None
    try_build: BuildModel | None
    created_at: datetime

    def is_approved(self) -> bool:
        return self.approval_status.info is not None


class WorkflowType(enum.Enum):
    """Whether a workflow runs on GitHub Actions or on an external CI."""

    GITHUB = "github"
    EXTERNAL = "external"

    def __str__(self) -> str:
        return self.value


class WorkflowStatus(enum.Enum):
    PENDING = "pending"
    """Workflow is running."""
    SUCCESS = "success"
    """Workflow has succeeded."""
    FAILURE = "failure"
    """Workflow has failed."""

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class WorkflowModel:
    """A workflow run, from GitHub Actions or from an external CI."""

    id: int
    build: BuildModel
    name: str
    url: str
    run_id: int
    workflow_type: WorkflowType
    status: WorkflowStatus
    created_at: datetime


@dataclass(frozen=True)
class TreeState:
    """State of a repository tree: open, or closed below a priority threshold."""

    priority: int | None = None
    """Pull requests with a lower priority cannot be merged while closed."""
    source: str | None = None
    """URL of the comment that closed the tree."""

    def __post_init__(self) -> None:
        if (self.priority is None) != (self.source is None):
            raise ValueError("A closed tree needs both a priority and a source")
        if self.priority is not None and self.priority < 0:
            raise ValueError("Tree priority must not be negative")

    @classmethod
    def open(cls) -> TreeState:
        return cls()

    @classmethod
    def closed(cls, priority: int, source: str) -> TreeState:
        return cls(priority=priority, source=source)

    @classmethod
    def from_columns(cls, priority: int | None, source: str | None) -> TreeState:
        """Build the state from the stored priority and source columns."""
        if priority is not None and source is not None:
            return cls.closed(priority, source)
        if priority is None and source is None:
            return cls.open()
        raise ValueError(
            "Cannot deserialize TreeState, priority is non-NULL, but source is NULL"
        )

    def to_columns(self) -> tuple[int | None, str | None]:
        return self.priority, self.source

    def is_open(self) -> bool:
        return self.priority is None


@dataclass(frozen=True)
class RepoModel:
    id: int
    name: GithubRepoName
    tree_state: TreeState
    created_at: datetime