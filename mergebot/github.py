"""Common types for working with GitHub repositories and pull requests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class GithubRepoName:
    """Unique identifier of a GitHub repository; owner and name are lower-cased."""

    owner: str
    name: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner", self.owner.lower())
        object.__setattr__(self, "name", self.name.lower())

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_str(cls, value: str) -> GithubRepoName:
        """Parse a name in the form ``<owner>/<name>``."""
        parts = value.split("/")
        if len(parts) < 2:
            raise ValueError(
                "GitHub repository name must be in the format `<owner>/<name>`"
            )
        return cls(parts[0], parts[1])


@dataclass(frozen=True)
class GithubUser:
    id: int
    username: str
    html_url: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> GithubUser:
        """Build a user from a GitHub API user object."""
        return cls(id=data["id"], username=data["login"], html_url=data["html_url"])


@dataclass(frozen=True)
class CommitSha:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Branch:
    name: str
    sha: CommitSha


@dataclass(frozen=True)
class PullRequestNumber:
    value: int

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


@dataclass(frozen=True)
class PullRequest:
    number: PullRequestNumber
    # <author>:<branch>
    head_label: str
    head: Branch
    base: Branch
    title: str
    message: str
    author: GithubUser

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> PullRequest:
        """Build a pull request from a GitHub API pull request object."""
        head = data["head"]
        base = data["base"]
        user = data.get("user")
        if user is None:
            raise ValueError("Pull request payload has no author")
        return cls(
            number=PullRequestNumber(data["number"]),
            head_label=_or_default(head.get("label"), "<unknown>"),
            head=Branch(name=head["ref"], sha=CommitSha(head["sha"])),
            base=Branch(name=base["ref"], sha=CommitSha(base["sha"])),
            title=_or_default(data.get("title"), ""),
            message=_or_default(data.get("body"), ""),
            author=GithubUser.from_payload(user),
        )