"""User permissions loaded from the team API."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

import httpx

from mergebot.github import GithubRepoName

logger = logging.getLogger(__name__)


class PermissionType(enum.Enum):
    REVIEW = "review"
    """Can perform commands like r+."""
    TRY = "try"
    """Can start a try build."""

    def __str__(self) -> str:
        return self.value


class PermissionsError(Exception):
    """Permissions could not be loaded."""


@dataclass(frozen=True)
class UserPermissions:
    review_users: frozenset[int] = field(default_factory=frozenset)
    try_users: frozenset[int] = field(default_factory=frozenset)

    def has_permission(self, user_id: int, permission: PermissionType) -> bool:
        if permission is PermissionType.REVIEW:
            return user_id in self.review_users
        return user_id in self.try_users


class TeamApiClient:
    """Loads the users allowed to review or try from the team API."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url
        self._client = client

    async def load_permissions(self, repo: GithubRepoName) -> UserPermissions:
        logger.info("Reloading permissions for repository %s", repo)
        try:
            review_users = await self.load_users(repo.name, PermissionType.REVIEW)
        except PermissionsError as error:
            raise PermissionsError(f"Cannot load review users: {error}") from error
        try:
            try_users = await self.load_users(repo.name, PermissionType.TRY)
        except PermissionsError as error:
            raise PermissionsError(f"Cannot load try users: {error}") from error
        return UserPermissions(review_users=review_users, try_users=try_users)

    async def load_users(
        self, repository_name: str, permission: PermissionType
    ) -> frozenset[int]:
        """Load the ids of users holding ``permission`` for the repository."""
        normalized_name = repository_name.replace("-", "_")
        url = f"{self.base_url}/v1/permissions/bors.{normalized_name}.{permission.value}.json"
        try:
            response = await self._get(url)
            response.raise_for_status()
        except httpx.HTTPError as error:
            raise PermissionsError(f"Cannot load users from team API: {error!r}") from error
        try:
            ids = response.json()["github_ids"]
            if not isinstance(ids, list):
                raise TypeError("`github_ids` must be a list")
            return frozenset(int(user_id) for user_id in ids)
        except (ValueError, KeyError, TypeError) as error:
            raise PermissionsError(
                f"Cannot deserialize users from team API: {error!r}"
            ) from error

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url)
        async with httpx.AsyncClient() as client:
            return await client.get(url)