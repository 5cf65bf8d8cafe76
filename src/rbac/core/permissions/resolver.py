"""Effective role resolution.

A user's effective roles are the union of:

1. roles bound directly to the user
2. roles of the groups bound to the user
3. roles bound to the user inside the account, directly or via groups
4. the account's own effective roles, resolved as if the account were
   a user with no account

Roles are deduplicated by ID (first occurrence wins) and ordered by
priority, highest first. Equal priorities keep the path order above.
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac.core.errors import AppException, RoleResolutionError, StoreError
from rbac.core.permissions.repos import AccountRepository, GroupRepository, RoleRepository
from rbac.core.permissions.schemas import RoleRead


logger = structlog.get_logger()


def dedupe_roles(roles: Iterable[RoleRead]) -> list[RoleRead]:
    """Keep the first role per ID and sort by priority, highest first."""
    seen: set[str] = set()
    unique: list[RoleRead] = []
    for role in roles:
        if role.id not in seen:
            seen.add(role.id)
            unique.append(role)
    return sorted(unique, key=lambda r: r.priority, reverse=True)


@dataclass
class RoleResolution:
    """Outcome of resolving a user's roles.

    Attributes:
        roles: Deduplicated, priority ordered roles from every path that succeeded
        errors: One error per failed path
    """

    roles: list[RoleRead] = field(default_factory=list)
    errors: list[AppException] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise RoleResolutionError if any path failed."""
        if self.errors:
            raise RoleResolutionError(self.roles, self.errors)


class RoleResolver:
    """Resolves effective roles across the four binding paths.

    Paths run one after another on the same session. A failing path is
    logged and recorded; the remaining paths still run.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.roles = RoleRepository(session)
        self.groups = GroupRepository(session)
        self.accounts = AccountRepository(session)

    async def resolve(self, user_id: str, account_id: str = "") -> RoleResolution:
        """Resolve roles for a user, optionally inside an account.

        Args:
            user_id: The user (or account) ID
            account_id: The account scope, "" for none

        Returns:
            RoleResolution with the roles found and the per-path failures
        """
        collected: list[RoleRead] = []
        resolution = RoleResolution()
        await self._collect(user_id, account_id, "", collected, resolution, {user_id})
        resolution.roles = dedupe_roles(collected)

        if resolution.errors:
            logger.warning(
                "role_resolution_incomplete",
                user_id=user_id,
                account_id=account_id,
                failed_paths=[e.details.get("path") for e in resolution.errors],
                role_ids=[r.id for r in resolution.roles],
            )
        return resolution

    async def get_all_roles_for_user(
        self,
        user_id: str,
        account_id: str = "",
        allow_partial: bool = False,
    ) -> list[RoleRead]:
        """Get every effective role of a user.

        Args:
            user_id: The user (or account) ID
            account_id: The account scope, "" for none
            allow_partial: Return what was found even if a path failed

        Raises:
            RoleResolutionError: If a path failed and allow_partial is False
        """
        resolution = await self.resolve(user_id, account_id)
        if not allow_partial:
            resolution.raise_for_errors()
        return resolution.roles

    async def account_user_roles(self, account_id: str, user_id: str) -> list[RoleRead]:
        """Roles a user holds inside an account, directly or via account groups.

        Returns:
            Roles ordered by priority, highest first
        """
        roles = await self._account_roles(account_id, user_id)
        roles += await self._account_group_roles(account_id, user_id)
        return dedupe_roles(roles)

    async def _account_roles(self, account_id: str, user_id: str) -> list[RoleRead]:
        bindings = await self.accounts.list_user_roles(account_id, user_id)
        return await self.roles.list_by_ids([b.role_id for b in bindings])

    async def _account_group_roles(self, account_id: str, user_id: str) -> list[RoleRead]:
        group_bindings = await self.accounts.list_user_groups(account_id, user_id)
        return await self.roles.list_in_groups([g.group_id for g in group_bindings])

    async def _collect(
        self,
        user_id: str,
        account_id: str,
        scope: str,
        collected: list[RoleRead],
        resolution: RoleResolution,
        visited: set[str],
    ) -> None:
        await self._run_path(
            f"{scope}direct",
            lambda: self.roles.list_for_user(user_id),
            collected,
            resolution,
        )
        await self._run_path(
            f"{scope}group",
            lambda: self._group_roles(user_id),
            collected,
            resolution,
        )
        if not account_id:
            return

        await self._run_path(
            f"{scope}account",
            lambda: self._account_roles(account_id, user_id),
            collected,
            resolution,
        )
        await self._run_path(
            f"{scope}account_group",
            lambda: self._account_group_roles(account_id, user_id),
            collected,
            resolution,
        )
        # The empty account on the inner call bounds recursion to one level;
        # the visited set also stops an account that names the user itself.
        if account_id in visited:
            logger.debug("account_already_resolved", user_id=user_id, account_id=account_id)
            return
        visited.add(account_id)
        await self._collect(account_id, "", f"account:{account_id}:", collected, resolution, visited)

    async def _group_roles(self, user_id: str) -> list[RoleRead]:
        groups = await self.groups.list_for_user(user_id)
        return await self.roles.list_in_groups([g.id for g in groups])

    async def _run_path(
        self,
        path: str,
        loader: Callable[[], Awaitable[list[RoleRead]]],
        collected: list[RoleRead],
        resolution: RoleResolution,
    ) -> None:
        try:
            roles = await loader()
        except StoreError as exc:
            exc.details.setdefault("path", path)
            logger.warning("role_path_failed", path=path, error=exc.message, details=exc.details)
            resolution.errors.append(exc)
            return
        collected.extend(roles)
