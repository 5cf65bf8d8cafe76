"""Permission checking logic.

This module decides whether roles, users or account users hold a
requested access over resources. Requested access values are OR-combined
and a grant matches when it shares ANY bit with the request (see
``rbac.core.permissions.access.has_access``).

Outcomes are kept apart:
- ``True`` / ``False``: evaluation completed, access granted / denied
- ``NotFoundError``: ``role_has_permission`` found no grant row at all
- ``StoreError``: the store failed, nothing was decided
"""

from collections.abc import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac.core.errors import AppException, NotFoundError, RoleResolutionError
from rbac.core.permissions.access import combine_access, has_access
from rbac.core.permissions.repos import PermissionRepository
from rbac.core.permissions.resolver import RoleResolver
from rbac.core.permissions.schemas import ResourceRead, RoleRead, RoleResourcePermissionRead


logger = structlog.get_logger()


def resource_ids(*resources: ResourceRead) -> list[str]:
    return [r.id for r in resources]


def _any_grant(rows: Sequence[RoleResourcePermissionRead], access: int) -> bool:
    return any(has_access(row.access, access) for row in rows)


class PermissionChecker:
    """Service for checking role and user permissions over resources."""

    def __init__(self, session: AsyncSession, resolver: RoleResolver | None = None) -> None:
        self.permissions = PermissionRepository(session)
        self.resolver = resolver or RoleResolver(session)

    async def role_has_permission(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> bool:
        """Check one role against one resource.

        Args:
            role: The role to check
            resource: The resource being accessed
            access: Requested access values, OR-combined

        Returns:
            True on the first grant sharing a bit with the request,
            False if grants exist but none overlaps

        Raises:
            NotFoundError: If the role holds no grant on the resource
        """
        rows = await self.permissions.list_for([role.id], [resource.id])
        if not rows:
            raise NotFoundError(
                f"role does not have permissions to view this resource ({resource.id})",
                resource="role_resource_permissions",
                resource_id=resource.id,
                details={"role_id": role.id},
            )

        combined = combine_access(*access)
        for row in rows:
            if has_access(row.access, combined):
                logger.debug(
                    "role_has_access",
                    resource_id=resource.id,
                    role_id=role.id,
                    access=combined,
                    row_access=row.access,
                )
                return True

        logger.debug(
            "role_lacks_access",
            resource_id=resource.id,
            role_id=role.id,
            access=combined,
        )
        return False

    async def role_has_any_permission(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        """Check whether a role's access overlaps the request on any resource."""
        rows = await self.permissions.list_for([role.id], resource_ids(*resources))
        return _any_grant(rows, combine_access(*access))

    async def role_has_all_permissions(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        """Check whether a role's access overlaps the request on every resource.

        Each resource needs its own overlapping grant. An empty resource
        list is denied.
        """
        if not resources:
            return False
        rows = await self.permissions.list_for([role.id], resource_ids(*resources))
        combined = combine_access(*access)
        granted = {row.resource_id for row in rows if has_access(row.access, combined)}
        return all(r.id in granted for r in resources)

    async def user_has_permission_for_resource(
        self, user_id: str, account_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        """Check a user's effective roles against one resource.

        Raises:
            RoleResolutionError: If access is denied while some role path failed
            StoreError: If the permission query fails
        """
        return await self.user_has_any_permission_for_resource(
            user_id, account_id, [resource], *access
        )

    async def user_has_any_permission_for_resource(
        self,
        user_id: str,
        account_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        """Check a user's effective roles against any of the resources.

        Roles from failed binding paths count as absent. That can only
        remove grants, so a ``True`` stands. A ``False`` with failed paths
        is not a decision and raises instead.
        """
        resolution = await self.resolver.resolve(user_id, account_id)
        granted = await self._evaluate(resolution.roles, resources, access, resolution.errors)
        logger.debug(
            "user_permission_checked",
            user_id=user_id,
            account_id=account_id,
            resource_ids=resource_ids(*resources),
            access=combine_access(*access),
            granted=granted,
        )
        return granted

    async def account_user_has_permission_for_resource(
        self, account_id: str, user_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        """Check only the roles a user holds inside an account."""
        return await self.account_user_has_any_permission_for_resource(
            account_id, user_id, [resource], *access
        )

    async def account_user_has_any_permission_for_resource(
        self,
        account_id: str,
        user_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        roles = await self.resolver.account_user_roles(account_id, user_id)
        logger.debug("account_user_roles", account_id=account_id, role_ids=[r.id for r in roles])
        return await self._evaluate(roles, resources, access, [])

    async def _evaluate(
        self,
        roles: Sequence[RoleRead],
        resources: Sequence[ResourceRead],
        access: Sequence[int],
        errors: Sequence[AppException],
    ) -> bool:
        rows = await self.permissions.list_for([r.id for r in roles], resource_ids(*resources))
        if _any_grant(rows, combine_access(*access)):
            return True
        if errors:
            raise RoleResolutionError(
                roles,
                errors,
                message="Access undecided, role resolution incomplete",
            )
        return False
