"""Repositories for the access control tables.

One repository per entity family. Each query is a conjunction of
equality, membership or regex predicates, optionally joined against a
binding table. No business rules live here: every SQLAlchemy failure is
re-raised as ``StoreError`` naming the operation and the field values,
and "no rows" comes back as ``None`` or an empty list.
"""

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rbac.core.errors import StoreError
from rbac.core.permissions.models import (
    AccountUserGroup,
    AccountUserRole,
    Resource,
    Role,
    RoleGroup,
    RoleResourcePermission,
    RolesInGroup,
    UserGroup,
    UserRole,
)
from rbac.core.permissions.schemas import (
    AccountUserGroupRead,
    AccountUserRoleRead,
    ResourceRead,
    RoleGroupRead,
    RoleRead,
    RoleResourcePermissionRead,
    RolesInGroupRead,
    UserGroupRead,
    UserRoleRead,
)


logger = structlog.get_logger()


@asynccontextmanager
async def store_operation(operation: str, **fields: Any) -> AsyncGenerator[None, None]:
    """Wrap driver failures in ``StoreError`` with context.

    Usage:
        async with store_operation("get_role", role_id=role_id):
            result = await session.execute(stmt)
    """
    logger.debug("store_operation", operation=operation, **fields)
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning("store_operation_failed", operation=operation, error=str(exc), **fields)
        raise StoreError(
            f"{operation} failed",
            operation=operation,
            details={k: _loggable(v) for k, v in fields.items()},
        ) from exc


def _loggable(value: Any) -> Any:
    if isinstance(value, (set, frozenset, tuple)):
        return sorted(value) if isinstance(value, (set, frozenset)) else list(value)
    return value


class _Repository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _insert(self, row: Any) -> Any:
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row


class RoleRepository(_Repository):
    """Repository for Role rows."""

    async def create(self, name: str, description: str, priority: int) -> RoleRead:
        """Insert a role and return it with its generated ID."""
        async with store_operation("create_role", name=name, priority=priority):
            role = await self._insert(Role(name=name, description=description, priority=priority))
        return RoleRead.model_validate(role)

    async def get_by_id(self, role_id: str) -> RoleRead | None:
        async with store_operation("get_role", role_id=role_id):
            role = await self.session.get(Role, role_id)
        return RoleRead.model_validate(role) if role else None

    async def get_by_name(self, name: str) -> RoleRead | None:
        """Get the oldest role with a name.

        Args:
            name: Role name

        Returns:
            Role if found, None otherwise
        """
        stmt = select(Role).where(Role.name == name).order_by(Role.created_at, Role.id).limit(1)
        async with store_operation("get_role_with_name", name=name):
            result = await self.session.execute(stmt)
            role = result.scalar_one_or_none()
        return RoleRead.model_validate(role) if role else None

    async def list_all(self) -> list[RoleRead]:
        async with store_operation("get_all_roles"):
            result = await self.session.execute(select(Role).order_by(Role.id))
            return [RoleRead.model_validate(r) for r in result.scalars().all()]

    async def list_by_ids(self, role_ids: Sequence[str]) -> list[RoleRead]:
        """List roles by ID, highest priority first."""
        if not role_ids:
            return []
        stmt = (
            select(Role)
            .where(Role.id.in_(set(role_ids)))
            .order_by(Role.priority.desc(), Role.id)
        )
        async with store_operation("get_roles_by_id", role_ids=set(role_ids)):
            result = await self.session.execute(stmt)
            return [RoleRead.model_validate(r) for r in result.scalars().all()]

    async def list_for_user(self, user_id: str) -> list[RoleRead]:
        """List roles bound directly to a user."""
        stmt = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.id)
        )
        async with store_operation("get_direct_roles_for_user", user_id=user_id):
            result = await self.session.execute(stmt)
            return [RoleRead.model_validate(r) for r in result.scalars().all()]

    async def list_in_groups(self, group_ids: Sequence[str]) -> list[RoleRead]:
        """List the distinct roles that belong to any of the groups."""
        if not group_ids:
            return []
        stmt = (
            select(Role)
            .join(RolesInGroup, RolesInGroup.role_id == Role.id)
            .where(RolesInGroup.group_id.in_(set(group_ids)))
            .distinct()
            .order_by(Role.id)
        )
        async with store_operation("get_roles_in_group", group_ids=set(group_ids)):
            result = await self.session.execute(stmt)
            return [RoleRead.model_validate(r) for r in result.scalars().all()]


class GroupRepository(_Repository):
    """Repository for RoleGroup rows."""

    async def create(self, name: str, description: str) -> RoleGroupRead:
        async with store_operation("create_group", name=name):
            group = await self._insert(RoleGroup(name=name, description=description))
        return RoleGroupRead.model_validate(group)

    async def get_by_id(self, group_id: str) -> RoleGroupRead | None:
        async with store_operation("get_group", group_id=group_id):
            group = await self.session.get(RoleGroup, group_id)
        return RoleGroupRead.model_validate(group) if group else None

    async def get_by_name(self, name: str) -> RoleGroupRead | None:
        stmt = (
            select(RoleGroup)
            .where(RoleGroup.name == name)
            .order_by(RoleGroup.created_at, RoleGroup.id)
            .limit(1)
        )
        async with store_operation("get_group_with_name", name=name):
            result = await self.session.execute(stmt)
            group = result.scalar_one_or_none()
        return RoleGroupRead.model_validate(group) if group else None

    async def list_all(self) -> list[RoleGroupRead]:
        async with store_operation("get_all_groups"):
            result = await self.session.execute(select(RoleGroup).order_by(RoleGroup.id))
            return [RoleGroupRead.model_validate(g) for g in result.scalars().all()]

    async def list_for_user(self, user_id: str) -> list[RoleGroupRead]:
        """List groups bound directly to a user."""
        stmt = (
            select(RoleGroup)
            .join(UserGroup, UserGroup.group_id == RoleGroup.id)
            .where(UserGroup.user_id == user_id)
            .order_by(RoleGroup.id)
        )
        async with store_operation("get_all_groups_for_user", user_id=user_id):
            result = await self.session.execute(stmt)
            return [RoleGroupRead.model_validate(g) for g in result.scalars().all()]


class ResourceRepository(_Repository):
    """Repository for Resource rows."""

    async def create(
        self,
        resource_id: str,
        description: str,
        resource_type: str,
        data: str,
        public: bool,
    ) -> ResourceRead:
        resource = Resource(
            id=resource_id,
            description=description,
            resource_type=resource_type,
            data=data,
            public=public,
        )
        async with store_operation("create_resource", resource_id=resource_id):
            resource = await self._insert(resource)
        return ResourceRead.model_validate(resource)

    async def get_by_id(self, resource_id: str) -> ResourceRead | None:
        async with store_operation("get_resource", resource_id=resource_id):
            resource = await self.session.get(Resource, resource_id)
        return ResourceRead.model_validate(resource) if resource else None

    async def list_all(self) -> list[ResourceRead]:
        async with store_operation("get_all_resources"):
            result = await self.session.execute(select(Resource).order_by(Resource.id))
            return [ResourceRead.model_validate(r) for r in result.scalars().all()]

    async def list_matching(self, pattern: str) -> list[ResourceRead]:
        """List resources whose ID matches a regular expression.

        The expression is evaluated by the database.
        """
        stmt = select(Resource).where(Resource.id.regexp_match(pattern)).order_by(Resource.id)
        async with store_operation("get_resources_with_pattern", pattern=pattern):
            result = await self.session.execute(stmt)
            return [ResourceRead.model_validate(r) for r in result.scalars().all()]

    async def list_for_roles(self, role_ids: Sequence[str]) -> list[ResourceRead]:
        """List the distinct resources any of the roles holds a grant on."""
        if not role_ids:
            return []
        stmt = (
            select(Resource)
            .join(RoleResourcePermission, RoleResourcePermission.resource_id == Resource.id)
            .where(RoleResourcePermission.role_id.in_(set(role_ids)))
            .distinct()
            .order_by(Resource.id)
        )
        async with store_operation("get_resources_for_role", role_ids=set(role_ids)):
            result = await self.session.execute(stmt)
            return [ResourceRead.model_validate(r) for r in result.scalars().all()]


class BindingRepository(_Repository):
    """Repository for user -> role, user -> group and group -> role rows."""

    async def get_user_role(self, user_id: str, role_id: str) -> UserRoleRead | None:
        async with store_operation("get_user_role", user_id=user_id, role_id=role_id):
            row = await self.session.get(UserRole, {"role_id": role_id, "user_id": user_id})
        return UserRoleRead.model_validate(row) if row else None

    async def add_user_role(self, user_id: str, role_id: str, user_type: str) -> UserRoleRead:
        async with store_operation("add_role_to_user", user_id=user_id, role_id=role_id):
            row = await self._insert(UserRole(role_id=role_id, user_id=user_id, user_type=user_type))
        return UserRoleRead.model_validate(row)

    async def delete_user_role(self, user_id: str, role_id: str) -> None:
        stmt = delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        async with store_operation("remove_role_from_user", user_id=user_id, role_id=role_id):
            await self.session.execute(stmt)

    async def delete_user_roles(self, user_id: str) -> None:
        """Delete every direct role binding of a user."""
        async with store_operation("remove_roles_from_user", user_id=user_id):
            await self.session.execute(delete(UserRole).where(UserRole.user_id == user_id))

    async def matching_user_role_ids(self, user_id: str, role_ids: Sequence[str]) -> set[str]:
        """Return which of the role IDs are bound directly to the user."""
        stmt = select(UserRole.role_id).where(
            UserRole.user_id == user_id,
            UserRole.role_id.in_(set(role_ids)),
        )
        async with store_operation("user_has_role", user_id=user_id, role_ids=set(role_ids)):
            result = await self.session.execute(stmt)
            return set(result.scalars().all())

    async def matching_group_role_ids(self, user_id: str, role_ids: Sequence[str]) -> set[str]:
        """Return which of the role IDs reach the user through a group."""
        stmt = (
            select(RolesInGroup.role_id)
            .join(UserGroup, UserGroup.group_id == RolesInGroup.group_id)
            .where(
                UserGroup.user_id == user_id,
                RolesInGroup.role_id.in_(set(role_ids)),
            )
        )
        async with store_operation("user_has_group_role", user_id=user_id, role_ids=set(role_ids)):
            result = await self.session.execute(stmt)
            return set(result.scalars().all())

    async def get_user_group(self, user_id: str, group_id: str) -> UserGroupRead | None:
        async with store_operation("get_user_group", user_id=user_id, group_id=group_id):
            row = await self.session.get(UserGroup, {"group_id": group_id, "user_id": user_id})
        return UserGroupRead.model_validate(row) if row else None

    async def add_user_group(self, user_id: str, group_id: str, user_type: str) -> UserGroupRead:
        async with store_operation("add_group_to_user", user_id=user_id, group_id=group_id):
            row = await self._insert(
                UserGroup(group_id=group_id, user_id=user_id, user_type=user_type)
            )
        return UserGroupRead.model_validate(row)

    async def delete_user_group(self, user_id: str, group_id: str) -> None:
        stmt = delete(UserGroup).where(UserGroup.user_id == user_id, UserGroup.group_id == group_id)
        async with store_operation("remove_group_from_user", user_id=user_id, group_id=group_id):
            await self.session.execute(stmt)

    async def delete_user_groups(self, user_id: str) -> None:
        """Delete every direct group binding of a user."""
        async with store_operation("remove_groups_from_user", user_id=user_id):
            await self.session.execute(delete(UserGroup).where(UserGroup.user_id == user_id))

    async def list_user_groups_with_type(
        self, group_ids: Sequence[str], user_type: str
    ) -> list[UserGroupRead]:
        """List group bindings of a user type inside the given groups, oldest first."""
        if not group_ids:
            return []
        stmt = (
            select(UserGroup)
            .where(UserGroup.group_id.in_(set(group_ids)), UserGroup.user_type == user_type)
            .order_by(UserGroup.created_at, UserGroup.user_id)
        )
        async with store_operation(
            "get_user_group_with_type", group_ids=set(group_ids), user_type=user_type
        ):
            result = await self.session.execute(stmt)
            return [UserGroupRead.model_validate(r) for r in result.scalars().all()]

    async def list_group_members(
        self, group_id: str, role_ids: Sequence[str] | None = None
    ) -> list[RolesInGroupRead]:
        """List a group's role memberships, optionally limited to some roles."""
        stmt = select(RolesInGroup).where(RolesInGroup.group_id == group_id)
        if role_ids is not None:
            stmt = stmt.where(RolesInGroup.role_id.in_(set(role_ids)))
        async with store_operation("get_group_members", group_id=group_id):
            result = await self.session.execute(stmt.order_by(RolesInGroup.role_id))
            return [RolesInGroupRead.model_validate(r) for r in result.scalars().all()]

    async def add_group_member(self, group_id: str, role_id: str) -> RolesInGroupRead:
        async with store_operation("add_role_to_group", group_id=group_id, role_id=role_id):
            row = await self._insert(RolesInGroup(group_id=group_id, role_id=role_id))
        return RolesInGroupRead.model_validate(row)

    async def delete_group_member(self, group_id: str, role_id: str) -> None:
        stmt = delete(RolesInGroup).where(
            RolesInGroup.group_id == group_id,
            RolesInGroup.role_id == role_id,
        )
        async with store_operation("remove_role_from_group", group_id=group_id, role_id=role_id):
            await self.session.execute(stmt)


class AccountRepository(_Repository):
    """Repository for account scoped role and group bindings."""

    async def get_user_role(
        self, account_id: str, user_id: str, role_id: str
    ) -> AccountUserRoleRead | None:
        key = {"account_id": account_id, "user_id": user_id, "role_id": role_id}
        async with store_operation("get_account_user_role", **key):
            row = await self.session.get(AccountUserRole, key)
        return AccountUserRoleRead.model_validate(row) if row else None

    async def add_user_role(
        self, account_id: str, user_id: str, role_id: str
    ) -> AccountUserRoleRead:
        async with store_operation(
            "new_account_user_role", account_id=account_id, user_id=user_id, role_id=role_id
        ):
            row = await self._insert(
                AccountUserRole(account_id=account_id, user_id=user_id, role_id=role_id)
            )
        return AccountUserRoleRead.model_validate(row)

    async def delete_user_role(self, account_id: str, user_id: str, role_id: str) -> None:
        stmt = delete(AccountUserRole).where(
            AccountUserRole.account_id == account_id,
            AccountUserRole.user_id == user_id,
            AccountUserRole.role_id == role_id,
        )
        async with store_operation(
            "delete_account_user_role", account_id=account_id, user_id=user_id, role_id=role_id
        ):
            await self.session.execute(stmt)

    async def list_user_roles(
        self,
        account_id: str,
        user_id: str | None = None,
        role_ids: Sequence[str] | None = None,
    ) -> list[AccountUserRoleRead]:
        """List account role bindings.

        Args:
            account_id: The account
            user_id: Limit to one user; all users when None
            role_ids: Limit to these roles; all roles when None
        """
        stmt = select(AccountUserRole).where(AccountUserRole.account_id == account_id)
        if user_id is not None:
            stmt = stmt.where(AccountUserRole.user_id == user_id)
        if role_ids is not None:
            stmt = stmt.where(AccountUserRole.role_id.in_(set(role_ids)))
        stmt = stmt.order_by(AccountUserRole.user_id, AccountUserRole.role_id)
        async with store_operation("get_account_user_roles", account_id=account_id, user_id=user_id):
            result = await self.session.execute(stmt)
            return [AccountUserRoleRead.model_validate(r) for r in result.scalars().all()]

    async def list_accounts_for_user(self, user_id: str) -> list[AccountUserRoleRead]:
        """List every account role binding held by a user."""
        stmt = (
            select(AccountUserRole)
            .where(AccountUserRole.user_id == user_id)
            .order_by(AccountUserRole.account_id, AccountUserRole.role_id)
        )
        async with store_operation("get_accounts_for_user", user_id=user_id):
            result = await self.session.execute(stmt)
            return [AccountUserRoleRead.model_validate(r) for r in result.scalars().all()]

    async def get_user_group(
        self, account_id: str, user_id: str, group_id: str
    ) -> AccountUserGroupRead | None:
        key = {"account_id": account_id, "user_id": user_id, "group_id": group_id}
        async with store_operation("get_account_user_group", **key):
            row = await self.session.get(AccountUserGroup, key)
        return AccountUserGroupRead.model_validate(row) if row else None

    async def add_user_group(
        self, account_id: str, user_id: str, group_id: str
    ) -> AccountUserGroupRead:
        async with store_operation(
            "new_account_user_group", account_id=account_id, user_id=user_id, group_id=group_id
        ):
            row = await self._insert(
                AccountUserGroup(account_id=account_id, user_id=user_id, group_id=group_id)
            )
        return AccountUserGroupRead.model_validate(row)

    async def delete_user_group(self, account_id: str, user_id: str, group_id: str) -> None:
        stmt = delete(AccountUserGroup).where(
            AccountUserGroup.account_id == account_id,
            AccountUserGroup.user_id == user_id,
            AccountUserGroup.group_id == group_id,
        )
        async with store_operation(
            "delete_account_user_group", account_id=account_id, user_id=user_id, group_id=group_id
        ):
            await self.session.execute(stmt)

    async def list_user_groups(
        self, account_id: str, user_id: str | None = None
    ) -> list[AccountUserGroupRead]:
        """List account group bindings, for one user or for the whole account."""
        stmt = select(AccountUserGroup).where(AccountUserGroup.account_id == account_id)
        if user_id is not None:
            stmt = stmt.where(AccountUserGroup.user_id == user_id)
        stmt = stmt.order_by(AccountUserGroup.user_id, AccountUserGroup.group_id)
        async with store_operation(
            "get_account_user_group", account_id=account_id, user_id=user_id
        ):
            result = await self.session.execute(stmt)
            return [AccountUserGroupRead.model_validate(r) for r in result.scalars().all()]


class PermissionRepository(_Repository):
    """Repository for RoleResourcePermission rows."""

    async def get(
        self, role_id: str, resource_id: str, access: int
    ) -> RoleResourcePermissionRead | None:
        key = {"role_id": role_id, "resource_id": resource_id, "access": access}
        async with store_operation("get_role_resource_permission", **key):
            row = await self.session.get(RoleResourcePermission, key)
        return RoleResourcePermissionRead.model_validate(row) if row else None

    async def add(
        self, role_id: str, resource_id: str, access: int, resource_pattern: str
    ) -> RoleResourcePermissionRead:
        row = RoleResourcePermission(
            role_id=role_id,
            resource_id=resource_id,
            access=access,
            resource_pattern=resource_pattern,
        )
        async with store_operation(
            "add_permission_resource_to_role",
            role_id=role_id,
            resource_id=resource_id,
            access=access,
        ):
            row = await self._insert(row)
        return RoleResourcePermissionRead.model_validate(row)

    async def delete_for_resource(self, role_id: str, resource_id: str) -> None:
        """Delete every grant a role holds over one resource."""
        stmt = delete(RoleResourcePermission).where(
            RoleResourcePermission.role_id == role_id,
            RoleResourcePermission.resource_id == resource_id,
        )
        async with store_operation(
            "remove_permissions_from_role", role_id=role_id, resource_id=resource_id
        ):
            await self.session.execute(stmt)

    async def list_for(
        self,
        role_ids: Sequence[str],
        resource_ids: Sequence[str] | None = None,
    ) -> list[RoleResourcePermissionRead]:
        """List grants of the roles, optionally limited to some resources."""
        if not role_ids:
            return []
        stmt = select(RoleResourcePermission).where(
            RoleResourcePermission.role_id.in_(set(role_ids))
        )
        if resource_ids is not None:
            stmt = stmt.where(RoleResourcePermission.resource_id.in_(set(resource_ids)))
        stmt = stmt.order_by(
            RoleResourcePermission.role_id,
            RoleResourcePermission.resource_id,
            RoleResourcePermission.access,
        )
        async with store_operation(
            "get_role_resource_permissions",
            role_ids=set(role_ids),
            resource_ids=set(resource_ids) if resource_ids is not None else None,
        ):
            result = await self.session.execute(stmt)
            return [RoleResourcePermissionRead.model_validate(r) for r in result.scalars().all()]
