"""Access control service.

``RBACService`` is the database-backed implementation of the ``RBAC``
protocol. It owns the repositories, the role resolver, the permission
checker and the cache-aside role lookups for one session.

Usage:
    async with session_factory() as session:
        rbac = RBACService(session, RedisCache())
        admin = await rbac.new_role("admin", "Administrators", 10)
        await rbac.add_role_to_user(admin, user_id, "user")
        await session.commit()
"""

from collections.abc import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac.config import Settings, settings as default_settings
from rbac.core.cache import CacheBackend
from rbac.core.errors import AppException, NotFoundError, RoleResolutionError, StoreError, ValidationError
from rbac.core.permissions.access import combine_access
from rbac.core.permissions.checker import PermissionChecker
from rbac.core.permissions.identifiers import validate_resource_id
from rbac.core.permissions.repos import (
    AccountRepository,
    BindingRepository,
    GroupRepository,
    PermissionRepository,
    ResourceRepository,
    RoleRepository,
)
from rbac.core.permissions.resolver import RoleResolver
from rbac.core.permissions.role_cache import RoleCache
from rbac.core.permissions.schemas import (
    AccountUserGroupRead,
    AccountUserRoleRead,
    ResourceRead,
    RoleGroupRead,
    RoleRead,
    RoleResourcePermissionRead,
    UserGroupRead,
)


logger = structlog.get_logger()


def _require_role(role: RoleRead | None) -> RoleRead:
    if role is None or not role.id:
        raise ValidationError("invalid role", errors=[{"field": "role", "message": "missing id"}])
    return role


def _require_group(group: RoleGroupRead | None) -> RoleGroupRead:
    if group is None or not group.id:
        raise ValidationError("invalid group", errors=[{"field": "group", "message": "missing id"}])
    return group


def _require_resource(resource: ResourceRead | None) -> ResourceRead:
    if resource is None or not resource.id:
        raise ValidationError(
            "invalid resource", errors=[{"field": "resource", "message": "missing id"}]
        )
    return resource


def _unique_ids(items: Sequence[RoleRead] | Sequence[RoleGroupRead]) -> list[str]:
    return list(dict.fromkeys(item.id for item in items))


def _same_role(held: RoleRead, wanted: RoleRead) -> bool:
    if held.id.casefold() == wanted.id.casefold():
        return True
    return bool(held.name) and held.name.casefold() == wanted.name.casefold()


def _matches_any(held: Sequence[RoleRead], wanted: Sequence[RoleRead]) -> bool:
    return any(_same_role(h, w) for h in held for w in wanted)


class RBACService:
    """Database-backed access control engine.

    Holds no state between calls beyond its session and cache handles.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheBackend,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or default_settings
        self.roles = RoleRepository(session)
        self.groups = GroupRepository(session)
        self.resources = ResourceRepository(session)
        self.bindings = BindingRepository(session)
        self.accounts = AccountRepository(session)
        self.permissions = PermissionRepository(session)
        self.resolver = RoleResolver(session)
        self.checker = PermissionChecker(session, self.resolver)
        self.role_cache = RoleCache(cache, self.settings)

    # ============================================================
    # Creation
    # ============================================================

    async def new_role(self, name: str, description: str = "", priority: int = 0) -> RoleRead:
        """Get the role with this name, creating it if needed.

        Reads the store directly so a cached "not found" can never cause a
        duplicate.
        """
        role = await self.roles.get_by_name(name)
        if role is not None:
            return role
        role = await self.roles.create(name, description, priority)
        logger.info("role_created", role_id=role.id, name=name, priority=priority)
        return role

    async def new_group(self, name: str, description: str = "") -> RoleGroupRead:
        """Get the group with this name, creating it if needed."""
        group = await self.groups.get_by_name(name)
        if group is not None:
            return group
        group = await self.groups.create(name, description)
        logger.info("group_created", group_id=group.id, name=name)
        return group

    async def new_resource(
        self,
        resource_id: str,
        description: str = "",
        resource_type: str = "",
        data: str = "",
        public: bool = False,
    ) -> ResourceRead:
        """Get the resource with this ID, creating it if needed.

        The ID is lower-cased before validation and lookup.

        Raises:
            ValidationError: If the ID is not a valid resource identifier
        """
        resource_id = validate_resource_id(resource_id)
        resource = await self.resources.get_by_id(resource_id)
        if resource is not None:
            return resource
        resource = await self.resources.create(resource_id, description, resource_type, data, public)
        logger.info("resource_created", resource_id=resource_id, resource_type=resource_type)
        return resource

    async def new_account_user_role(
        self, account_id: str, role_id: str, user_id: str
    ) -> AccountUserRoleRead:
        existing = await self.accounts.get_user_role(account_id, user_id, role_id)
        if existing is not None:
            return existing
        return await self.accounts.add_user_role(account_id, user_id, role_id)

    async def new_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> AccountUserGroupRead:
        existing = await self.accounts.get_user_group(account_id, user_id, group_id)
        if existing is not None:
            return existing
        return await self.accounts.add_user_group(account_id, user_id, group_id)

    async def delete_account_user_role(self, account_id: str, role_id: str, user_id: str) -> None:
        await self.accounts.delete_user_role(account_id, user_id, role_id)

    async def delete_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> None:
        await self.accounts.delete_user_group(account_id, user_id, group_id)

    # ============================================================
    # User and group bindings
    # ============================================================

    async def add_group_to_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None:
        group = _require_group(group)
        if await self.bindings.get_user_group(user_id, group.id) is not None:
            return
        await self.bindings.add_user_group(user_id, group.id, user_type)

    async def remove_group_from_user(self, group: RoleGroupRead, user_id: str) -> None:
        group = _require_group(group)
        await self.bindings.delete_user_group(user_id, group.id)

    async def replace_group_in_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None:
        """Make ``group`` the user's only direct group."""
        group = _require_group(group)
        await self.bindings.delete_user_groups(user_id)
        await self.bindings.add_user_group(user_id, group.id, user_type)

    async def add_role_to_user(self, role: RoleRead, user_id: str, user_type: str = "") -> None:
        role = _require_role(role)
        if await self.bindings.get_user_role(user_id, role.id) is not None:
            return
        await self.bindings.add_user_role(user_id, role.id, user_type)

    async def remove_role_from_user(self, role: RoleRead, user_id: str) -> None:
        role = _require_role(role)
        await self.bindings.delete_user_role(user_id, role.id)

    async def replace_role_in_user(
        self, role: RoleRead, user_id: str, user_type: str = ""
    ) -> None:
        """Make ``role`` the user's only direct role."""
        role = _require_role(role)
        await self.bindings.delete_user_roles(user_id)
        await self.bindings.add_user_role(user_id, role.id, user_type)

    async def add_role_to_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        """Add roles to a group, skipping ones already in it."""
        group = _require_group(group)
        role_ids = _unique_ids([_require_role(r) for r in roles])
        if not role_ids:
            return
        members = await self.bindings.list_group_members(group.id, role_ids)
        present = {m.role_id for m in members}
        for role_id in role_ids:
            if role_id not in present:
                await self.bindings.add_group_member(group.id, role_id)

    async def remove_role_from_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        group = _require_group(group)
        for role_id in _unique_ids([_require_role(r) for r in roles]):
            await self.bindings.delete_group_member(group.id, role_id)

    async def replace_role_in_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        """Make ``roles`` the exact membership of the group."""
        group = _require_group(group)
        wanted = _unique_ids([_require_role(r) for r in roles])
        present = {m.role_id for m in await self.bindings.list_group_members(group.id)}
        for role_id in sorted(present - set(wanted)):
            await self.bindings.delete_group_member(group.id, role_id)
        for role_id in wanted:
            if role_id not in present:
                await self.bindings.add_group_member(group.id, role_id)

    # ============================================================
    # Permissions
    # ============================================================

    async def add_permission_resource_to_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None:
        """Grant the combined access over a resource to a role.

        A grant with exactly this combined access is not duplicated. Other
        grants on the same resource are kept.
        """
        role = _require_role(role)
        resource = _require_resource(resource)
        combined = combine_access(*access)
        if await self.permissions.get(role.id, resource.id, combined) is not None:
            return
        await self.permissions.add(role.id, resource.id, combined, resource.id)
        logger.info(
            "permission_granted",
            role_id=role.id,
            resource_id=resource.id,
            access=combined,
        )

    async def remove_permissions_from_role(self, role: RoleRead, *resources: ResourceRead) -> None:
        """Drop every grant the role holds over each resource."""
        role = _require_role(role)
        for resource in resources:
            await self.permissions.delete_for_resource(role.id, _require_resource(resource).id)

    async def replace_permissions_in_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None:
        """Leave a single grant with the combined access for (role, resource)."""
        role = _require_role(role)
        resource = _require_resource(resource)
        await self.permissions.delete_for_resource(role.id, resource.id)
        await self.permissions.add(role.id, resource.id, combine_access(*access), resource.id)

    # ============================================================
    # Lookups
    # ============================================================

    async def get_role(self, role_id: str) -> RoleRead:
        role = await self.roles.get_by_id(role_id)
        if role is None:
            raise NotFoundError(f"no role found with id ({role_id})", resource="role", resource_id=role_id)
        return role

    async def get_role_with_name(self, name: str) -> RoleRead:
        """Get a role by name through the cache.

        Raises:
            NotFoundError: If no role has this name
        """
        role, _ = await self.role_cache.role_with_name(name, lambda: self.roles.get_by_name(name))
        if role is None:
            raise NotFoundError(f"no role found with name ({name})", resource="role", resource_id=name)
        return role

    async def get_group(self, group_id: str) -> RoleGroupRead:
        group = await self.groups.get_by_id(group_id)
        if group is None:
            raise NotFoundError(
                f"no group found with id ({group_id})", resource="role_group", resource_id=group_id
            )
        return group

    async def get_group_with_name(self, name: str) -> RoleGroupRead:
        group = await self.groups.get_by_name(name)
        if group is None:
            raise NotFoundError(
                f"no group found with name ({name})", resource="role_group", resource_id=name
            )
        return group

    async def get_resource(self, resource_id: str) -> ResourceRead:
        resource = await self.resources.get_by_id(resource_id)
        if resource is None:
            raise NotFoundError(
                f"no resources found with id ({resource_id})",
                resource="resource",
                resource_id=resource_id,
            )
        return resource

    async def get_resources_with_pattern(self, pattern: str) -> list[ResourceRead]:
        """List resources whose ID matches a regular expression evaluated by the store."""
        return await self.resources.list_matching(pattern)

    async def get_all_roles(self) -> list[RoleRead]:
        return await self.roles.list_all()

    async def get_all_groups(self) -> list[RoleGroupRead]:
        return await self.groups.list_all()

    async def get_all_resources(self) -> list[ResourceRead]:
        return await self.resources.list_all()

    async def get_all_groups_for_user(self, user_id: str) -> list[RoleGroupRead]:
        return await self.groups.list_for_user(user_id)

    async def get_roles_in_group(self, *groups: RoleGroupRead) -> list[RoleRead]:
        return await self.roles.list_in_groups(_unique_ids(groups))

    async def get_user_group_with_type(self, user_id: str, user_type: str) -> list[UserGroupRead]:
        """List bindings of a user type in the groups the user belongs to."""
        groups = await self.groups.list_for_user(user_id)
        return await self.bindings.list_user_groups_with_type([g.id for g in groups], user_type)

    async def get_all_roles_for_user(
        self,
        user_id: str,
        account_id: str = "",
        allow_partial: bool = False,
    ) -> list[RoleRead]:
        """Get the effective roles of a user, highest priority first.

        Raises:
            RoleResolutionError: If a binding path failed and allow_partial is False
        """
        return await self.resolver.get_all_roles_for_user(user_id, account_id, allow_partial)

    async def get_all_resources_for_user(
        self, user_id: str, account_id: str = ""
    ) -> list[ResourceRead]:
        roles = await self.resolver.get_all_roles_for_user(user_id, account_id)
        return await self.resources.list_for_roles([r.id for r in roles])

    async def get_resources_for_role(self, *roles: RoleRead) -> list[ResourceRead]:
        return await self.resources.list_for_roles(_unique_ids(roles))

    async def get_role_resource_permissions(
        self, *roles: RoleRead
    ) -> list[RoleResourcePermissionRead]:
        return await self.permissions.list_for(_unique_ids(roles))

    # ============================================================
    # Account scope
    # ============================================================

    async def get_accounts_for_user(self, user_id: str) -> list[AccountUserRoleRead]:
        """List the account role bindings of a user.

        Raises:
            NotFoundError: If the user belongs to no account
        """
        rows = await self.accounts.list_accounts_for_user(user_id)
        if not rows:
            raise NotFoundError(
                f"no accounts found for user ID {user_id}", resource="account", resource_id=user_id
            )
        return rows

    async def get_account_user_roles(self, account_id: str, user_id: str) -> list[RoleRead]:
        return await self.resolver.account_user_roles(account_id, user_id)

    async def get_all_account_user_roles(self, account_id: str) -> list[RoleRead]:
        """Roles held by anyone inside an account, directly or via account groups."""
        bindings = await self.accounts.list_user_roles(account_id)
        group_bindings = await self.accounts.list_user_groups(account_id)
        group_roles = await self.roles.list_in_groups([g.group_id for g in group_bindings])
        return await self.roles.list_by_ids(
            [b.role_id for b in bindings] + [r.id for r in group_roles]
        )

    async def get_all_account_users(self, account_id: str) -> list[AccountUserRoleRead]:
        return await self.accounts.list_user_roles(account_id)

    async def get_account_user_group(
        self, account_id: str, user_id: str
    ) -> list[AccountUserGroupRead]:
        return await self.accounts.list_user_groups(account_id, user_id)

    async def get_all_account_groups(self, account_id: str) -> list[AccountUserGroupRead]:
        return await self.accounts.list_user_groups(account_id)

    async def account_user_has_role(self, account_id: str, user_id: str, role: RoleRead) -> bool:
        return await self.account_user_has_any_roles(account_id, user_id, role)

    async def account_user_has_all_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool:
        """Check that every role is held inside the account. No roles is False."""
        wanted = set(_unique_ids(roles))
        if not wanted:
            return False
        held = await self.resolver.account_user_roles(account_id, user_id)
        return wanted <= {r.id for r in held}

    async def account_user_has_any_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool:
        wanted = set(_unique_ids(roles))
        if not wanted:
            return False
        held = await self.resolver.account_user_roles(account_id, user_id)
        return not wanted.isdisjoint(r.id for r in held)

    async def account_user_has_permission_for_resource(
        self, account_id: str, user_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        return await self.checker.account_user_has_permission_for_resource(
            account_id, user_id, resource, *access
        )

    async def account_user_has_any_permission_for_resource(
        self,
        account_id: str,
        user_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        return await self.checker.account_user_has_any_permission_for_resource(
            account_id, user_id, resources, *access
        )

    # ============================================================
    # Role predicates
    # ============================================================

    async def user_has_role(self, user_id: str, role: RoleRead) -> bool:
        """Check a role through direct, group and account bindings.

        Paths are tried in that order and the first hit wins. A failing
        path does not stop the others; if none hits and one failed,
        RoleResolutionError is raised instead of returning False.
        """
        return await self.user_has_all_roles(user_id, _require_role(role))

    async def user_has_all_roles(self, user_id: str, *roles: RoleRead) -> bool:
        """Check that the user holds every role.

        Direct and group bindings count everywhere; account bindings count
        one account at a time. No roles is False.
        """
        wanted = set(_unique_ids(roles))
        if not wanted:
            return False

        errors: list[AppException] = []
        held: set[str] = set()
        lookups = (
            ("direct", self.bindings.matching_user_role_ids),
            ("group", self.bindings.matching_group_role_ids),
        )
        for path, lookup in lookups:
            try:
                held |= await lookup(user_id, sorted(wanted))
            except StoreError as exc:
                exc.details.setdefault("path", path)
                errors.append(exc)
                continue
            if wanted <= held:
                return True

        for account_id in await self._account_ids(user_id, errors):
            try:
                account_roles = await self.resolver.account_user_roles(account_id, user_id)
            except StoreError as exc:
                exc.details.setdefault("path", f"account:{account_id}")
                errors.append(exc)
                continue
            if wanted <= held | {r.id for r in account_roles}:
                return True

        if errors:
            raise RoleResolutionError([], errors)
        return False

    async def user_has_any_roles(
        self, user_id: str, account_id: str, *roles: RoleRead
    ) -> bool:
        """Check whether the user holds at least one of the roles.

        Roles match by ID or, case-insensitively, by name. The effective
        role set is read through the 30 minute cache. A cached set that
        does not match is not trusted as a denial: roles are re-derived
        from the store and checked again. Finally every account the user
        belongs to is checked.
        """
        if not roles:
            return False

        async def load() -> list[RoleRead]:
            return await self.resolver.get_all_roles_for_user(user_id, account_id)

        try:
            held, loaded = await self.role_cache.user_roles(user_id, account_id, load)
        except RoleResolutionError as exc:
            if _matches_any(exc.roles, roles):
                return True
            raise
        if _matches_any(held, roles):
            return True

        if not loaded:
            # Known consistency gap: the cached set may be stale.
            resolution = await self.resolver.resolve(user_id, account_id)
            if _matches_any(resolution.roles, roles):
                logger.info("user_roles_cache_stale", user_id=user_id, account_id=account_id)
                return True
            resolution.raise_for_errors()

        errors: list[AppException] = []
        for other_account_id in await self._account_ids(user_id, errors):
            try:
                if await self.account_user_has_any_roles(other_account_id, user_id, *roles):
                    return True
            except StoreError as exc:
                exc.details.setdefault("path", f"account:{other_account_id}")
                errors.append(exc)

        if errors:
            raise RoleResolutionError([], errors)
        return False

    async def _account_ids(self, user_id: str, errors: list[AppException]) -> list[str]:
        try:
            rows = await self.get_accounts_for_user(user_id)
        except NotFoundError:
            return []
        except StoreError as exc:
            exc.details.setdefault("path", "accounts")
            errors.append(exc)
            return []
        return list(dict.fromkeys(row.account_id for row in rows))

    # ============================================================
    # Permission predicates
    # ============================================================

    async def role_has_permission(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> bool:
        """See ``PermissionChecker.role_has_permission``.

        Raises:
            NotFoundError: If the role holds no grant on the resource
        """
        return await self.checker.role_has_permission(_require_role(role), resource, *access)

    async def role_has_any_permission(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        return await self.checker.role_has_any_permission(_require_role(role), resources, *access)

    async def role_has_all_permissions(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        return await self.checker.role_has_all_permissions(_require_role(role), resources, *access)

    async def user_has_permission_for_resource(
        self, user_id: str, account_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        return await self.checker.user_has_permission_for_resource(
            user_id, account_id, resource, *access
        )

    async def user_has_any_permission_for_resource(
        self,
        user_id: str,
        account_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        return await self.checker.user_has_any_permission_for_resource(
            user_id, account_id, resources, *access
        )
