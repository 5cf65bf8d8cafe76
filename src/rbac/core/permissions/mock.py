"""In-memory stand-in for ``RBACService``.

``MockRBAC`` touches no store or cache. Creation echoes its arguments
back as read models, list lookups return a small canned set, predicates
return ``allow``, and every call is appended to ``calls`` as
``(method_name, args)``.

Usage:
    rbac = MockRBAC(allow=False)
    await RBACNextStep(rbac)(endpoint)
    assert rbac.calls[0][0] == "new_resource"
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from rbac.core.permissions.access import combine_access
from rbac.core.permissions.schemas import (
    AccountUserGroupRead,
    AccountUserRoleRead,
    ResourceRead,
    RoleGroupRead,
    RoleRead,
    RoleResourcePermissionRead,
    UserGroupRead,
)


CANNED_AT = datetime(2023, 10, 1, tzinfo=UTC)

CANNED_ROLES = [
    RoleRead(
        id="role1",
        name="Admin",
        description="Administrator role",
        public=True,
        priority=2,
        created_at=CANNED_AT,
        updated_at=CANNED_AT,
    ),
    RoleRead(
        id="role2",
        name="User",
        description="User role",
        priority=1,
        created_at=CANNED_AT,
        updated_at=CANNED_AT,
    ),
]

CANNED_GROUP = RoleGroupRead(id="group1", name="Staff", description="Staff group")

CANNED_RESOURCE = ResourceRead(id="api.v1.resource", resource_type="endpoint")


class MockRBAC:
    """No-op ``RBAC`` implementation for tests."""

    def __init__(self, allow: bool = True) -> None:
        self.allow = allow
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def called(self, name: str) -> list[tuple[Any, ...]]:
        """Arguments of every recorded call to ``name``."""
        return [args for call, args in self.calls if call == name]

    # Creation

    async def new_role(self, name: str, description: str = "", priority: int = 0) -> RoleRead:
        self._record("new_role", name, description, priority)
        return RoleRead(id=f"role_{name}", name=name, description=description, priority=priority)

    async def new_group(self, name: str, description: str = "") -> RoleGroupRead:
        self._record("new_group", name, description)
        return RoleGroupRead(id=f"group_{name}", name=name, description=description)

    async def new_resource(
        self,
        resource_id: str,
        description: str = "",
        resource_type: str = "",
        data: str = "",
        public: bool = False,
    ) -> ResourceRead:
        self._record("new_resource", resource_id, description, resource_type, data, public)
        return ResourceRead(
            id=resource_id.lower(),
            description=description,
            resource_type=resource_type,
            data=data,
            public=public,
        )

    async def new_account_user_role(
        self, account_id: str, role_id: str, user_id: str
    ) -> AccountUserRoleRead:
        self._record("new_account_user_role", account_id, role_id, user_id)
        return AccountUserRoleRead(account_id=account_id, user_id=user_id, role_id=role_id)

    async def new_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> AccountUserGroupRead:
        self._record("new_account_user_group", account_id, group_id, user_id)
        return AccountUserGroupRead(account_id=account_id, user_id=user_id, group_id=group_id)

    async def delete_account_user_role(self, account_id: str, role_id: str, user_id: str) -> None:
        self._record("delete_account_user_role", account_id, role_id, user_id)

    async def delete_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> None:
        self._record("delete_account_user_group", account_id, group_id, user_id)

    # Bindings

    async def add_group_to_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None:
        self._record("add_group_to_user", group, user_id, user_type)

    async def remove_group_from_user(self, group: RoleGroupRead, user_id: str) -> None:
        self._record("remove_group_from_user", group, user_id)

    async def replace_group_in_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None:
        self._record("replace_group_in_user", group, user_id, user_type)

    async def add_role_to_user(self, role: RoleRead, user_id: str, user_type: str = "") -> None:
        self._record("add_role_to_user", role, user_id, user_type)

    async def remove_role_from_user(self, role: RoleRead, user_id: str) -> None:
        self._record("remove_role_from_user", role, user_id)

    async def replace_role_in_user(
        self, role: RoleRead, user_id: str, user_type: str = ""
    ) -> None:
        self._record("replace_role_in_user", role, user_id, user_type)

    async def add_role_to_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        self._record("add_role_to_group", group, *roles)

    async def remove_role_from_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        self._record("remove_role_from_group", group, *roles)

    async def replace_role_in_group(self, group: RoleGroupRead, *roles: RoleRead) -> None:
        self._record("replace_role_in_group", group, *roles)

    async def add_permission_resource_to_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None:
        self._record("add_permission_resource_to_role", role, resource, combine_access(*access))

    async def remove_permissions_from_role(self, role: RoleRead, *resources: ResourceRead) -> None:
        self._record("remove_permissions_from_role", role, *resources)

    async def replace_permissions_in_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None:
        self._record("replace_permissions_in_role", role, resource, combine_access(*access))

    # Lookups

    async def get_role(self, role_id: str) -> RoleRead:
        self._record("get_role", role_id)
        return CANNED_ROLES[0].model_copy(update={"id": role_id})

    async def get_role_with_name(self, name: str) -> RoleRead:
        self._record("get_role_with_name", name)
        return CANNED_ROLES[0].model_copy(update={"name": name})

    async def get_group(self, group_id: str) -> RoleGroupRead:
        self._record("get_group", group_id)
        return CANNED_GROUP.model_copy(update={"id": group_id})

    async def get_group_with_name(self, name: str) -> RoleGroupRead:
        self._record("get_group_with_name", name)
        return CANNED_GROUP.model_copy(update={"name": name})

    async def get_resource(self, resource_id: str) -> ResourceRead:
        self._record("get_resource", resource_id)
        return CANNED_RESOURCE.model_copy(update={"id": resource_id})

    async def get_resources_with_pattern(self, pattern: str) -> list[ResourceRead]:
        self._record("get_resources_with_pattern", pattern)
        return [CANNED_RESOURCE]

    async def get_all_roles(self) -> list[RoleRead]:
        self._record("get_all_roles")
        return list(CANNED_ROLES)

    async def get_all_groups(self) -> list[RoleGroupRead]:
        self._record("get_all_groups")
        return [CANNED_GROUP]

    async def get_all_resources(self) -> list[ResourceRead]:
        self._record("get_all_resources")
        return [CANNED_RESOURCE]

    async def get_all_groups_for_user(self, user_id: str) -> list[RoleGroupRead]:
        self._record("get_all_groups_for_user", user_id)
        return [CANNED_GROUP]

    async def get_roles_in_group(self, *groups: RoleGroupRead) -> list[RoleRead]:
        self._record("get_roles_in_group", *groups)
        return list(CANNED_ROLES)

    async def get_user_group_with_type(self, user_id: str, user_type: str) -> list[UserGroupRead]:
        self._record("get_user_group_with_type", user_id, user_type)
        return [UserGroupRead(group_id=CANNED_GROUP.id, user_id=user_id, user_type=user_type)]

    async def get_all_roles_for_user(
        self, user_id: str, account_id: str = "", allow_partial: bool = False
    ) -> list[RoleRead]:
        self._record("get_all_roles_for_user", user_id, account_id, allow_partial)
        return list(CANNED_ROLES)

    async def get_all_resources_for_user(
        self, user_id: str, account_id: str = ""
    ) -> list[ResourceRead]:
        self._record("get_all_resources_for_user", user_id, account_id)
        return [CANNED_RESOURCE]

    async def get_resources_for_role(self, *roles: RoleRead) -> list[ResourceRead]:
        self._record("get_resources_for_role", *roles)
        return [CANNED_RESOURCE]

    async def get_role_resource_permissions(
        self, *roles: RoleRead
    ) -> list[RoleResourcePermissionRead]:
        self._record("get_role_resource_permissions", *roles)
        return [
            RoleResourcePermissionRead(
                role_id=role.id,
                resource_id=CANNED_RESOURCE.id,
                access=combine_access(1, 2, 4, 8),
                resource_pattern=CANNED_RESOURCE.id,
            )
            for role in roles
        ]

    # Account scope

    async def get_accounts_for_user(self, user_id: str) -> list[AccountUserRoleRead]:
        self._record("get_accounts_for_user", user_id)
        return [AccountUserRoleRead(account_id="account1", user_id=user_id, role_id="role1")]

    async def get_account_user_roles(self, account_id: str, user_id: str) -> list[RoleRead]:
        self._record("get_account_user_roles", account_id, user_id)
        return list(CANNED_ROLES)

    async def get_all_account_user_roles(self, account_id: str) -> list[RoleRead]:
        self._record("get_all_account_user_roles", account_id)
        return list(CANNED_ROLES)

    async def get_all_account_users(self, account_id: str) -> list[AccountUserRoleRead]:
        self._record("get_all_account_users", account_id)
        return [
            AccountUserRoleRead(account_id=account_id, user_id="user1", role_id="role1"),
            AccountUserRoleRead(account_id=account_id, user_id="user2", role_id="role2"),
        ]

    async def get_account_user_group(
        self, account_id: str, user_id: str
    ) -> list[AccountUserGroupRead]:
        self._record("get_account_user_group", account_id, user_id)
        return [AccountUserGroupRead(account_id=account_id, user_id=user_id, group_id="group1")]

    async def get_all_account_groups(self, account_id: str) -> list[AccountUserGroupRead]:
        self._record("get_all_account_groups", account_id)
        return [AccountUserGroupRead(account_id=account_id, user_id="user1", group_id="group1")]

    async def account_user_has_role(self, account_id: str, user_id: str, role: RoleRead) -> bool:
        self._record("account_user_has_role", account_id, user_id, role)
        return self.allow

    async def account_user_has_all_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool:
        self._record("account_user_has_all_roles", account_id, user_id, *roles)
        return self.allow

    async def account_user_has_any_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool:
        self._record("account_user_has_any_roles", account_id, user_id, *roles)
        return self.allow

    async def account_user_has_permission_for_resource(
        self, account_id: str, user_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        self._record("account_user_has_permission_for_resource", account_id, user_id, resource)
        return self.allow

    async def account_user_has_any_permission_for_resource(
        self,
        account_id: str,
        user_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        self._record(
            "account_user_has_any_permission_for_resource", account_id, user_id, list(resources)
        )
        return self.allow

    # Predicates

    async def user_has_role(self, user_id: str, role: RoleRead) -> bool:
        self._record("user_has_role", user_id, role)
        return self.allow

    async def user_has_all_roles(self, user_id: str, *roles: RoleRead) -> bool:
        self._record("user_has_all_roles", user_id, *roles)
        return self.allow

    async def user_has_any_roles(self, user_id: str, account_id: str, *roles: RoleRead) -> bool:
        self._record("user_has_any_roles", user_id, account_id, *roles)
        return self.allow

    async def role_has_permission(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> bool:
        self._record("role_has_permission", role, resource, combine_access(*access))
        return self.allow

    async def role_has_any_permission(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        self._record("role_has_any_permission", role, list(resources), combine_access(*access))
        return self.allow

    async def role_has_all_permissions(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool:
        self._record("role_has_all_permissions", role, list(resources), combine_access(*access))
        return self.allow

    async def user_has_permission_for_resource(
        self, user_id: str, account_id: str, resource: ResourceRead, *access: int
    ) -> bool:
        self._record(
            "user_has_permission_for_resource",
            user_id,
            account_id,
            resource,
            combine_access(*access),
        )
        return self.allow

    async def user_has_any_permission_for_resource(
        self,
        user_id: str,
        account_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool:
        self._record(
            "user_has_any_permission_for_resource",
            user_id,
            account_id,
            list(resources),
            combine_access(*access),
        )
        return self.allow
