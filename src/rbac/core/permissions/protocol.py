"""The access control contract.

Code that only needs decisions or administration should depend on
``RBAC`` and accept either ``RBACService`` or ``MockRBAC``.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from rbac.core.permissions.schemas import (
    AccountUserGroupRead,
    AccountUserRoleRead,
    ResourceRead,
    RoleGroupRead,
    RoleRead,
    RoleResourcePermissionRead,
    UserGroupRead,
)


@runtime_checkable
class RBAC(Protocol):
    # Creation
    async def new_role(self, name: str, description: str = "", priority: int = 0) -> RoleRead: ...

    async def new_group(self, name: str, description: str = "") -> RoleGroupRead: ...

    async def new_resource(
        self,
        resource_id: str,
        description: str = "",
        resource_type: str = "",
        data: str = "",
        public: bool = False,
    ) -> ResourceRead: ...

    async def new_account_user_role(
        self, account_id: str, role_id: str, user_id: str
    ) -> AccountUserRoleRead: ...

    async def new_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> AccountUserGroupRead: ...

    async def delete_account_user_role(self, account_id: str, role_id: str, user_id: str) -> None: ...

    async def delete_account_user_group(
        self, account_id: str, group_id: str, user_id: str
    ) -> None: ...

    # Bindings
    async def add_group_to_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None: ...

    async def remove_group_from_user(self, group: RoleGroupRead, user_id: str) -> None: ...

    async def replace_group_in_user(
        self, group: RoleGroupRead, user_id: str, user_type: str = ""
    ) -> None: ...

    async def add_role_to_user(self, role: RoleRead, user_id: str, user_type: str = "") -> None: ...

    async def remove_role_from_user(self, role: RoleRead, user_id: str) -> None: ...

    async def replace_role_in_user(
        self, role: RoleRead, user_id: str, user_type: str = ""
    ) -> None: ...

    async def add_role_to_group(self, group: RoleGroupRead, *roles: RoleRead) -> None: ...

    async def remove_role_from_group(self, group: RoleGroupRead, *roles: RoleRead) -> None: ...

    async def replace_role_in_group(self, group: RoleGroupRead, *roles: RoleRead) -> None: ...

    async def add_permission_resource_to_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None: ...

    async def remove_permissions_from_role(
        self, role: RoleRead, *resources: ResourceRead
    ) -> None: ...

    async def replace_permissions_in_role(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> None: ...

    # Lookups
    async def get_role(self, role_id: str) -> RoleRead: ...

    async def get_role_with_name(self, name: str) -> RoleRead: ...

    async def get_group(self, group_id: str) -> RoleGroupRead: ...

    async def get_group_with_name(self, name: str) -> RoleGroupRead: ...

    async def get_resource(self, resource_id: str) -> ResourceRead: ...

    async def get_resources_with_pattern(self, pattern: str) -> list[ResourceRead]: ...

    async def get_all_roles(self) -> list[RoleRead]: ...

    async def get_all_groups(self) -> list[RoleGroupRead]: ...

    async def get_all_resources(self) -> list[ResourceRead]: ...

    async def get_all_groups_for_user(self, user_id: str) -> list[RoleGroupRead]: ...

    async def get_roles_in_group(self, *groups: RoleGroupRead) -> list[RoleRead]: ...

    async def get_user_group_with_type(
        self, user_id: str, user_type: str
    ) -> list[UserGroupRead]: ...

    async def get_all_roles_for_user(
        self, user_id: str, account_id: str = "", allow_partial: bool = False
    ) -> list[RoleRead]: ...

    async def get_all_resources_for_user(
        self, user_id: str, account_id: str = ""
    ) -> list[ResourceRead]: ...

    async def get_resources_for_role(self, *roles: RoleRead) -> list[ResourceRead]: ...

    async def get_role_resource_permissions(
        self, *roles: RoleRead
    ) -> list[RoleResourcePermissionRead]: ...

    # Account scope
    async def get_accounts_for_user(self, user_id: str) -> list[AccountUserRoleRead]: ...

    async def get_account_user_roles(self, account_id: str, user_id: str) -> list[RoleRead]: ...

    async def get_all_account_user_roles(self, account_id: str) -> list[RoleRead]: ...

    async def get_all_account_users(self, account_id: str) -> list[AccountUserRoleRead]: ...

    async def get_account_user_group(
        self, account_id: str, user_id: str
    ) -> list[AccountUserGroupRead]: ...

    async def get_all_account_groups(self, account_id: str) -> list[AccountUserGroupRead]: ...

    async def account_user_has_role(
        self, account_id: str, user_id: str, role: RoleRead
    ) -> bool: ...

    async def account_user_has_all_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool: ...

    async def account_user_has_any_roles(
        self, account_id: str, user_id: str, *roles: RoleRead
    ) -> bool: ...

    async def account_user_has_permission_for_resource(
        self, account_id: str, user_id: str, resource: ResourceRead, *access: int
    ) -> bool: ...

    async def account_user_has_any_permission_for_resource(
        self,
        account_id: str,
        user_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool: ...

    # Predicates
    async def user_has_role(self, user_id: str, role: RoleRead) -> bool: ...

    async def user_has_all_roles(self, user_id: str, *roles: RoleRead) -> bool: ...

    async def user_has_any_roles(self, user_id: str, account_id: str, *roles: RoleRead) -> bool: ...

    async def role_has_permission(
        self, role: RoleRead, resource: ResourceRead, *access: int
    ) -> bool: ...

    async def role_has_any_permission(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool: ...

    async def role_has_all_permissions(
        self, role: RoleRead, resources: Sequence[ResourceRead], *access: int
    ) -> bool: ...

    async def user_has_permission_for_resource(
        self, user_id: str, account_id: str, resource: ResourceRead, *access: int
    ) -> bool: ...

    async def user_has_any_permission_for_resource(
        self,
        user_id: str,
        account_id: str,
        resources: Sequence[ResourceRead],
        *access: int,
    ) -> bool: ...
