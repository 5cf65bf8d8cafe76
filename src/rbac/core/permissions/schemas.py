"""Read schemas returned by the engine.

The store adapter converts ORM rows into these models so callers and
the cache never hold session-bound objects.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class _ReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    created_at: datetime | None = None
    updated_at: datetime | None = None


class RoleRead(_ReadModel):
    """Role as returned by lookups and role resolution."""

    id: str
    name: str
    description: str = ""
    public: bool = False
    priority: int = 0


class RoleGroupRead(_ReadModel):
    id: str
    name: str
    description: str = ""
    public: bool = False


class ResourceRead(_ReadModel):
    """Protected resource."""

    id: str
    description: str = ""
    resource_type: str = ""
    data: str = ""
    public: bool = False


class RolesInGroupRead(_ReadModel):
    group_id: str
    role_id: str


class RoleResourcePermissionRead(_ReadModel):
    """Access bits granted to a role over a resource."""

    role_id: str
    resource_id: str
    access: int
    resource_pattern: str = ""


class UserRoleRead(_ReadModel):
    role_id: str
    user_id: str
    user_type: str = ""


class UserGroupRead(_ReadModel):
    group_id: str
    user_id: str
    user_type: str = ""


class AccountUserRoleRead(_ReadModel):
    account_id: str
    user_id: str
    role_id: str


class AccountUserGroupRead(_ReadModel):
    account_id: str
    user_id: str
    group_id: str
