"""Access control database models.

This module defines the RBAC tables:
- Role: a named, prioritized bundle of resource permissions
- RoleGroup: a named bundle of roles
- Resource: a protected entity identified by a dotted path
- RolesInGroup: group <-> role membership
- RoleResourcePermission: access bits granted to a role over a resource
- UserRole / UserGroup: direct user bindings
- AccountUserRole / AccountUserGroup: bindings scoped to an account

A "user" column holds any actor ID: a user, a service account or an
account itself.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rbac.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_RESOURCE_ID_LENGTH,
    MAX_RESOURCE_PATTERN_LENGTH,
    MAX_RESOURCE_TYPE_LENGTH,
    MAX_USER_ID_LENGTH,
    MAX_USER_TYPE_LENGTH,
)
from rbac.core.database.base import Base, GeneratedIDMixin, TimestampMixin


class Role(Base, GeneratedIDMixin, TimestampMixin):
    """Role model.

    Attributes:
        name: Role name (e.g., "admin", "viewer")
        description: Human-readable description
        public: Whether the role may be listed to end users
        priority: Precedence when ordering effective roles, higher wins
    """

    __tablename__ = "role"

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(MAX_DESCRIPTION_LENGTH), default="")
    public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name}, priority={self.priority})>"


class RoleGroup(Base, GeneratedIDMixin, TimestampMixin):
    """Named bundle of roles, assignable in one step."""

    __tablename__ = "role_group"

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(MAX_DESCRIPTION_LENGTH), default="")
    public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<RoleGroup(id={self.id}, name={self.name})>"


class Resource(Base, TimestampMixin):
    """Protected entity.

    Attributes:
        id: Canonical dotted path, e.g. ".api.v1.widgets"
        resource_type: Kind of resource, "endpoint" for registered routes
        data: Opaque payload (the raw route path for endpoints)
    """

    __tablename__ = "resource"

    id: Mapped[str] = mapped_column(String(MAX_RESOURCE_ID_LENGTH), primary_key=True)
    description: Mapped[str] = mapped_column(String(MAX_DESCRIPTION_LENGTH), default="")
    resource_type: Mapped[str] = mapped_column(String(MAX_RESOURCE_TYPE_LENGTH), default="")
    data: Mapped[str] = mapped_column(Text, default="")
    public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, type={self.resource_type})>"


class RolesInGroup(Base, TimestampMixin):
    """Junction table linking groups to roles."""

    __tablename__ = "roles_in_group"

    group_id: Mapped[str] = mapped_column(
        ForeignKey("role_group.id"),
        primary_key=True,
    )
    role_id: Mapped[str] = mapped_column(
        ForeignKey("role.id"),
        primary_key=True,
        index=True,
    )


class RoleResourcePermission(Base, TimestampMixin):
    """Access granted to a role over a resource.

    Attributes:
        access: Bitmask of granted access
        resource_pattern: Pattern the grant was created for; the resource
            ID itself for grants made against a single resource
    """

    __tablename__ = "role_resource_permissions"

    role_id: Mapped[str] = mapped_column(
        ForeignKey("role.id"),
        primary_key=True,
    )
    resource_id: Mapped[str] = mapped_column(
        ForeignKey("resource.id"),
        primary_key=True,
        index=True,
    )
    access: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_pattern: Mapped[str] = mapped_column(
        String(MAX_RESOURCE_PATTERN_LENGTH),
        default="",
    )


class UserRole(Base, TimestampMixin):
    """Direct user -> role binding, not scoped to an account."""

    __tablename__ = "user_role"

    role_id: Mapped[str] = mapped_column(
        ForeignKey("role.id"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    user_type: Mapped[str] = mapped_column(String(MAX_USER_TYPE_LENGTH), default="")


class UserGroup(Base, TimestampMixin):
    """Direct user -> group binding."""

    __tablename__ = "user_group"

    group_id: Mapped[str] = mapped_column(
        ForeignKey("role_group.id"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    user_type: Mapped[str] = mapped_column(String(MAX_USER_TYPE_LENGTH), default="")


class AccountUserRole(Base, TimestampMixin):
    """Role binding for a user inside an account."""

    __tablename__ = "account_user_role"

    account_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    role_id: Mapped[str] = mapped_column(
        ForeignKey("role.id"),
        primary_key=True,
    )


class AccountUserGroup(Base, TimestampMixin):
    """Group binding for a user inside an account."""

    __tablename__ = "account_user_group"

    account_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(MAX_USER_ID_LENGTH),
        primary_key=True,
        index=True,
    )
    group_id: Mapped[str] = mapped_column(
        ForeignKey("role_group.id"),
        primary_key=True,
    )
