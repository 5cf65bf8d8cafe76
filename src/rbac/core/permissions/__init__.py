"""Access control: bitmask algebra, role resolution and permission checks."""

from rbac.core.permissions.access import (
    Access,
    combine_access,
    has_access,
    http_method_to_access_code,
)
from rbac.core.permissions.checker import PermissionChecker
from rbac.core.permissions.dependencies import (
    Actor,
    CurrentActor,
    RBACDep,
    RequireAccess,
    get_current_actor,
    get_rbac,
)
from rbac.core.permissions.endpoints import (
    Endpoint,
    EndpointRegistry,
    RBACNextStep,
    RoleAccess,
)
from rbac.core.permissions.identifiers import (
    is_valid_resource_id,
    join_resource_id,
    url_to_resource_id,
    validate_resource_id,
)
from rbac.core.permissions.mock import MockRBAC
from rbac.core.permissions.protocol import RBAC
from rbac.core.permissions.resolver import RoleResolution, RoleResolver
from rbac.core.permissions.service import RBACService


__all__ = [
    "RBAC",
    "Access",
    "Actor",
    "CurrentActor",
    "Endpoint",
    "EndpointRegistry",
    "MockRBAC",
    "PermissionChecker",
    "RBACDep",
    "RBACNextStep",
    "RBACService",
    "RequireAccess",
    "RoleAccess",
    "RoleResolution",
    "RoleResolver",
    "combine_access",
    "get_current_actor",
    "get_rbac",
    "has_access",
    "http_method_to_access_code",
    "is_valid_resource_id",
    "join_resource_id",
    "url_to_resource_id",
    "validate_resource_id",
]
