"""Role and account scoped access control engine."""

from rbac.core.cache import RedisCache
from rbac.core.permissions import (
    RBAC,
    Access,
    Endpoint,
    MockRBAC,
    RBACNextStep,
    RBACService,
    RequireAccess,
)


__version__ = "0.1.0"

__all__ = [
    "RBAC",
    "Access",
    "Endpoint",
    "MockRBAC",
    "RBACNextStep",
    "RBACService",
    "RedisCache",
    "RequireAccess",
]
