"""Error handling module with RFC 7807 Problem Details."""

from rbac.core.errors.exceptions import (
    AppException,
    CacheError,
    ForbiddenError,
    NotFoundError,
    RoleResolutionError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from rbac.core.errors.handlers import ProblemDetail, register_exception_handlers


__all__ = [
    "AppException",
    "CacheError",
    "ForbiddenError",
    "NotFoundError",
    "ProblemDetail",
    "RoleResolutionError",
    "StoreError",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
