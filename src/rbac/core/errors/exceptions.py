"""Domain exceptions for the access control engine.

"Denied" is never one of these: evaluation that completes with
insufficient access returns ``False``. These exceptions mean the engine
could not evaluate, or the caller passed something malformed.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from rbac.core.permissions.schemas import RoleRead


class AppException(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        status_code: HTTP status code for the response
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Raised when a lookup returns zero rows where one was expected.

    Example:
        raise NotFoundError("Role not found", resource="role", resource_id=role_id)
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ValidationError(AppException):
    """Raised when an identifier or argument is malformed.

    Example:
        raise ValidationError(
            "Invalid resource id",
            errors=[{"field": "resource_id", "message": "segment too short"}]
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class StoreError(AppException):
    """Raised when the relational store fails.

    ``details`` holds the operation name and the field values used, the
    driver exception is chained as ``__cause__``.
    """

    message = "Store operation failed"
    error_code = "store_error"
    status_code = 503

    def __init__(
        self,
        message: str | None = None,
        operation: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        super().__init__(message=message, details=details, **kwargs)


class CacheError(AppException):
    """Raised when the cache backend fails."""

    message = "Cache operation failed"
    error_code = "cache_error"
    status_code = 503


class RoleResolutionError(StoreError):
    """Raised when one or more role binding paths failed.

    Attributes:
        roles: The roles resolved from the paths that succeeded
        errors: The failure of each path, in resolution order
    """

    message = "Role resolution incomplete"
    error_code = "role_resolution_incomplete"

    def __init__(
        self,
        roles: Sequence["RoleRead"],
        errors: Sequence[AppException],
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.roles = list(roles)
        self.errors = list(errors)
        details = kwargs.pop("details", {})
        details["failed_paths"] = [e.details.get("path", e.error_code) for e in self.errors]
        super().__init__(message=message, details=details, **kwargs)


class UnauthorizedError(AppException):
    """Raised when a request carries no actor.

    Example:
        raise UnauthorizedError("No actor on request")
    """

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(AppException):
    """Raised by the HTTP guard when an actor lacks access.

    Example:
        raise ForbiddenError(
            "Insufficient permissions",
            details={"resource_id": ".api.v1.widgets", "access": 8}
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403
