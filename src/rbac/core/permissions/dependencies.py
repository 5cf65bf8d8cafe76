"""FastAPI dependencies for guarding routes.

Authentication is out of scope: something upstream (usually a
middleware) must put an ``Actor`` on ``request.state.actor``.

Usage:
    @router.get("/api/v1/reports", dependencies=[Depends(RequireAccess())])
    async def list_reports():
        ...
"""

from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rbac.core.cache import RedisCache
from rbac.core.database import get_db
from rbac.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from rbac.core.permissions.access import http_method_to_access_code
from rbac.core.permissions.endpoints import EndpointRegistry
from rbac.core.permissions.identifiers import url_to_resource_id
from rbac.core.permissions.protocol import RBAC
from rbac.core.permissions.service import RBACService


logger = structlog.get_logger()


@dataclass(frozen=True)
class Actor:
    """The caller a decision is made for."""

    user_id: str
    account_id: str = ""


DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_actor(request: Request) -> Actor:
    """Get the actor placed on the request by authentication.

    Raises:
        UnauthorizedError: If no actor is present
    """
    actor = getattr(request.state, "actor", None)
    if actor is None:
        raise UnauthorizedError("Authentication required", error_code="auth_required")
    return actor


async def get_rbac(db: DBSession) -> RBAC:
    """Build an ``RBACService`` over the request's session."""
    return RBACService(db, RedisCache())


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
RBACDep = Annotated[RBAC, Depends(get_rbac)]


def route_template(request: Request, registry: EndpointRegistry | None) -> str:
    """Path template of the matched route, e.g. "/api/v1/reports/{report_id}".

    Without a matched route the template is rebuilt from the request path
    using the variables in ``registry``. With no registry the request path
    is used as is.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    if registry is None:
        return request.url.path
    _, template = registry.raw_path(request.url.path, request.path_params)
    return template


class RequireAccess:
    """Dependency that allows the request only if the actor holds access.

    The resource is the route registered by ``RBACNextStep``. The access
    requested defaults to the one derived from the request's method.

    Raises:
        UnauthorizedError: If there is no actor
        ForbiddenError: If the route is not registered or access is denied
        RoleResolutionError: If the decision could not be made
    """

    def __init__(self, access: int | None = None, registry: EndpointRegistry | None = None) -> None:
        self.access = access
        self.registry = registry

    async def __call__(self, request: Request, actor: CurrentActor, rbac: RBACDep) -> Actor:
        resource_id = url_to_resource_id(route_template(request, self.registry))
        access = self.access or http_method_to_access_code(request.method)

        try:
            resource = await rbac.get_resource(resource_id)
        except NotFoundError as exc:
            logger.warning("unregistered_resource", resource_id=resource_id)
            raise ForbiddenError(
                "Resource is not registered for access control",
                error_code="resource_not_registered",
                details={"resource_id": resource_id},
            ) from exc

        allowed = await rbac.user_has_permission_for_resource(
            actor.user_id, actor.account_id, resource, access
        )
        if not allowed:
            logger.info(
                "access_denied",
                user_id=actor.user_id,
                account_id=actor.account_id,
                resource_id=resource_id,
                access=access,
            )
            raise ForbiddenError(
                "Missing required access",
                error_code="permission_denied",
                details={"resource_id": resource_id, "access": access},
            )
        return actor
