"""Protected endpoint registration.

An ``Endpoint`` describes one route and the roles allowed on it. Adding
it to a router registers one FastAPI route per HTTP method and then runs
each next step, such as ``RBACNextStep``, which stores the route as a
resource and grants the roles access.

Usage:
    registry = EndpointRegistry()
    endpoint = (
        Endpoint(name="list_reports", handler=list_reports)
        .set_path("/api/v1/reports/{report_id}", registry)
        .set_methods("GET", "DELETE")
        .add_roles(0, admin)
        .add_roles(ACCESS_READ, viewer)
    )
    await endpoint.add_to_router(router, RBACNextStep(rbac))
"""

import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import APIRouter

from rbac.core.constants import ENDPOINT_RESOURCE_TYPE
from rbac.core.errors import ValidationError
from rbac.core.permissions.access import combine_access, http_method_to_access_code
from rbac.core.permissions.identifiers import url_to_resource_id
from rbac.core.permissions.protocol import RBAC
from rbac.core.permissions.schemas import RoleRead


logger = structlog.get_logger()

_PATH_VAR = re.compile(r"{([^}]+)}")

NextStep = Callable[["Endpoint"], Awaitable[None]]


class EndpointRegistry:
    """Path variable names seen across a router's endpoints."""

    def __init__(self) -> None:
        self.var_ids: dict[str, str] = {}

    def register_path(self, path: str) -> None:
        for name in _PATH_VAR.findall(path):
            self.var_ids[name] = name

    def raw_path(
        self,
        path: str,
        path_params: Mapping[str, str],
        *possible_vars: str,
    ) -> tuple[dict[str, str], str]:
        """Rewrite a concrete request path back into its template.

        Every occurrence of a path parameter's value is replaced by
        ``{name}``.

        Args:
            path: The request path, e.g. "/api/v1/resource/123"
            path_params: Matched path parameters, e.g. ``request.path_params``
            possible_vars: Names to look for; all registered names if empty

        Returns:
            Tuple of (found parameters, template path)
        """
        names = possible_vars or tuple(self.var_ids)
        found: dict[str, str] = {}
        for name in names:
            value = str(path_params.get(name) or "")
            if value:
                found[name] = value
                path = path.replace(value, f"{{{name}}}")
        return found, path


@dataclass
class RoleAccess:
    role: RoleRead
    access: int = 0


@dataclass
class Endpoint:
    """Route definition with its role access map.

    A role access of 0 means "derive the access from the HTTP methods".
    """

    name: str = ""
    path: str = ""
    methods: list[str] = field(default_factory=list)
    role_access: dict[str, RoleAccess] = field(default_factory=dict)
    query_params: list[str] = field(default_factory=list)
    handler: Callable[..., Any] | None = None

    def set_path(self, path: str, registry: EndpointRegistry) -> "Endpoint":
        """Set the route path and record its variables in ``registry``."""
        self.path = path
        registry.register_path(path)
        return self

    def set_methods(self, *methods: str) -> "Endpoint":
        self.methods = list(methods)
        return self

    def set_handler(self, handler: Callable[..., Any]) -> "Endpoint":
        self.handler = handler
        return self

    def add_roles(self, access: int, *roles: RoleRead) -> "Endpoint":
        """Grant ``access`` to each role, OR-ing with access already given."""
        for role in roles:
            current = self.role_access.get(role.id)
            if current is None:
                self.role_access[role.id] = RoleAccess(role=role, access=access)
            else:
                current.access = combine_access(current.access, access)
        return self

    def add_query_params(self, *names: str) -> "Endpoint":
        self.query_params.extend(names)
        return self

    def validate(self) -> None:
        """Check the required fields are set.

        Raises:
            ValidationError: Listing every missing field
        """
        required = {
            "path": self.path,
            "role_access": self.role_access,
            "methods": self.methods,
            "handler": self.handler,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValidationError(
                f"missing required field(s): {','.join(missing)}",
                errors=[{"field": name, "message": "required"} for name in missing],
            )

    async def add_to_router(self, router: APIRouter, *next_steps: NextStep) -> None:
        """Register one route per method, then run each next step in order."""
        if self.handler is None:
            raise ValidationError(
                f"endpoint does not have a handler ({self.path})",
                errors=[{"field": "handler", "message": "required"}],
            )

        for method in self.methods:
            router.add_api_route(
                self.path,
                self.handler,
                methods=[method.upper()],
                name=f"{self.name or self.handler.__name__}_{method.lower()}",
            )

        for step in next_steps:
            try:
                await step(self)
            except Exception:
                logger.exception("endpoint_next_step_failed", path=self.path, name=self.name)
                raise


class RBACNextStep:
    """Registration hook that stores an endpoint as a protected resource.

    Meant to run once per route at startup, not per request.
    """

    def __init__(self, rbac: RBAC) -> None:
        self.rbac = rbac

    async def __call__(self, endpoint: Endpoint) -> None:
        resource = await self.rbac.new_resource(
            url_to_resource_id(endpoint.path),
            "",
            ENDPOINT_RESOURCE_TYPE,
            endpoint.path,
            True,
        )
        for grant in endpoint.role_access.values():
            access = grant.access or http_method_to_access_code(*endpoint.methods)
            await self.rbac.add_permission_resource_to_role(grant.role, resource, access)

        logger.info(
            "endpoint_registered",
            path=endpoint.path,
            resource_id=resource.id,
            role_ids=list(endpoint.role_access),
        )
