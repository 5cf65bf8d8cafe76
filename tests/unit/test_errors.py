"""Tests for engine exceptions and the problem-detail handler."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from rbac.core.errors import (
    NotFoundError,
    RoleResolutionError,
    StoreError,
    ValidationError,
    register_exception_handlers,
)
from rbac.core.permissions.schemas import RoleRead


pytestmark = pytest.mark.unit


class TestExceptions:
    def test_not_found_details(self):
        exc = NotFoundError("no role", resource="role", resource_id="r1")

        assert exc.status_code == 404
        assert exc.details == {"resource": "role", "resource_id": "r1"}

    def test_store_error_operation(self):
        exc = StoreError("get_role failed", operation="get_role", details={"role_id": "r1"})

        assert exc.status_code == 503
        assert exc.details == {"role_id": "r1", "operation": "get_role"}

    def test_role_resolution_error_collects_paths(self):
        direct = StoreError("a", operation="x", details={"path": "direct"})
        group = StoreError("b", operation="y", details={"path": "account:acct1:group"})
        role = RoleRead(id="r1", name="viewer")

        exc = RoleResolutionError([role], [direct, group])

        assert isinstance(exc, StoreError)
        assert exc.roles == [role]
        assert exc.details["failed_paths"] == ["direct", "account:acct1:group"]


class TestProblemDetails:
    @pytest.fixture
    async def client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/invalid")
        async def invalid():
            raise ValidationError(
                "invalid resource id format(a)",
                errors=[{"field": "resource_id", "message": "too short"}],
            )

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client

    async def test_validation_error_response(self, client: AsyncClient):
        response = await client.get("/invalid")

        assert response.status_code == 422
        body = response.json()
        assert body["type"].endswith("/errors/validation_error")
        assert body["title"] == "Validation Error"
        assert body["detail"] == "invalid resource id format(a)"
        assert body["instance"] == "/invalid"
        assert body["errors"] == [{"field": "resource_id", "message": "too short"}]
