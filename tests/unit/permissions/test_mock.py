"""Unit tests for the MockRBAC test double."""

import pytest

from rbac.core.permissions.access import Access
from rbac.core.permissions.mock import CANNED_ROLES, MockRBAC
from rbac.core.permissions.protocol import RBAC
from rbac.core.permissions.service import RBACService


pytestmark = pytest.mark.unit


def test_implements_protocol():
    assert isinstance(MockRBAC(), RBAC)


def test_protocol_names_match_service():
    """Every protocol operation exists on both implementations."""
    operations = [name for name in dir(RBAC) if not name.startswith("_")]

    assert operations
    for name in operations:
        assert callable(getattr(RBACService, name)), name
        assert callable(getattr(MockRBAC, name)), name


async def test_predicates_follow_allow():
    role = CANNED_ROLES[0]
    resource = await MockRBAC().get_resource(".api.v1.x")

    assert await MockRBAC(allow=True).user_has_permission_for_resource("u1", "", resource, 1)
    assert not await MockRBAC(allow=False).user_has_permission_for_resource("u1", "", resource, 1)
    assert not await MockRBAC(allow=False).user_has_role("u1", role)


async def test_records_calls():
    rbac = MockRBAC()
    role = await rbac.new_role("admin", "Administrators", 10)
    resource = await rbac.new_resource(".API.v1.Widgets")

    await rbac.add_permission_resource_to_role(role, resource, Access.READ, Access.WRITE)

    assert [name for name, _ in rbac.calls] == [
        "new_role",
        "new_resource",
        "add_permission_resource_to_role",
    ]
    assert rbac.called("add_permission_resource_to_role") == [(role, resource, 3)]
    assert resource.id == ".api.v1.widgets"


async def test_canned_rows():
    rbac = MockRBAC()

    users = await rbac.get_all_account_users("acct1")
    roles = await rbac.get_all_roles_for_user("u1")

    assert {u.user_id for u in users} == {"user1", "user2"}
    assert all(u.account_id == "acct1" for u in users)
    assert [r.name for r in roles] == ["Admin", "User"]
