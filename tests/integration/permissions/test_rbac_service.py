"""Integration tests for RBACService.

These tests verify:
- Idempotent creation
- Add, remove and replace bindings
- Lookups and their NotFound cases
- Account scoped queries and role predicates
- Cache-aside behaviour of role lookups
"""

import pytest
from sqlalchemy import func, select

from rbac.config import Settings
from rbac.core.errors import NotFoundError, ValidationError
from rbac.core.permissions import Access, RBACService
from rbac.core.permissions.models import Role
from rbac.core.permissions.role_cache import role_name_key, user_roles_key
from rbac.core.permissions.schemas import RoleRead


pytestmark = pytest.mark.integration


class TestCreation:
    async def test_new_role_is_idempotent(self, rbac: RBACService, db):
        first = await rbac.new_role("admin", "Administrators", 10)
        second = await rbac.new_role("admin", "Other description", 3)

        count = await db.scalar(select(func.count()).select_from(Role).where(Role.name == "admin"))
        assert first.id == second.id
        assert second.priority == 10
        assert count == 1

    async def test_new_group_is_idempotent(self, rbac: RBACService):
        first = await rbac.new_group("team")
        second = await rbac.new_group("team")

        assert first.id == second.id
        assert len(await rbac.get_all_groups()) == 1

    async def test_new_resource_lowercases_and_validates(self, rbac: RBACService):
        resource = await rbac.new_resource(".API.v1.Widgets", "Widgets", "endpoint", "/api", True)
        again = await rbac.new_resource(".api.v1.widgets")

        assert resource.id == ".api.v1.widgets"
        assert resource.public is True
        assert again.description == "Widgets"

        with pytest.raises(ValidationError):
            await rbac.new_resource("a.b")

    async def test_account_bindings_are_idempotent(self, rbac: RBACService):
        role = await rbac.new_role("member")
        group = await rbac.new_group("staff")

        await rbac.new_account_user_role("acct1", role.id, "u1")
        await rbac.new_account_user_role("acct1", role.id, "u1")
        await rbac.new_account_user_group("acct1", group.id, "u1")
        await rbac.new_account_user_group("acct1", group.id, "u1")

        assert len(await rbac.get_all_account_users("acct1")) == 1
        assert len(await rbac.get_all_account_groups("acct1")) == 1

        await rbac.delete_account_user_role("acct1", role.id, "u1")
        await rbac.delete_account_user_group("acct1", group.id, "u1")

        assert await rbac.get_all_account_users("acct1") == []
        assert await rbac.get_account_user_group("acct1", "u1") == []


class TestBindings:
    async def test_invalid_role_or_group(self, rbac: RBACService):
        with pytest.raises(ValidationError, match="invalid role"):
            await rbac.add_role_to_user(None, "u1")  # type: ignore[arg-type]
        with pytest.raises(ValidationError, match="invalid role"):
            await rbac.add_role_to_user(RoleRead(id="", name="x"), "u1")
        with pytest.raises(ValidationError, match="invalid group"):
            await rbac.add_group_to_user(None, "u1")  # type: ignore[arg-type]

    async def test_add_and_remove_role(self, rbac: RBACService):
        role = await rbac.new_role("viewer")
        await rbac.add_role_to_user(role, "u1")
        await rbac.add_role_to_user(role, "u1")

        assert [r.id for r in await rbac.get_all_roles_for_user("u1")] == [role.id]

        await rbac.remove_role_from_user(role, "u1")

        assert await rbac.get_all_roles_for_user("u1") == []

    async def test_replace_role_in_user(self, rbac: RBACService):
        viewer = await rbac.new_role("viewer", "", 1)
        editor = await rbac.new_role("editor", "", 2)
        admin = await rbac.new_role("admin", "", 3)
        await rbac.add_role_to_user(viewer, "u1")
        await rbac.add_role_to_user(editor, "u1")

        await rbac.replace_role_in_user(admin, "u1")

        assert [r.name for r in await rbac.get_all_roles_for_user("u1")] == ["admin"]

    async def test_group_bindings(self, rbac: RBACService):
        team = await rbac.new_group("team")
        ops = await rbac.new_group("ops")
        await rbac.add_group_to_user(team, "u1", "user")
        await rbac.add_group_to_user(team, "u1", "user")

        assert [g.name for g in await rbac.get_all_groups_for_user("u1")] == ["team"]

        await rbac.replace_group_in_user(ops, "u1", "service")

        assert [g.name for g in await rbac.get_all_groups_for_user("u1")] == ["ops"]

        await rbac.remove_group_from_user(ops, "u1")

        assert await rbac.get_all_groups_for_user("u1") == []

    async def test_group_membership(self, rbac: RBACService):
        team = await rbac.new_group("team")
        a = await rbac.new_role("a", "", 1)
        b = await rbac.new_role("b", "", 2)
        c = await rbac.new_role("c", "", 3)

        await rbac.add_role_to_group(team, a, b, a)
        await rbac.add_role_to_group(team, b)

        assert {r.name for r in await rbac.get_roles_in_group(team)} == {"a", "b"}

        await rbac.replace_role_in_group(team, b, c)

        assert {r.name for r in await rbac.get_roles_in_group(team)} == {"b", "c"}

        await rbac.remove_role_from_group(team, c)

        assert [r.name for r in await rbac.get_roles_in_group(team)] == ["b"]

    async def test_user_group_with_type(self, rbac: RBACService):
        team = await rbac.new_group("team")
        await rbac.add_group_to_user(team, "u1", "user")
        await rbac.add_group_to_user(team, "svc1", "service")

        rows = await rbac.get_user_group_with_type("u1", "service")

        assert [(r.user_id, r.group_id) for r in rows] == [("svc1", team.id)]


class TestPermissions:
    async def test_add_is_idempotent_and_replace_leaves_one_row(self, rbac: RBACService):
        role = await rbac.new_role("editor")
        widgets = await rbac.new_resource(".api.v1.widgets")

        await rbac.add_permission_resource_to_role(role, widgets, Access.READ)
        await rbac.add_permission_resource_to_role(role, widgets, Access.READ)
        await rbac.add_permission_resource_to_role(role, widgets, Access.WRITE)

        rows = await rbac.get_role_resource_permissions(role)
        assert sorted(r.access for r in rows) == [Access.READ, Access.WRITE]
        assert all(r.resource_pattern == widgets.id for r in rows)

        await rbac.replace_permissions_in_role(role, widgets, Access.UPDATE, Access.DELETE)

        rows = await rbac.get_role_resource_permissions(role)
        assert [r.access for r in rows] == [Access.UPDATE | Access.DELETE]

        await rbac.remove_permissions_from_role(role, widgets)

        assert await rbac.get_role_resource_permissions(role) == []

    async def test_resources_for_roles_and_users(self, rbac: RBACService):
        role = await rbac.new_role("viewer")
        widgets = await rbac.new_resource(".api.v1.widgets")
        await rbac.new_resource(".api.v1.gadgets")
        await rbac.add_permission_resource_to_role(role, widgets, Access.READ)
        await rbac.add_role_to_user(role, "u1")

        assert [r.id for r in await rbac.get_resources_for_role(role)] == [widgets.id]
        assert [r.id for r in await rbac.get_all_resources_for_user("u1")] == [widgets.id]
        assert await rbac.get_all_resources_for_user("u2") == []


class TestLookups:
    async def test_not_found(self, rbac: RBACService):
        with pytest.raises(NotFoundError):
            await rbac.get_role("missing")
        with pytest.raises(NotFoundError):
            await rbac.get_group("missing")
        with pytest.raises(NotFoundError):
            await rbac.get_group_with_name("missing")
        with pytest.raises(NotFoundError):
            await rbac.get_resource(".api.missing")
        with pytest.raises(NotFoundError):
            await rbac.get_role_with_name("missing")
        with pytest.raises(NotFoundError):
            await rbac.get_accounts_for_user("u1")

    async def test_found(self, rbac: RBACService):
        role = await rbac.new_role("admin")
        group = await rbac.new_group("team")
        resource = await rbac.new_resource(".api.v1.widgets")

        assert (await rbac.get_role(role.id)).name == "admin"
        assert (await rbac.get_role_with_name("admin")).id == role.id
        assert (await rbac.get_group(group.id)).name == "team"
        assert (await rbac.get_group_with_name("team")).id == group.id
        assert (await rbac.get_resource(".api.v1.widgets")).id == resource.id

    async def test_all_resources_ordered_by_id(self, rbac: RBACService):
        await rbac.new_resource(".api.v1.zeta")
        await rbac.new_resource(".api.v1.alpha")

        assert [r.id for r in await rbac.get_all_resources()] == [".api.v1.alpha", ".api.v1.zeta"]

    async def test_resources_with_pattern(self, rbac: RBACService):
        await rbac.new_resource(".api.v1.widgets")
        await rbac.new_resource(".api.v1.widgets.items")
        await rbac.new_resource(".api.v2.gadgets")

        matched = await rbac.get_resources_with_pattern(r"^\.api\.v1\.")

        assert [r.id for r in matched] == [".api.v1.widgets", ".api.v1.widgets.items"]


class TestAccountScope:
    async def test_account_queries(self, rbac: RBACService):
        member = await rbac.new_role("member", "", 1)
        auditor = await rbac.new_role("auditor", "", 4)
        auditors = await rbac.new_group("auditors")
        await rbac.add_role_to_group(auditors, auditor)
        await rbac.new_account_user_role("acct1", member.id, "u1")
        await rbac.new_account_user_role("acct2", member.id, "u1")
        await rbac.new_account_user_group("acct1", auditors.id, "u2")

        accounts = await rbac.get_accounts_for_user("u1")
        assert sorted(a.account_id for a in accounts) == ["acct1", "acct2"]

        assert [r.name for r in await rbac.get_account_user_roles("acct1", "u2")] == ["auditor"]
        assert [r.name for r in await rbac.get_all_account_user_roles("acct1")] == [
            "auditor",
            "member",
        ]

    async def test_account_role_predicates(self, rbac: RBACService):
        member = await rbac.new_role("member")
        auditor = await rbac.new_role("auditor")
        auditors = await rbac.new_group("auditors")
        await rbac.add_role_to_group(auditors, auditor)
        await rbac.new_account_user_role("acct1", member.id, "u1")
        await rbac.new_account_user_group("acct1", auditors.id, "u1")

        assert await rbac.account_user_has_role("acct1", "u1", member)
        assert await rbac.account_user_has_role("acct1", "u1", auditor)
        assert not await rbac.account_user_has_role("acct2", "u1", member)
        assert await rbac.account_user_has_all_roles("acct1", "u1", member, auditor)
        assert await rbac.account_user_has_any_roles("acct1", "u1", member)
        assert not await rbac.account_user_has_all_roles("acct1", "u1")
        assert not await rbac.account_user_has_any_roles("acct1", "u1")


class TestRolePredicates:
    async def test_user_has_role_paths(self, rbac: RBACService):
        direct = await rbac.new_role("direct")
        grouped = await rbac.new_role("grouped")
        scoped = await rbac.new_role("scoped")
        absent = await rbac.new_role("absent")
        team = await rbac.new_group("team")
        await rbac.add_role_to_group(team, grouped)
        await rbac.add_role_to_user(direct, "u1")
        await rbac.add_group_to_user(team, "u1")
        await rbac.new_account_user_role("acct1", scoped.id, "u1")

        assert await rbac.user_has_role("u1", direct)
        assert await rbac.user_has_role("u1", grouped)
        assert await rbac.user_has_role("u1", scoped)
        assert not await rbac.user_has_role("u1", absent)

    async def test_user_has_all_roles_per_account(self, rbac: RBACService):
        base = await rbac.new_role("base")
        one = await rbac.new_role("one")
        two = await rbac.new_role("two")
        await rbac.add_role_to_user(base, "u1")
        await rbac.new_account_user_role("acct1", one.id, "u1")
        await rbac.new_account_user_role("acct2", two.id, "u1")

        assert await rbac.user_has_all_roles("u1", base, one)
        assert await rbac.user_has_all_roles("u1", base, two)
        assert not await rbac.user_has_all_roles("u1", one, two)
        assert not await rbac.user_has_all_roles("u1")

    async def test_user_has_any_roles_matches_name_case_insensitively(
        self, rbac: RBACService
    ):
        admin = await rbac.new_role("Admin")
        await rbac.add_role_to_user(admin, "u1")

        by_name = RoleRead(id="other-id", name="admin")

        assert await rbac.user_has_any_roles("u1", "", by_name)
        assert not await rbac.user_has_any_roles("u1", "", RoleRead(id="x", name="viewer"))
        assert not await rbac.user_has_any_roles("u1", "")

    async def test_user_has_any_roles_checks_accounts(self, rbac: RBACService):
        scoped = await rbac.new_role("scoped")
        await rbac.new_account_user_role("acct9", scoped.id, "u1")

        assert await rbac.user_has_any_roles("u1", "", scoped)


class TestRoleCaching:
    async def test_role_name_lookup_is_cached(self, rbac: RBACService, cache):
        role = await rbac.new_role("admin", "", 10)

        await rbac.get_role_with_name("admin")

        assert f"role:{role_name_key('admin')}" in cache.values
        assert cache.ttls[f"role:{role_name_key('admin')}"] == 600

    async def test_missing_role_name_is_not_cached_by_default(self, rbac: RBACService, cache):
        with pytest.raises(NotFoundError):
            await rbac.get_role_with_name("ghost")

        assert cache.values == {}

        await rbac.new_role("ghost")

        assert (await rbac.get_role_with_name("ghost")).name == "ghost"

    async def test_negative_lookup_cached_when_enabled(self, db, cache):
        rbac = RBACService(db, cache, Settings(cache_negative_role_lookups=True))

        with pytest.raises(NotFoundError):
            await rbac.get_role_with_name("ghost")

        created = await rbac.new_role("ghost")

        # The stored miss outlives the new row until its TTL runs out.
        with pytest.raises(NotFoundError):
            await rbac.get_role_with_name("ghost")
        assert (await rbac.new_role("ghost")).id == created.id

    async def test_stale_user_roles_are_rechecked(self, rbac: RBACService, cache):
        admin = await rbac.new_role("admin")

        assert not await rbac.user_has_any_roles("u1", "", admin)
        key = f"role:{user_roles_key('u1', '')}"
        assert cache.values[key] == "[]"
        assert cache.ttls[key] == 1800

        await rbac.add_role_to_user(admin, "u1")

        assert await rbac.user_has_any_roles("u1", "", admin)
        # Nothing invalidates the entry; only its TTL does.
        assert cache.values[key] == "[]"

    async def test_removed_role_can_still_match_from_cache(self, rbac: RBACService, cache):
        admin = await rbac.new_role("admin")
        await rbac.add_role_to_user(admin, "u1")
        assert await rbac.user_has_any_roles("u1", "", admin)

        await rbac.remove_role_from_user(admin, "u1")

        assert await rbac.user_has_any_roles("u1", "", admin)
        cache.clear()
        assert not await rbac.user_has_any_roles("u1", "", admin)
