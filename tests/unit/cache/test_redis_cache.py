"""Tests for the Redis cache-aside backend."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from rbac.core.cache import RedisCache, deserialize, serialize
from rbac.core.errors import CacheError
from rbac.core.permissions.schemas import RoleRead


pytestmark = pytest.mark.unit


def _patched_client(mock_client: MagicMock):
    patcher = patch("rbac.core.cache.redis.redis_client")
    mock_redis = patcher.start()
    mock_redis.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_redis.return_value.__aexit__ = AsyncMock(return_value=None)
    return patcher


class TestRedisCache:
    """Tests for RedisCache class."""

    def test_key_includes_prefix_and_namespace(self):
        cache = RedisCache(prefix="svc:")
        assert cache._key("role", "role_name_admin") == "svc:role:role_name_admin"

    async def test_hit_returns_deserialized_value(self):
        role = RoleRead(id="r1", name="admin", priority=10)
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=serialize(role))
        mock_client.setex = AsyncMock()
        compute = AsyncMock()

        patcher = _patched_client(mock_client)
        try:
            value = await RedisCache(prefix="").get_or_set("role", "role_name_admin", 600, compute)
        finally:
            patcher.stop()

        assert RoleRead.model_validate(value) == role
        compute.assert_not_awaited()
        mock_client.setex.assert_not_awaited()

    async def test_miss_computes_and_stores_with_ttl(self):
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=None)
        mock_client.setex = AsyncMock()
        compute = AsyncMock(return_value=["a", "b"])

        patcher = _patched_client(mock_client)
        try:
            value = await RedisCache(prefix="").get_or_set("role", "u1--role", 1800, compute)
        finally:
            patcher.stop()

        assert value == ["a", "b"]
        compute.assert_awaited_once()
        mock_client.setex.assert_awaited_once_with("role:u1--role", 1800, serialize(["a", "b"]))

    async def test_none_is_not_stored_by_default(self):
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=None)
        mock_client.setex = AsyncMock()

        patcher = _patched_client(mock_client)
        try:
            value = await RedisCache(prefix="").get_or_set(
                "role", "role_name_ghost", 600, AsyncMock(return_value=None)
            )
        finally:
            patcher.stop()

        assert value is None
        mock_client.setex.assert_not_awaited()

    async def test_none_is_stored_when_asked(self):
        mock_client = MagicMock()
        mock_client.get = AsyncMock(return_value=None)
        mock_client.setex = AsyncMock()

        patcher = _patched_client(mock_client)
        try:
            await RedisCache(prefix="").get_or_set(
                "role", "role_name_ghost", 600, AsyncMock(return_value=None), cache_none=True
            )
        finally:
            patcher.stop()

        mock_client.setex.assert_awaited_once_with("role:role_name_ghost", 600, "null")

    async def test_redis_failure_becomes_cache_error(self):
        mock_client = MagicMock()
        mock_client.get = AsyncMock(side_effect=RedisConnectionError("down"))

        patcher = _patched_client(mock_client)
        try:
            with pytest.raises(CacheError) as exc_info:
                await RedisCache(prefix="").get("role", "k")
        finally:
            patcher.stop()

        assert exc_info.value.details == {"namespace": "role", "key": "k"}
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    async def test_delete(self):
        mock_client = MagicMock()
        mock_client.delete = AsyncMock(return_value=1)

        patcher = _patched_client(mock_client)
        try:
            deleted = await RedisCache(prefix="p:").delete("role", "k")
        finally:
            patcher.stop()

        assert deleted is True
        mock_client.delete.assert_awaited_once_with("p:role:k")


class TestSerializers:
    def test_models_come_back_as_dicts(self):
        roles = [RoleRead(id="r1", name="admin", priority=3)]

        restored = deserialize(serialize(roles))

        assert restored[0]["id"] == "r1"
        assert [RoleRead.model_validate(r) for r in restored] == roles

    def test_single_model_and_none(self):
        role = RoleRead(id="r1", name="admin", priority=3)

        assert RoleRead.model_validate(deserialize(serialize(role))) == role
        assert deserialize(serialize(None)) is None

    def test_unsupported_values_are_rejected(self):
        with pytest.raises(TypeError):
            serialize({"a"})
