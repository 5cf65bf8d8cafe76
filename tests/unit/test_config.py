"""Tests for engine settings."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from rbac.config import Settings


pytestmark = pytest.mark.unit


def test_defaults():
    settings = Settings()

    assert settings.role_name_cache_ttl == 600
    assert settings.user_roles_cache_ttl == 1800
    assert settings.cache_negative_role_lookups is False


def test_async_database_url():
    settings = Settings(database_url="postgresql://u:p@db:5432/rbac")

    assert settings.async_database_url == "postgresql+asyncpg://u:p@db:5432/rbac"


def test_env_prefix(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RBAC_USER_ROLES_CACHE_TTL", "60")
    monkeypatch.setenv("RBAC_CACHE_NEGATIVE_ROLE_LOOKUPS", "true")

    settings = Settings()

    assert settings.user_roles_cache_ttl == 60
    assert settings.cache_negative_role_lookups is True


def test_log_level_is_normalised():
    assert Settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "overrides",
    [
        {"log_level": "chatty"},
        {"role_name_cache_ttl": 0},
        {"user_roles_cache_ttl": -5},
    ],
)
def test_invalid_values(overrides: dict):
    with pytest.raises(PydanticValidationError):
        Settings(**overrides)


def test_environment_flags():
    assert Settings(environment="production").is_production is True
    assert Settings(environment="development").is_development is True
