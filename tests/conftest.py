"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rbac.config import Settings
from rbac.core.cache import deserialize, serialize
from rbac.core.database import init_tables
from rbac.core.logging import configure_logging
from rbac.core.permissions import RBACService


TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeCache:
    """In-memory ``CacheBackend`` that serializes like ``RedisCache``.

    TTLs are recorded, never enforced; tests expire entries with ``clear``.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    @staticmethod
    def _key(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    async def get_or_set(
        self,
        namespace: str,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[Any]],
        cache_none: bool = False,
    ) -> Any:
        full_key = self._key(namespace, key)
        if full_key in self.values:
            return deserialize(self.values[full_key])
        result = await compute()
        if result is not None or cache_none:
            self.values[full_key] = serialize(result)
            self.ttls[full_key] = ttl_seconds
        return result

    def clear(self) -> None:
        self.values.clear()
        self.ttls.clear()


@pytest.fixture(scope="session", autouse=True)
def _logging() -> None:
    configure_logging(Settings(log_level="DEBUG"))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(environment="test")


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with every access control table created."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def rbac(db: AsyncSession, cache: FakeCache, test_settings: Settings) -> RBACService:
    return RBACService(db, cache, test_settings)
