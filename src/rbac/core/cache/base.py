"""Cache contract consumed by the engine."""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol


class CacheBackend(Protocol):
    """Anything offering a read-through ``get_or_set``.

    Returned values are what ``serialize``/``deserialize`` produce on a
    hit (pydantic models come back as dicts), or the computed value
    itself on a miss.
    """

    async def get_or_set(
        self,
        namespace: str,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[Any]],
        cache_none: bool = False,
    ) -> Any: ...
