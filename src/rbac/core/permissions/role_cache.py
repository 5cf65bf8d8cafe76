"""Cache-aside wrappers for the expensive role lookups.

Two lookups go through the cache:

- role by name, key ``role:role_name_<name>``, 10 minutes
- a user's effective roles, key ``role:<user_id>-<account_id>-role``, 30 minutes

Invalidation is TTL only. Creating, binding or removing roles does not
touch these keys, so a cached effective-role set can miss a binding made
after it was stored (or keep one that was removed) until it expires.
``RBACService.user_has_any_roles`` re-reads the store when a cached set
does not match; nothing else compensates for staleness.
"""

from collections.abc import Awaitable, Callable

import structlog

from rbac.config import Settings, settings as default_settings
from rbac.core.cache import CacheBackend
from rbac.core.constants import ROLE_CACHE_NAMESPACE
from rbac.core.permissions.schemas import RoleRead


logger = structlog.get_logger()


def role_name_key(name: str) -> str:
    return f"role_name_{name}"


def user_roles_key(user_id: str, account_id: str) -> str:
    return f"{user_id}-{account_id}-role"


class RoleCache:
    """Read-through role lookups over a ``CacheBackend``."""

    def __init__(self, cache: CacheBackend, settings: Settings | None = None) -> None:
        self.cache = cache
        self.settings = settings or default_settings

    async def role_with_name(
        self,
        name: str,
        loader: Callable[[], Awaitable[RoleRead | None]],
    ) -> tuple[RoleRead | None, bool]:
        """Look up a role by name.

        A ``None`` from the loader is only stored when
        ``cache_negative_role_lookups`` is enabled.

        Returns:
            Tuple of (role or None, whether the loader ran)
        """
        loaded = False

        async def load() -> RoleRead | None:
            nonlocal loaded
            loaded = True
            return await loader()

        value = await self.cache.get_or_set(
            ROLE_CACHE_NAMESPACE,
            role_name_key(name),
            self.settings.role_name_cache_ttl,
            load,
            cache_none=self.settings.cache_negative_role_lookups,
        )
        role = RoleRead.model_validate(value) if value is not None else None
        return role, loaded

    async def user_roles(
        self,
        user_id: str,
        account_id: str,
        loader: Callable[[], Awaitable[list[RoleRead]]],
    ) -> tuple[list[RoleRead], bool]:
        """Look up a user's effective roles.

        A loader exception propagates and nothing is stored, so incomplete
        resolutions never reach the cache.

        Returns:
            Tuple of (roles, whether the loader ran)
        """
        loaded = False

        async def load() -> list[RoleRead]:
            nonlocal loaded
            loaded = True
            return await loader()

        value = await self.cache.get_or_set(
            ROLE_CACHE_NAMESPACE,
            user_roles_key(user_id, account_id),
            self.settings.user_roles_cache_ttl,
            load,
        )
        roles = [RoleRead.model_validate(r) for r in value or []]
        if not loaded:
            logger.debug("user_roles_cache_hit", user_id=user_id, account_id=account_id)
        return roles, loaded
