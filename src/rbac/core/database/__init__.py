"""Database layer - session management, base models, and mixins."""

from rbac.core.database.base import Base, GeneratedIDMixin, TimestampMixin, generate_id
from rbac.core.database.session import get_db, get_engine, get_session_factory, init_tables


__all__ = [
    "Base",
    "GeneratedIDMixin",
    "TimestampMixin",
    "generate_id",
    "get_db",
    "get_engine",
    "get_session_factory",
    "init_tables",
]
