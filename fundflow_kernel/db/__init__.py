"""Database layer - engine, base classes and column types."""

from fundflow_kernel.db.base import UUID, Base, TimestampedBase, UTCDateTime, UUIDString
from fundflow_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
