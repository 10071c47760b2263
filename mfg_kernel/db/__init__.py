"""Database layer - engine, base classes, and immutability listeners."""

from mfg_kernel.db.base import Base, TrackedBase, UUIDString
from mfg_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
]
