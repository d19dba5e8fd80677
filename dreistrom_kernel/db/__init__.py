"""Database layer - engine, base classes and immutability listeners."""

from dreistrom_kernel.db.base import UUID, Base, DecimalString, TrackedBase, UUIDString
from dreistrom_kernel.db.engine import (
    create_engine_for_url,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "DecimalString",
    "TrackedBase",
    "UUID",
    "UUIDString",
    "create_engine_for_url",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
