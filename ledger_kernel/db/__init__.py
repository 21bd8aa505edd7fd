"""Database layer - engine, base classes and immutability listeners."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "create_engine_from_url",
    "create_session_factory",
    "create_tables",
    "session_scope",
]
