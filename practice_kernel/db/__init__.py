"""Database layer - engine, base classes, and column types."""

from practice_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from practice_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from practice_kernel.db.types import Money, Rate, ShortCode, round_money

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Rate",
    "ShortCode",
    "round_money",
]
