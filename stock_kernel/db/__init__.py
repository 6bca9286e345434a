"""Database layer for the stock adjustment persistence adapter."""

from stock_kernel.db.base import Base, ExactDecimal, UTCDateTime, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "ExactDecimal",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
