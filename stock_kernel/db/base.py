"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for the SQLAlchemy ORM models of the
    persistence adapter.  Provides the UUID primary key convention and the
    type annotation map for consistent column types.
Architecture position: Kernel > DB.  Lowest-level import target of the
    adapter; MUST NOT import from domain/, services or outer layers.

Invariants enforced:
    - UUID primary keys stored as String(36) for portability.
    - Decimal maps to ExactDecimal(38, 9).  NEVER float for quantities or money.
    - datetime maps to UTCDateTime; values always come back timezone-aware.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Converts Python UUID objects to their 36-character string form on the
    way in and back to UUID on the way out.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime.

    SQLite has no timezone storage and hands back naive values; those are
    read as UTC.  Aware values are normalised to UTC on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ExactDecimal(TypeDecorator):
    """
    Decimal column that round-trips without float conversion.

    Uses NUMERIC(precision, scale) where the backend has a real decimal
    type.  On SQLite, which would coerce NUMERIC through float, the value
    is stored as its string form instead.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 38, scale: int = 9):
        super().__init__(precision=precision, scale=scale, asdecimal=True)
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(Numeric(self.precision, self.scale, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


class Base(DeclarativeBase):
    """
    Declarative base for all adapter models.

    Guarantees:
        - id is a uuid4-generated UUID stored as String(36).
        - Decimal maps to ExactDecimal(38, 9).
        - datetime maps to UTCDateTime.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(38, 9),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


UUID = PyUUID
