"""
Module: garment_kernel.db.base
Responsibility: Declarative base for every ORM model: UUID primary keys and
    a type annotation map that keeps quantities and costs in Numeric(38, 9).
Architecture position: Kernel > DB.  Lowest-level import target of the
    persistence layer; imports nothing from models/ or services/.

Invariants enforced:
    - Every table has a uuid4 primary key stored as a 36-char string so the
      schema runs unchanged on PostgreSQL and SQLite.
    - ``Decimal`` annotations map to Numeric(38, 9).  Quantities and costs
      are never stored as float.
    - ``datetime`` annotations map to timezone-aware DateTime.  Backends that
      drop the offset (SQLite) are normalized back to UTC by ``as_utc``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36); converted on bind and on load."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return UUID(value)
        return None


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Declarative base for all garment ERP models."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )
