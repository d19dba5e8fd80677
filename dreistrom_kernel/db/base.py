"""
Module: dreistrom_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the exact-decimal column type,
    the type annotation map and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB. Lowest-level import target within the
    kernel. MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Decimals (quantities, VAT rates, allocation percentages) are stored as
      their canonical text through DecimalString, so every backend returns
      exactly the value that was written. Money is never a Decimal column:
      it is stored as BIGINT cents.
    - TrackedBase provides created_at and updated_at.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID type stored as String(36) for cross-database portability."""

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


class DecimalString(TypeDecorator):
    """
    Exact Decimal stored as text.

    SQLite has no exact numeric type and would round-trip through float.
    Storing the canonical string keeps ``Decimal("0.19")`` as
    ``Decimal("0.19")`` on every backend.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("DecimalString does not accept binary floats")
        try:
            return str(Decimal(str(value)))
        except InvalidOperation as e:
            raise ValueError(f"Not a decimal value: {value!r}") from e

    def process_result_value(self, value, dialect):
        if value is not None:
            return Decimal(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to DecimalString.
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (cents and sequence ordinals).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    ``updated_at`` is audit metadata, not financial data, so it may change
    even on rows whose financial fields are frozen (see db/immutability.py).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


UUID = PyUUID
