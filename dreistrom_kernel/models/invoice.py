"""
Module: dreistrom_kernel.models.invoice
Responsibility: ORM persistence for outgoing invoices and their line items.
Architecture position: Kernel > Models. May import from db/ only.

Invariants enforced:
    - (stream, fiscal_year, sequence_ordinal) is unique at database level, so
      a duplicate number cannot be committed even if the allocator were
      bypassed. Drafts carry NULL ordinals and are not constrained.
    - number is unique.
    - Number, ordinal and (after issuance) every financial field are frozen
      by the ORM listeners in db/immutability.py.
    - Stored totals equal the sum of the stored per-line values; services
      only write totals produced by the line-item calculator.
    - Money is stored as BIGINT cents, never as a decimal column.

Audit relevance:
    issued_at and status_changed_at are stamped from the injected clock on
    every lifecycle transition.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreistrom_kernel.db.base import TrackedBase
from dreistrom_kernel.models.client import Client


class Invoice(TrackedBase):
    """An outgoing invoice of the freelance or trade stream."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "stream", "fiscal_year", "sequence_ordinal",
            name="uq_invoice_stream_year_ordinal",
        ),
        UniqueConstraint("number", name="uq_invoice_number"),
        Index("idx_invoice_user_date", "user_id", "invoice_date"),
        Index("idx_invoice_user_status", "user_id", "status"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id"), nullable=False)

    stream: Mapped[str] = mapped_column(String(20), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence_ordinal: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    net_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    vat_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    gross_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    vat_treatment: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    zm_reportable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    issued_at: Mapped[datetime | None] = mapped_column(nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    client: Mapped[Client] = relationship(lazy="joined")
    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.number or 'draft'} {self.status}>"


class InvoiceLine(TrackedBase):
    """One position of an invoice with its rounded per-line figures."""

    __tablename__ = "invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "position", name="uq_invoice_line_position"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(nullable=False)
    net_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gross_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    invoice: Mapped[Invoice] = relationship(back_populates="lines")
