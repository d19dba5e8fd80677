"""
Module: dreistrom_kernel.models.expense
Responsibility: ORM persistence for recorded expenses and the allocation rules
    that split them across freelance, trade and personal use. Input VAT is
    deductible only for the share allocated to a business stream.
Architecture position: Kernel > Models. May import from db/ only.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dreistrom_kernel.db.base import TrackedBase


class AllocationRule(TrackedBase):
    """Named percentage split. The three shares sum to 100."""

    __tablename__ = "allocation_rules"

    __table_args__ = (
        Index("idx_allocation_rule_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    freiberuf_pct: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    gewerbe_pct: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    personal_pct: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))


class ExpenseEntry(TrackedBase):
    """A business expense with its gross amount and VAT rate."""

    __tablename__ = "expense_entries"

    __table_args__ = (
        CheckConstraint("gross_cents >= 0", name="ck_expense_gross_non_negative"),
        Index("idx_expense_user_date", "user_id", "expense_date"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    gross_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    vat_rate: Mapped[Decimal] = mapped_column(nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    allocation_rule_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("allocation_rules.id"), nullable=True
    )

    allocation_rule: Mapped[AllocationRule | None] = relationship(lazy="joined")
