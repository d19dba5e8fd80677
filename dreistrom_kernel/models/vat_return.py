"""
Module: dreistrom_kernel.models.vat_return
Responsibility: ORM persistence for periodic VAT returns (Umsatzsteuer-
    Voranmeldung and the annual return).
Architecture position: Kernel > Models. May import from db/ only.

Invariants enforced:
    - One return per (user, year, period type, period number).
    - net_payable_cents == output_vat_cents - input_vat_cents. The amounts are
      only written through ``apply_amounts``; net payable is never set on
      its own.
    - A SUBMITTED return is frozen (db/immutability.py).
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Date, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dreistrom_kernel.db.base import TrackedBase


class VatReturnStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"


class VatReturn(TrackedBase):
    __tablename__ = "vat_returns"

    __table_args__ = (
        UniqueConstraint(
            "user_id", "fiscal_year", "period_type", "period_number",
            name="uq_vat_return_period",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)

    output_vat_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    input_vat_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    net_payable_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VatReturnStatus.DRAFT.value
    )
    submitted_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    def apply_amounts(self, output_vat_cents: int, input_vat_cents: int) -> None:
        """Set output and input VAT; net payable is always derived."""
        self.output_vat_cents = output_vat_cents
        self.input_vat_cents = input_vat_cents
        self.net_payable_cents = output_vat_cents - input_vat_cents

    def __repr__(self) -> str:
        return (
            f"<VatReturn {self.fiscal_year} {self.period_type}"
            f"#{self.period_number} {self.status}>"
        )
