"""
Module: dreistrom_kernel.models.tax_profile
Responsibility: Per-user tax settings relevant to VAT: whether the user
    operates under the small-business exemption (Kleinunternehmerregelung,
    section 19 UStG) and for which window.
Architecture position: Kernel > Models. May import from db/ only.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dreistrom_kernel.db.base import TrackedBase


class TaxProfile(TrackedBase):
    """
    Small-business exemption window.

    Both bounds are inclusive. A missing bound leaves that side open, so
    ``small_business=True`` with no bounds means exempt at all times.
    """

    __tablename__ = "tax_profiles"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_tax_profile_user"),
    )

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    small_business: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    exempt_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    exempt_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    def covers(self, start: date, end: date) -> bool:
        """True when the whole period ``start..end`` falls under the exemption."""
        if not self.small_business:
            return False
        if self.exempt_from is not None and start < self.exempt_from:
            return False
        if self.exempt_until is not None and end > self.exempt_until:
            return False
        return True
