"""
Module: dreistrom_kernel.selectors.expense_selector
Responsibility: Read-only access to expenses and the user's tax profile for
    the VAT period engine.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from dreistrom_kernel.domain.dtos import DateRange, ExpenseRecord
from dreistrom_kernel.models.expense import ExpenseEntry
from dreistrom_kernel.models.tax_profile import TaxProfile
from dreistrom_kernel.selectors.base import BaseSelector


class ExpenseSelector(BaseSelector[ExpenseEntry]):

    def records_in_range(self, user_id: UUID, date_range: DateRange) -> list[ExpenseRecord]:
        """Expenses of ``user_id`` dated within the inclusive range."""
        rows = self.session.execute(
            select(ExpenseEntry)
            .where(ExpenseEntry.user_id == user_id)
            .where(ExpenseEntry.expense_date >= date_range.start)
            .where(ExpenseEntry.expense_date <= date_range.end)
            .order_by(ExpenseEntry.expense_date, ExpenseEntry.id)
        ).unique().scalars().all()
        return [ExpenseRecord.from_model(row) for row in rows]

    def small_business_covers(self, user_id: UUID, date_range: DateRange) -> bool:
        """True when the user's exemption window covers the whole range."""
        profile = self.session.execute(
            select(TaxProfile).where(TaxProfile.user_id == user_id)
        ).scalar_one_or_none()
        if profile is None:
            return False
        return profile.covers(date_range.start, date_range.end)
