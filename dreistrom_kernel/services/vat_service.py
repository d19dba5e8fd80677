"""
VatService -- return-ready VAT summary for a period.

Loads invoices, expenses and the user's small-business exemption through
the selectors and hands them to the pure VatPeriodEngine. Read-only: never
adds, flushes or deletes.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_engines.vat_period import VatPeriodEngine
from dreistrom_kernel.domain.dtos import DateRange, VatSummary
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY
from dreistrom_kernel.domain.streams import IncomeStream, coerce_stream
from dreistrom_kernel.logging_config import LogContext
from dreistrom_kernel.models.invoice import Invoice
from dreistrom_kernel.selectors.expense_selector import ExpenseSelector
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector
from dreistrom_kernel.services.base import BaseService, coerce_uuid


class VatService(BaseService[Invoice]):

    def __init__(self, session: Session, currency: str = DEFAULT_CURRENCY):
        super().__init__(session)
        self._engine = VatPeriodEngine(currency)
        self._invoices = InvoiceSelector(session)
        self._expenses = ExpenseSelector(session)

    def summarize(
        self,
        user_id: UUID | str,
        stream: IncomeStream | str | None,
        date_range: DateRange,
    ) -> VatSummary:
        """
        Output VAT, input VAT and net payable of ``user_id`` for the range.

        ``stream=None`` covers both invoiceable streams.
        """
        owner = coerce_uuid(user_id, "User")
        resolved = coerce_stream(stream) if stream is not None else None

        with LogContext.bind(user_id=str(owner)):
            small_business = self._expenses.small_business_covers(owner, date_range)
            invoices = self._invoices.records_in_range(owner, date_range, resolved)
            expenses = self._expenses.records_in_range(owner, date_range)
            return self._engine.summarize(
                invoices, expenses, resolved, date_range, small_business
            )
