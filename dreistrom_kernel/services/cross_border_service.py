"""
CrossBorderService -- summary EU-sales report (Zusammenfassende Meldung).

Selects the ZM-reportable issued and paid invoices of a period and groups
them with the pure CrossBorderAggregator. Read-only.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_engines.cross_border import CrossBorderAggregator
from dreistrom_kernel.domain.dtos import DateRange, ZmReport
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY
from dreistrom_kernel.models.invoice import Invoice
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector
from dreistrom_kernel.services.base import BaseService, coerce_uuid


class CrossBorderService(BaseService[Invoice]):

    def __init__(self, session: Session, currency: str = DEFAULT_CURRENCY):
        super().__init__(session)
        self._aggregator = CrossBorderAggregator(currency)
        self._selector = InvoiceSelector(session)

    def report(self, user_id: UUID | str, date_range: DateRange) -> ZmReport:
        owner = coerce_uuid(user_id, "User")
        invoices = self._selector.zm_reportable_in_range(owner, date_range)
        return self._aggregator.build_report(date_range, invoices)
