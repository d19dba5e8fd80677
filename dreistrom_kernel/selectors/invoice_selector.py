"""
Module: dreistrom_kernel.selectors.invoice_selector
Responsibility: Read-only access to invoices for the period engines (VAT,
    threshold, ZM) and for listing.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Date ranges are inclusive on both ends.
    - Results are ordered by (invoice_date, number) for deterministic engine
      input.
    - Returns None or empty lists on absence of data, never raises.
"""

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from dreistrom_kernel.domain.dtos import DateRange, InvoiceRecord, InvoiceView
from dreistrom_kernel.domain.lifecycle import REVENUE_STATUSES, InvoiceStatus, coerce_status
from dreistrom_kernel.domain.streams import INVOICEABLE_STREAMS, IncomeStream, coerce_stream
from dreistrom_kernel.models.invoice import Invoice
from dreistrom_kernel.selectors.base import BaseSelector


def _status_values(statuses: Iterable[InvoiceStatus]) -> list[str]:
    return sorted(coerce_status(s).value for s in statuses)


class InvoiceSelector(BaseSelector[Invoice]):

    def get_view(self, invoice_id: UUID, user_id: UUID | None = None) -> InvoiceView | None:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            return None
        if user_id is not None and invoice.user_id != user_id:
            return None
        return InvoiceView.from_model(invoice)

    def records_in_range(
        self,
        user_id: UUID,
        date_range: DateRange,
        stream: IncomeStream | None = None,
        statuses: Iterable[InvoiceStatus] = REVENUE_STATUSES,
    ) -> list[InvoiceRecord]:
        """Invoices of ``user_id`` dated within ``date_range``."""
        stmt = (
            select(Invoice)
            .where(Invoice.user_id == user_id)
            .where(Invoice.invoice_date >= date_range.start)
            .where(Invoice.invoice_date <= date_range.end)
            .where(Invoice.status.in_(_status_values(statuses)))
            .order_by(Invoice.invoice_date, Invoice.number)
        )
        if stream is not None:
            stmt = stmt.where(Invoice.stream == coerce_stream(stream).value)
        rows = self.session.execute(stmt).unique().scalars().all()
        return [InvoiceRecord.from_model(row) for row in rows]

    def zm_reportable_in_range(
        self,
        user_id: UUID,
        date_range: DateRange,
    ) -> list[InvoiceRecord]:
        return [
            record
            for record in self.records_in_range(user_id, date_range)
            if record.zm_reportable
        ]

    def gross_revenue_cents(
        self,
        user_id: UUID,
        fiscal_year: int,
        streams: Iterable[IncomeStream] = INVOICEABLE_STREAMS,
    ) -> int:
        """Sum of gross totals of issued and paid invoices dated in the year."""
        stmt = (
            select(func.coalesce(func.sum(Invoice.gross_cents), 0))
            .where(Invoice.user_id == user_id)
            .where(Invoice.invoice_date >= date(fiscal_year, 1, 1))
            .where(Invoice.invoice_date <= date(fiscal_year, 12, 31))
            .where(Invoice.status.in_(_status_values(REVENUE_STATUSES)))
            .where(Invoice.stream.in_(sorted(coerce_stream(s).value for s in streams)))
        )
        return int(self.session.execute(stmt).scalar_one())

    def list_views(
        self,
        user_id: UUID,
        stream: IncomeStream | None = None,
        status: InvoiceStatus | None = None,
    ) -> list[InvoiceView]:
        stmt = (
            select(Invoice)
            .where(Invoice.user_id == user_id)
            .order_by(Invoice.invoice_date.desc(), Invoice.number.desc())
        )
        if stream is not None:
            stmt = stmt.where(Invoice.stream == coerce_stream(stream).value)
        if status is not None:
            stmt = stmt.where(Invoice.status == coerce_status(status).value)
        rows = self.session.execute(stmt).unique().scalars().all()
        return [InvoiceView.from_model(row) for row in rows]
