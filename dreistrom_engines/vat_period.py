"""
VAT Period Engine -- output VAT, input VAT and net payable for a period.

Pure read-then-compute over already-fetched invoice and expense snapshots.
Callers (VatService) load the data; this module never touches storage and
never reads the clock.

Rules:
    Output VAT
        Sum of the stored VAT of ISSUED and PAID invoices dated within the
        inclusive range, for the requested stream or for both invoiceable
        streams when no stream is given. Drafts and cancelled invoices never
        count.
    Input VAT
        Per expense with an allocation rule: the gross amount is allocated
        to each business stream by its percentage (HALF_UP per expense),
        then the VAT contained in the allocated amount is extracted
        (``allocated * rate / (1 + rate)``, HALF_UP). The personal share and
        unallocated expenses are not deductible.
    Small-business exemption
        Authoritative. When the period falls under the exemption, output
        and input VAT are zero whatever the invoice data says.

Usage:
    summary = VatPeriodEngine().summarize(
        invoices, expenses, IncomeStream.FREIBERUF,
        DateRange(date(2026, 1, 1), date(2026, 3, 31)), small_business=False,
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from dreistrom_engines.tracer import traced_engine
from dreistrom_engines.vat_math import extract_vat
from dreistrom_kernel.domain.dtos import DateRange, ExpenseRecord, InvoiceRecord, VatSummary
from dreistrom_kernel.domain.lifecycle import REVENUE_STATUSES
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY, Money
from dreistrom_kernel.domain.streams import INVOICEABLE_STREAMS, IncomeStream, coerce_stream
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("engines.vat_period")

_HUNDRED = Decimal(100)


class VatPeriodEngine:
    """Stateless; identical inputs always give equal VatSummary values."""

    def __init__(self, currency: str = DEFAULT_CURRENCY):
        self._currency = currency

    def output_vat_by_stream(
        self,
        invoices: Sequence[InvoiceRecord],
        date_range: DateRange,
    ) -> tuple[dict[IncomeStream, Money], dict[IncomeStream, int]]:
        totals = {s: Money.zero(self._currency) for s in INVOICEABLE_STREAMS}
        counts = {s: 0 for s in INVOICEABLE_STREAMS}
        for invoice in invoices:
            if invoice.status not in REVENUE_STATUSES:
                continue
            if not date_range.contains(invoice.invoice_date):
                continue
            if invoice.stream not in totals:
                continue
            totals[invoice.stream] = totals[invoice.stream] + invoice.vat
            counts[invoice.stream] += 1
        return totals, counts

    def input_vat_by_stream(
        self,
        expenses: Sequence[ExpenseRecord],
        date_range: DateRange,
    ) -> dict[IncomeStream, Money]:
        totals = {s: Money.zero(self._currency) for s in INVOICEABLE_STREAMS}
        for expense in expenses:
            if expense.allocation is None:
                continue
            if not date_range.contains(expense.expense_date):
                continue
            for stream in INVOICEABLE_STREAMS:
                pct = expense.allocation.percent_for(stream)
                if pct <= 0:
                    continue
                allocated = expense.gross.multiply_by_ratio(pct / _HUNDRED)
                totals[stream] = totals[stream] + extract_vat(allocated, expense.vat_rate)
        return totals

    @traced_engine(
        "vat_period",
        "1.0",
        fingerprint_fields=("invoices", "expenses", "stream", "date_range", "small_business"),
    )
    def summarize(
        self,
        invoices: Sequence[InvoiceRecord],
        expenses: Sequence[ExpenseRecord],
        stream: IncomeStream | None,
        date_range: DateRange,
        small_business: bool,
    ) -> VatSummary:
        zero = Money.zero(self._currency)
        if stream is not None:
            stream = coerce_stream(stream)
        streams = INVOICEABLE_STREAMS if stream is None else (stream,)

        if small_business:
            summary = VatSummary(
                date_range=date_range,
                stream=stream,
                output_vat=zero,
                input_vat=zero,
                net_payable=zero,
                small_business=True,
                freiberuf_output_vat=zero,
                gewerbe_output_vat=zero,
                freiberuf_input_vat=zero,
                gewerbe_input_vat=zero,
                invoice_count=0,
                expense_count=0,
            )
            logger.info(
                "vat_summary_small_business",
                extra={
                    "period_start": date_range.start,
                    "period_end": date_range.end,
                    "stream": stream,
                },
            )
            return summary

        output, invoice_counts = self.output_vat_by_stream(invoices, date_range)
        input_ = self.input_vat_by_stream(expenses, date_range)
        deductible = [
            e for e in expenses
            if e.allocation is not None
            and date_range.contains(e.expense_date)
            and any(e.allocation.percent_for(s) > 0 for s in streams)
        ]

        output_vat = Money.sum_of((output.get(s, zero) for s in streams), self._currency)
        input_vat = Money.sum_of((input_.get(s, zero) for s in streams), self._currency)

        summary = VatSummary(
            date_range=date_range,
            stream=stream,
            output_vat=output_vat,
            input_vat=input_vat,
            net_payable=output_vat - input_vat,
            small_business=False,
            freiberuf_output_vat=output[IncomeStream.FREIBERUF],
            gewerbe_output_vat=output[IncomeStream.GEWERBE],
            freiberuf_input_vat=input_[IncomeStream.FREIBERUF],
            gewerbe_input_vat=input_[IncomeStream.GEWERBE],
            invoice_count=sum(invoice_counts.get(s, 0) for s in streams),
            expense_count=len(deductible),
        )
        logger.info(
            "vat_summary_computed",
            extra={
                "period_start": date_range.start,
                "period_end": date_range.end,
                "stream": stream,
                "output_vat_cents": output_vat.minor_units,
                "input_vat_cents": input_vat.minor_units,
                "net_payable_cents": summary.net_payable.minor_units,
            },
        )
        return summary
