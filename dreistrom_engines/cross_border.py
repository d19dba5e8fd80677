"""
Cross-border Aggregator -- lines of the summary EU-sales report (ZM).

Groups reportable invoices by (destination country, counterpart VAT id) into
one line per group carrying the summed net total and the invoice count.
Lines are sorted by country, then VAT id, ascending; a missing VAT id sorts
as the empty string. The report totals are taken from the ungrouped input,
so ``sum(line.net_total) == total_net`` and
``sum(line.invoice_count) == total_invoices`` hold by construction and are
checked directly in tests.
"""

from __future__ import annotations

from collections.abc import Sequence

from dreistrom_engines.tracer import traced_engine
from dreistrom_kernel.domain.dtos import CrossBorderLine, DateRange, InvoiceRecord, ZmReport
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY, Money
from dreistrom_kernel.domain.vat import normalize_country
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("engines.cross_border")


def _group_key(invoice: InvoiceRecord) -> tuple[str, str]:
    tax_id = (invoice.client_vat_id or "").strip().upper()
    return normalize_country(invoice.client_country), tax_id


class CrossBorderAggregator:

    def __init__(self, currency: str = DEFAULT_CURRENCY):
        self._currency = currency

    @traced_engine("cross_border", "1.0", fingerprint_fields=("invoices",))
    def aggregate(self, invoices: Sequence[InvoiceRecord]) -> list[CrossBorderLine]:
        totals: dict[tuple[str, str], Money] = {}
        counts: dict[tuple[str, str], int] = {}
        for invoice in invoices:
            key = _group_key(invoice)
            totals[key] = totals.get(key, Money.zero(self._currency)) + invoice.net
            counts[key] = counts.get(key, 0) + 1

        return [
            CrossBorderLine(
                country=country,
                tax_id=tax_id or None,
                net_total=totals[(country, tax_id)],
                invoice_count=counts[(country, tax_id)],
            )
            for country, tax_id in sorted(totals)
        ]

    def build_report(self, period: DateRange, invoices: Sequence[InvoiceRecord]) -> ZmReport:
        lines = self.aggregate(invoices)
        report = ZmReport(
            period=period,
            lines=tuple(lines),
            total_net=Money.sum_of((i.net for i in invoices), self._currency),
            total_invoices=len(invoices),
        )
        logger.info(
            "zm_report_built",
            extra={
                "period_start": period.start,
                "period_end": period.end,
                "line_count": len(lines),
                "total_net_cents": report.total_net.minor_units,
                "total_invoices": report.total_invoices,
            },
        )
        return report
