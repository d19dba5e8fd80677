"""Pure domain layer: value types, DTOs, lifecycle and VAT rule tables."""

from dreistrom_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from dreistrom_kernel.domain.dtos import (
    AllocationShares,
    AuditEvent,
    CrossBorderLine,
    DateRange,
    ExpenseRecord,
    InvoiceRecord,
    InvoiceTotals,
    InvoiceView,
    LineItem,
    LineTotals,
    ThresholdAlert,
    ThresholdStatus,
    VatReturnView,
    VatSummary,
    ZmReport,
)
from dreistrom_kernel.domain.lifecycle import INVOICE_WORKFLOW, InvoiceStatus
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.domain.periods import PeriodType, period_bounds
from dreistrom_kernel.domain.streams import IncomeStream, format_invoice_number
from dreistrom_kernel.domain.vat import ClientType, VatTreatment

__all__ = [
    "AllocationShares",
    "AuditEvent",
    "Clock",
    "ClientType",
    "CrossBorderLine",
    "DateRange",
    "DeterministicClock",
    "ExpenseRecord",
    "INVOICE_WORKFLOW",
    "IncomeStream",
    "InvoiceRecord",
    "InvoiceStatus",
    "InvoiceTotals",
    "InvoiceView",
    "LineItem",
    "LineTotals",
    "Money",
    "PeriodType",
    "SystemClock",
    "ThresholdAlert",
    "ThresholdStatus",
    "VatReturnView",
    "VatSummary",
    "VatTreatment",
    "ZmReport",
    "format_invoice_number",
    "period_bounds",
]
