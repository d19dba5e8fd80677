"""Stateful kernel services. Each service flushes; the caller commits."""

from dreistrom_kernel.services.audit import AuditSink, LoggingAuditSink
from dreistrom_kernel.services.cross_border_service import CrossBorderService
from dreistrom_kernel.services.expense_service import ExpenseService
from dreistrom_kernel.services.invoice_service import InvoiceService
from dreistrom_kernel.services.sequence_allocator import (
    SequenceAllocator,
    lock_timeout_guard,
)
from dreistrom_kernel.services.threshold_service import ThresholdService
from dreistrom_kernel.services.vat_return_service import VatReturnService
from dreistrom_kernel.services.vat_service import VatService

__all__ = [
    "AuditSink",
    "CrossBorderService",
    "ExpenseService",
    "InvoiceService",
    "LoggingAuditSink",
    "SequenceAllocator",
    "ThresholdService",
    "VatReturnService",
    "VatService",
    "lock_timeout_guard",
]
