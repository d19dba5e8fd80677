"""ORM models for the dreistrom kernel."""

from dreistrom_kernel.models.client import Client
from dreistrom_kernel.models.expense import AllocationRule, ExpenseEntry
from dreistrom_kernel.models.invoice import Invoice, InvoiceLine
from dreistrom_kernel.models.sequence import InvoiceSequenceCounter
from dreistrom_kernel.models.tax_profile import TaxProfile
from dreistrom_kernel.models.vat_return import VatReturn, VatReturnStatus

__all__ = [
    "AllocationRule",
    "Client",
    "ExpenseEntry",
    "Invoice",
    "InvoiceLine",
    "InvoiceSequenceCounter",
    "TaxProfile",
    "VatReturn",
    "VatReturnStatus",
]
