"""Read-only selectors (the query side of the kernel)."""

from dreistrom_kernel.selectors.base import BaseSelector
from dreistrom_kernel.selectors.expense_selector import ExpenseSelector
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector

__all__ = ["BaseSelector", "ExpenseSelector", "InvoiceSelector"]
