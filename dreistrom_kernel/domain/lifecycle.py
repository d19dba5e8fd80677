"""
Invoice lifecycle -- the legal status transitions of an invoice.

    DRAFT --issue--> ISSUED --mark_paid--> PAID
                       |
                       +-----cancel------> CANCELLED

Only ``issue`` calls the sequence allocator. Nothing transitions back into
DRAFT. PAID and CANCELLED are terminal; in particular a paid invoice cannot
be cancelled (a correction is a new invoice, not a status change).
"""

from __future__ import annotations

from enum import Enum

from dreistrom_kernel.domain.workflow import Transition, Workflow
from dreistrom_kernel.exceptions import InvalidArgumentError, StateConflictError


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


def coerce_status(value: InvoiceStatus | str) -> InvoiceStatus:
    if isinstance(value, InvoiceStatus):
        return value
    try:
        return InvoiceStatus(str(value).upper())
    except ValueError:
        raise InvalidArgumentError("status", value, "unknown invoice status") from None


# Statuses whose VAT counts towards a period's output VAT and revenue.
REVENUE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.ISSUED,
    InvoiceStatus.PAID,
})


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Outgoing invoice lifecycle",
    initial_state=InvoiceStatus.DRAFT.value,
    states=tuple(s.value for s in InvoiceStatus),
    transitions=(
        Transition(
            InvoiceStatus.DRAFT.value,
            InvoiceStatus.ISSUED.value,
            "issue",
            allocates_number=True,
        ),
        Transition(InvoiceStatus.ISSUED.value, InvoiceStatus.PAID.value, "mark_paid"),
        Transition(InvoiceStatus.ISSUED.value, InvoiceStatus.CANCELLED.value, "cancel"),
    ),
    terminal_states=(InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value),
)


def resolve_transition(
    invoice_id: str,
    current: InvoiceStatus | str,
    action: str,
    workflow: Workflow = INVOICE_WORKFLOW,
) -> Transition:
    """
    Look up ``action`` from ``current`` or raise StateConflictError.

    Raises:
        StateConflictError: The workflow has no such transition.
    """
    state = InvoiceStatus(current).value
    transition = workflow.find_transition(state, action)
    if transition is None:
        raise StateConflictError("Invoice", str(invoice_id), state, action)
    return transition
