"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

An issued invoice is a legal document. Its number, its line items and its
totals must never change after issuance; corrections are new documents.
The sequence counter behind the numbers must never move backwards, or a
number would be handed out twice.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
The listeners registered here inspect attribute history and raise
ImmutabilityViolationError before any SQL is sent:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable                 | Mutable fields
-----------------------|--------------------------------|------------------------------
Invoice                | Number/ordinal: once assigned  | status, status_changed_at,
                       | Everything else: once issued   | updated_at
InvoiceLine            | When parent invoice is issued  | (none)
InvoiceSequenceCounter | last_value never decreases     | last_value (upwards only)
VatReturn              | After status = SUBMITTED       | updated_at

Issuing is the transition that assigns the number, so the DRAFT -> ISSUED
flush is allowed to set number, ordinal and issued_at. Any later flush that
touches them is blocked. Status moves are validated by the lifecycle
workflow, not here.

===============================================================================
USAGE
===============================================================================

    from dreistrom_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from dreistrom_kernel.exceptions import ImmutabilityViolationError
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_NUMBER_FIELDS = ("number", "sequence_ordinal")
_INVOICE_MUTABLE_AFTER_ISSUE = frozenset({
    "status",
    "status_changed_at",
    "updated_at",
})
_AUDIT_FIELDS = frozenset({"updated_at"})


def _block(entity_type: str, entity_id: str, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _previous_value(target, key):
    """Value of ``key`` as loaded from the database, before this flush."""
    history = get_history(target, key)
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return None


def _status_value(value) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


def _check_invoice_update(mapper, connection, target):
    from dreistrom_kernel.models.invoice import Invoice

    if not isinstance(target, Invoice):
        return

    entity_id = str(target.id)

    # A number, once assigned, never changes.
    for key in _NUMBER_FIELDS:
        history = get_history(target, key)
        if history.deleted and history.deleted[0] is not None:
            _block(
                "Invoice",
                entity_id,
                "UPDATE",
                f"Cannot modify '{key}' once an invoice number is assigned",
                field=key,
            )

    # After issuance everything but the status bookkeeping is frozen.
    if _status_value(_previous_value(target, "status")) == "DRAFT":
        return

    for attr in inspect(target).attrs:
        if attr.key in _INVOICE_MUTABLE_AFTER_ISSUE:
            continue
        if attr.key == "lines" or attr.key == "client":
            continue
        if attr.history.has_changes():
            _block(
                "Invoice",
                entity_id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on an issued invoice",
                field=attr.key,
            )


def _check_invoice_delete(mapper, connection, target):
    from dreistrom_kernel.models.invoice import Invoice

    if not isinstance(target, Invoice):
        return
    if _status_value(_previous_value(target, "status")) != "DRAFT":
        _block(
            "Invoice",
            str(target.id),
            "DELETE",
            "Only draft invoices can be deleted",
        )


def _parent_issued(line) -> bool:
    invoice = line.invoice
    if invoice is None:
        return False
    return _status_value(_previous_value(invoice, "status")) not in (None, "DRAFT")


def _check_invoice_line_update(mapper, connection, target):
    from dreistrom_kernel.models.invoice import InvoiceLine

    if not isinstance(target, InvoiceLine):
        return
    if _parent_issued(target):
        _block(
            "InvoiceLine",
            str(target.id),
            "UPDATE",
            "Cannot modify a line item of an issued invoice",
        )


def _check_invoice_line_delete(mapper, connection, target):
    from dreistrom_kernel.models.invoice import InvoiceLine

    if not isinstance(target, InvoiceLine):
        return
    if _parent_issued(target):
        _block(
            "InvoiceLine",
            str(target.id),
            "DELETE",
            "Cannot delete a line item of an issued invoice",
        )


def _check_sequence_update(mapper, connection, target):
    from dreistrom_kernel.models.sequence import InvoiceSequenceCounter

    if not isinstance(target, InvoiceSequenceCounter):
        return
    history = get_history(target, "last_value")
    if history.deleted and history.added:
        if history.added[0] < history.deleted[0]:
            _block(
                "InvoiceSequenceCounter",
                f"{target.stream}/{target.fiscal_year}",
                "UPDATE",
                "Sequence counter cannot decrease",
                field="last_value",
            )


def _check_sequence_delete(mapper, connection, target):
    from dreistrom_kernel.models.sequence import InvoiceSequenceCounter

    if not isinstance(target, InvoiceSequenceCounter):
        return
    _block(
        "InvoiceSequenceCounter",
        f"{target.stream}/{target.fiscal_year}",
        "DELETE",
        "Sequence counters are never deleted",
    )


def _check_vat_return_update(mapper, connection, target):
    from dreistrom_kernel.models.vat_return import VatReturn

    if not isinstance(target, VatReturn):
        return
    if _status_value(_previous_value(target, "status")) != "SUBMITTED":
        return
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "VatReturn",
                str(target.id),
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a submitted VAT return",
                field=attr.key,
            )


_LISTENERS: tuple = ()
_registered = False


def _listener_table():
    from dreistrom_kernel.models.invoice import Invoice, InvoiceLine
    from dreistrom_kernel.models.sequence import InvoiceSequenceCounter
    from dreistrom_kernel.models.vat_return import VatReturn

    return (
        (Invoice, "before_update", _check_invoice_update),
        (Invoice, "before_delete", _check_invoice_delete),
        (InvoiceLine, "before_update", _check_invoice_line_update),
        (InvoiceLine, "before_delete", _check_invoice_line_delete),
        (InvoiceSequenceCounter, "before_update", _check_sequence_update),
        (InvoiceSequenceCounter, "before_delete", _check_sequence_delete),
        (VatReturn, "before_update", _check_vat_return_update),
    )


def register_immutability_listeners() -> None:
    """Register all ORM immutability listeners. Idempotent."""
    global _LISTENERS, _registered
    if _registered:
        return
    _LISTENERS = _listener_table()
    for model, identifier, fn in _LISTENERS:
        event.listen(model, identifier, fn)
    _registered = True
    logger.debug("immutability_listeners_registered", extra={"count": len(_LISTENERS)})


def unregister_immutability_listeners() -> None:
    """Remove all ORM immutability listeners. TESTS ONLY."""
    global _registered
    if not _registered:
        return
    for model, identifier, fn in _LISTENERS:
        event.remove(model, identifier, fn)
    _registered = False
