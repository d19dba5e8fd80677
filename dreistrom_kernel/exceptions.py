"""
Typed Exception Hierarchy for the Dreistrom Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Invoice numbers and VAT figures end up in government submissions. Callers
must be able to react to a failure by TYPE and read its context from
ATTRIBUTES, never by parsing a message string:

    try:
        service.create_invoice(...)
    except AllocationTimeoutError as e:
        retry_later(key=(e.stream, e.fiscal_year))   # Structured data
    except InvalidLineItemError as e:
        highlight_row(e.index, e.field)               # Structured data

Every class carries:
  1. A class-level ``code`` (machine-readable, API-safe)
  2. Structured attributes describing the offending key, entity or value

The kernel itself produces no user-facing text. Messages exist for logs.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DreistromError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidLineItemError
    |   +-- InvalidInvoiceError
    |   +-- CurrencyMismatchError
    |   +-- InvalidArgumentError
    |
    +-- ConcurrencyError
    |   +-- AllocationTimeoutError
    |
    +-- NotFoundError
    |
    +-- StateConflictError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                    | When Raised
--------------|-------------------------|-------------------------------------------
Validation    | INVALID_AMOUNT          | Malformed monetary input / bad limit
              | INVALID_LINE_ITEM       | Empty list, qty <= 0, negative price/rate
              | INVALID_INVOICE         | Section 14 UStG field rules violated
              | CURRENCY_MISMATCH       | Arithmetic across currencies
              | INVALID_ARGUMENT        | Unknown stream, treatment, status or period
--------------|-------------------------|-------------------------------------------
Concurrency   | ALLOCATION_TIMEOUT      | Sequence lock not acquired within bound
--------------|-------------------------|-------------------------------------------
Lookup        | NOT_FOUND               | Referenced entity missing or not owned
--------------|-------------------------|-------------------------------------------
Lifecycle     | STATE_CONFLICT          | Illegal status transition
--------------|-------------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION  | Assigned invoice number modified

===============================================================================
PROPAGATION POLICY
===============================================================================

1. Validation errors are raised before the sequence allocator is called, so
   they never leave partial state.
2. AllocationTimeoutError is retryable (``retryable = True``). The kernel
   never retries internally: a retry re-validates the invoice payload, so
   the retry decision belongs to the caller.
3. NotFoundError and StateConflictError are terminal for the request.
4. At the public boundary (``dreistrom_services``) these exceptions are
   converted into explicit result values.
"""

from __future__ import annotations

from typing import Any


class DreistromError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "DREISTROM_ERROR"
    retryable: bool = False

    @property
    def context(self) -> dict[str, Any]:
        """Structured attributes of this error, suitable for logs and APIs."""
        return {
            key: value
            for key, value in vars(self).items()
            if not key.startswith("_")
        }


# Validation


class ValidationError(DreistromError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Monetary input cannot be interpreted as an amount."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: Any, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class InvalidLineItemError(ValidationError):
    """
    A line item violates the calculator's preconditions.

    ``index`` is the zero-based position of the offending item, or None when
    the list as a whole is invalid (e.g. empty).
    """

    code: str = "INVALID_LINE_ITEM"

    def __init__(
        self,
        index: int | None,
        field: str,
        value: Any,
        reason: str,
    ):
        self.index = index
        self.field = field
        self.value = value
        self.reason = reason
        where = "line items" if index is None else f"line item {index}"
        super().__init__(f"Invalid {where}: {field}={value!r} ({reason})")


class InvalidInvoiceError(ValidationError):
    """
    Invoice violates the mandatory-content rules of section 14 UStG.

    ``violations`` is a tuple of machine-readable violation codes, e.g.
    ``("vat_rate_must_be_zero:1", "small_business_notice_missing")``.
    """

    code: str = "INVALID_INVOICE"

    def __init__(self, violations: tuple[str, ...], invoice_id: str | None = None):
        self.violations = violations
        self.invoice_id = invoice_id
        super().__init__(
            f"Invoice validation failed: {', '.join(violations)}"
        )


class CurrencyMismatchError(ValidationError):
    """Arithmetic or comparison across different currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Currency mismatch: {left} vs {right}")


class InvalidArgumentError(ValidationError):
    """A caller-supplied argument is outside its domain (e.g. an unknown stream)."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


# Concurrency


class ConcurrencyError(DreistromError):
    """Base exception for contention on shared state."""

    code: str = "CONCURRENCY_ERROR"


class AllocationTimeoutError(ConcurrencyError):
    """
    The invoice sequence lock could not be acquired within the bounded wait.

    Retryable. The unit of work was rolled back, no number was consumed.
    """

    code: str = "ALLOCATION_TIMEOUT"
    retryable: bool = True

    def __init__(self, stream: str | None, fiscal_year: int | None, timeout_ms: int):
        self.stream = stream
        self.fiscal_year = fiscal_year
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Sequence lock for {stream}/{fiscal_year} not acquired "
            f"within {timeout_ms} ms"
        )


# Lookup


class NotFoundError(DreistromError):
    """Referenced entity does not exist or is not owned by the caller."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Lifecycle


class StateConflictError(DreistromError):
    """Requested transition is not legal from the entity's current state."""

    code: str = "STATE_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        requested: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.requested = requested
        super().__init__(
            f"{entity_type} {entity_id}: cannot {requested} from {current_state}"
        )


# Immutability


class ImmutabilityError(DreistromError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempt to modify a field that is frozen once assigned."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id}: {reason}")
