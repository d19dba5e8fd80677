"""
Public boundary of the fiscal core.

Callers (web handlers, CLI, cron jobs) talk to ``FiscalCore``. Each method
opens its own transaction with ``session_scope``, calls the kernel services
and converts any kernel exception into an explicit ``CoreResult`` value, so
no exception crosses this boundary for an expected failure.

Usage:

    from dreistrom_config import get_active_config
    from dreistrom_kernel.db.engine import get_session_factory, init_engine_from_url
    from dreistrom_kernel.domain.clock import SystemClock
    from dreistrom_services import FiscalCore

    init_engine_from_url(database_url, lock_timeout_ms=config.numbering.lock_timeout_ms)
    core = FiscalCore(get_session_factory(), SystemClock(), get_active_config())

    result = core.create_invoice(user_id, "FREIBERUF", client_id, line_items)
    if result.is_success:
        result.value.number            # "FR-2026-001"
    elif result.retryable:
        ...                            # ALLOCATION_TIMEOUT, try again
    else:
        result.error_code, result.context

The core produces no user-facing text; ``context`` carries the structured
attributes of the failure for the caller to render.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from dreistrom_config import FiscalConfig, get_active_config
from dreistrom_engines.cross_border import CrossBorderAggregator
from dreistrom_engines.threshold import ThresholdEvaluator
from dreistrom_kernel.db.engine import session_scope
from dreistrom_kernel.db.immutability import register_immutability_listeners
from dreistrom_kernel.domain.clock import Clock, SystemClock
from dreistrom_kernel.domain.dtos import (
    CrossBorderLine,
    DateRange,
    ExpenseRecord,
    InvoiceRecord,
    InvoiceView,
    LineItem,
    ThresholdStatus,
    VatReturnView,
    VatSummary,
    ZmReport,
)
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.domain.periods import PeriodType
from dreistrom_kernel.domain.streams import IncomeStream
from dreistrom_kernel.domain.vat import VatTreatment
from dreistrom_kernel.exceptions import (
    ConcurrencyError,
    DreistromError,
    ImmutabilityError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from dreistrom_kernel.logging_config import LogContext, get_logger
from dreistrom_kernel.services.audit import AuditSink, LoggingAuditSink
from dreistrom_kernel.services.cross_border_service import CrossBorderService
from dreistrom_kernel.services.expense_service import ExpenseService
from dreistrom_kernel.services.invoice_service import InvoiceService
from dreistrom_kernel.services.threshold_service import ThresholdService
from dreistrom_kernel.services.vat_return_service import VatReturnService
from dreistrom_kernel.services.vat_service import VatService

logger = get_logger("boundary")

T = TypeVar("T")


class ResultStatus(str, Enum):
    """Outcome category of a boundary call."""

    OK = "ok"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BUSY = "busy"
    FORBIDDEN = "forbidden"
    ERROR = "error"


# Most specific class first; the first isinstance match wins.
ERROR_STATUS_MAP: tuple[tuple[type[DreistromError], ResultStatus], ...] = (
    (ValidationError, ResultStatus.INVALID),
    (NotFoundError, ResultStatus.NOT_FOUND),
    (StateConflictError, ResultStatus.CONFLICT),
    (ConcurrencyError, ResultStatus.BUSY),
    (ImmutabilityError, ResultStatus.FORBIDDEN),
    (DreistromError, ResultStatus.ERROR),
)


def status_for(error: DreistromError) -> ResultStatus:
    for error_type, status in ERROR_STATUS_MAP:
        if isinstance(error, error_type):
            return status
    return ResultStatus.ERROR


@dataclass(frozen=True)
class CoreResult(Generic[T]):
    """Explicit outcome of a boundary call: a value or a coded failure."""

    status: ResultStatus
    value: T | None = None
    error_code: str | None = None
    context: MappingProxyType[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    retryable: bool = False

    @classmethod
    def ok(cls, value: T) -> CoreResult[T]:
        return cls(status=ResultStatus.OK, value=value)

    @classmethod
    def from_error(cls, error: DreistromError) -> CoreResult[T]:
        return cls(
            status=status_for(error),
            error_code=error.code,
            context=MappingProxyType(dict(error.context)),
            retryable=error.retryable,
        )

    @property
    def is_success(self) -> bool:
        return self.status == ResultStatus.OK


class FiscalCore:
    """
    Facade over the kernel services. Stateless apart from its collaborators;
    safe to share across threads because every call opens its own session.

    Args:
        session_factory: Factory bound to the engine, one session per call.
        clock: Time source for dates and status timestamps.
        config: Limits, lock timeout and number padding. Loaded with
            ``get_active_config()`` when None.
        audit_sink: Receives every lifecycle AuditEvent.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: FiscalConfig | None = None,
        audit_sink: AuditSink | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._audit = audit_sink or LoggingAuditSink()
        register_immutability_listeners()

    @property
    def config(self) -> FiscalConfig:
        return self._config

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        user_id: UUID | str,
        stream: IncomeStream | str,
        client_id: UUID | str,
        line_items: Sequence[LineItem],
        vat_treatment: VatTreatment | str | None = None,
        invoice_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> CoreResult[InvoiceView]:
        return self._run(
            "create_invoice",
            user_id,
            lambda session: self._invoices(session).create_invoice(
                user_id,
                stream,
                client_id,
                line_items,
                vat_treatment=vat_treatment,
                invoice_date=invoice_date,
                due_date=due_date,
                notes=notes,
            ),
        )

    def mark_paid(self, invoice_id: UUID | str, user_id: UUID | str) -> CoreResult[InvoiceView]:
        return self._run(
            "mark_paid",
            user_id,
            lambda session: self._invoices(session).mark_paid(invoice_id, user_id),
        )

    def cancel(self, invoice_id: UUID | str, user_id: UUID | str) -> CoreResult[InvoiceView]:
        return self._run(
            "cancel",
            user_id,
            lambda session: self._invoices(session).cancel(invoice_id, user_id),
        )

    # ------------------------------------------------------------------
    # VAT
    # ------------------------------------------------------------------

    def summarize_vat(
        self,
        user_id: UUID | str,
        stream: IncomeStream | str | None,
        date_range: DateRange,
    ) -> CoreResult[VatSummary]:
        return self._run(
            "summarize_vat",
            user_id,
            lambda session: VatService(session, self._config.currency).summarize(
                user_id, stream, date_range
            ),
        )

    def record_expense(
        self,
        user_id: UUID | str,
        gross: Money,
        expense_date: date,
        category: str,
        allocation_rule_id: UUID | str | None = None,
        vat_rate: Decimal | str | None = None,
        description: str | None = None,
    ) -> CoreResult[ExpenseRecord]:
        return self._run(
            "record_expense",
            user_id,
            lambda session: ExpenseService(
                session, self._config.vat.input_default_rate
            ).record_expense(
                user_id,
                gross,
                expense_date,
                category,
                allocation_rule_id=allocation_rule_id,
                vat_rate=vat_rate,
                description=description,
            ),
        )

    def generate_vat_return(
        self,
        user_id: UUID | str,
        fiscal_year: int,
        period_type: PeriodType | str,
        period_number: int,
    ) -> CoreResult[VatReturnView]:
        return self._run(
            "generate_vat_return",
            user_id,
            lambda session: VatReturnService(
                session, self._clock, self._audit, self._config.currency
            ).generate_for_period(user_id, fiscal_year, period_type, period_number),
        )

    # ------------------------------------------------------------------
    # Threshold and ZM (pure, no transaction)
    # ------------------------------------------------------------------

    def evaluate_threshold(
        self,
        current_revenue: Money,
        current_limit: Money,
        projected_revenue: Money,
        projected_limit: Money,
    ) -> CoreResult[ThresholdStatus]:
        try:
            status = ThresholdEvaluator().evaluate(
                current_revenue,
                current_limit,
                projected_revenue,
                projected_limit,
                self._config.small_business.warning_ratio,
            )
        except DreistromError as e:
            return self._failure("evaluate_threshold", e)
        return CoreResult.ok(status)

    def threshold_status(
        self,
        user_id: UUID | str,
        fiscal_year: int,
        projected: Money | None = None,
    ) -> CoreResult[ThresholdStatus]:
        """Threshold status from the stored revenue of ``fiscal_year``."""
        limits = self._config.small_business
        currency = self._config.currency
        return self._run(
            "threshold_status",
            user_id,
            lambda session: ThresholdService(
                session,
                self._clock,
                current_limit=Money.from_decimal(limits.current_limit, currency),
                projected_limit=Money.from_decimal(limits.projected_limit, currency),
                warning_ratio=limits.warning_ratio,
                currency=currency,
            ).status(user_id, fiscal_year, projected),
        )

    def aggregate_cross_border(
        self,
        invoices: Sequence[InvoiceRecord],
    ) -> CoreResult[list[CrossBorderLine]]:
        try:
            lines = CrossBorderAggregator(self._config.currency).aggregate(invoices)
        except DreistromError as e:
            return self._failure("aggregate_cross_border", e)
        return CoreResult.ok(lines)

    def cross_border_report(
        self,
        user_id: UUID | str,
        date_range: DateRange,
    ) -> CoreResult[ZmReport]:
        return self._run(
            "cross_border_report",
            user_id,
            lambda session: CrossBorderService(session, self._config.currency).report(
                user_id, date_range
            ),
        )

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _invoices(self, session: Session) -> InvoiceService:
        return InvoiceService(
            session,
            self._clock,
            audit_sink=self._audit,
            lock_timeout_ms=self._config.numbering.lock_timeout_ms,
            ordinal_padding=self._config.numbering.ordinal_padding,
        )

    def _run(
        self,
        operation: str,
        user_id: UUID | str,
        work: Callable[[Session], T],
    ) -> CoreResult[T]:
        """Run ``work`` in its own transaction; kernel errors become results."""
        with LogContext.bind(user_id=str(user_id)):
            try:
                with session_scope(self._session_factory) as session:
                    value = work(session)
            except DreistromError as e:
                return self._failure(operation, e)
        return CoreResult.ok(value)

    @staticmethod
    def _failure(operation: str, error: DreistromError) -> CoreResult[Any]:
        result = CoreResult.from_error(error)
        logger.info(
            "boundary_call_failed",
            extra={
                "operation": operation,
                "error_code": error.code,
                "result_status": result.status.value,
                "retryable": error.retryable,
            },
        )
        return result
