"""
InvoiceService -- Invoice lifecycle over the locked sequence allocator.

Responsibility:
    Creates, edits and moves invoices through DRAFT -> ISSUED -> {PAID,
    CANCELLED}. Issuing (directly via ``create_invoice`` or from a draft via
    ``issue``) is a single unit of work: calculate totals, validate the
    mandatory invoice content, allocate the ordinal, persist the ISSUED
    invoice. The caller commits it or rolls it back as a whole.

Architecture position:
    Kernel > Services -- imperative shell.
    Calls the pure LineItemCalculator and VAT rule functions, then the
    SequenceAllocator. Legal transitions come from INVOICE_WORKFLOW.

Invariants enforced:
    - Validation (line items, section 14 UStG content) runs before the
      allocator, so a rejected invoice never touches the counter.
    - Stored totals always equal the calculator output for the stored
      lines; every draft edit re-runs the calculator.
    - Only the ``issue`` transition allocates; the number is assigned
      exactly once and retained through PAID and CANCELLED.
    - Every transition stamps ``status_changed_at`` from the injected clock
      and emits an AuditEvent.

Failure modes:
    - InvalidLineItemError / InvalidInvoiceError: nothing persisted.
    - NotFoundError: invoice or client missing or owned by another user.
    - StateConflictError: the workflow has no such transition.
    - AllocationTimeoutError: sequence lock not acquired in time; retryable.

Audit relevance:
    Emits ``invoice_issued``, ``invoice_paid``, ``invoice_cancelled`` and
    the draft events both as log records and as AuditEvents to the sink.
"""

from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_engines.line_items import LineItemCalculator
from dreistrom_kernel.domain.clock import Clock
from dreistrom_kernel.domain.dtos import AuditEvent, InvoiceTotals, InvoiceView, LineItem
from dreistrom_kernel.domain.lifecycle import InvoiceStatus, coerce_status, resolve_transition
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.domain.streams import (
    DEFAULT_ORDINAL_PADDING,
    IncomeStream,
    coerce_stream,
    format_invoice_number,
    is_invoiceable,
)
from dreistrom_kernel.domain.vat import (
    VatTreatment,
    append_notice,
    coerce_treatment,
    compliance_violations,
    determine_vat_treatment,
    is_zm_reportable,
)
from dreistrom_kernel.exceptions import InvalidInvoiceError, NotFoundError, StateConflictError
from dreistrom_kernel.logging_config import LogContext, get_logger
from dreistrom_kernel.models.client import Client
from dreistrom_kernel.models.invoice import Invoice, InvoiceLine
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector
from dreistrom_kernel.services.audit import AuditSink, LoggingAuditSink
from dreistrom_kernel.services.base import BaseService, coerce_uuid
from dreistrom_kernel.services.sequence_allocator import (
    DEFAULT_LOCK_TIMEOUT_MS,
    SequenceAllocator,
    lock_timeout_guard,
)

logger = get_logger("services.invoice")


class InvoiceService(BaseService[Invoice]):
    """
    Invoice lifecycle operations. One instance per session.

    Usage:
        with session_scope() as session:
            service = InvoiceService(session, clock)
            view = service.create_invoice(user_id, IncomeStream.FREIBERUF,
                                          client_id, line_items)
            view.number  # "FR-2026-001"
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        audit_sink: AuditSink | None = None,
        lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
        ordinal_padding: int = DEFAULT_ORDINAL_PADDING,
        calculator: LineItemCalculator | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._audit = audit_sink or LoggingAuditSink()
        self._lock_timeout_ms = lock_timeout_ms
        self._padding = ordinal_padding
        self._calculator = calculator or LineItemCalculator()
        self._allocator = SequenceAllocator(session, lock_timeout_ms)
        self._selector = InvoiceSelector(session)

    # =========================================================================
    # Issuance
    # =========================================================================

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
    ) -> InvoiceView:
        """
        Calculate, validate, number and persist an ISSUED invoice.

        Args:
            vat_treatment: Detected from the client when None.
            invoice_date: Defaults to the clock's date; its year is the
                fiscal year of the sequence.

        Raises:
            InvalidArgumentError, InvalidLineItemError, InvalidInvoiceError,
            NotFoundError, AllocationTimeoutError
        """
        owner = coerce_uuid(user_id, "User")
        resolved = coerce_stream(stream)
        issue_date = invoice_date or self._clock.today()
        totals = self._calculator.compute_totals(line_items)

        with lock_timeout_guard(resolved, issue_date.year, self._lock_timeout_ms):
            client = self._load_client(owner, client_id)
            treatment = self._resolve_treatment(vat_treatment, client)
            full_notes = append_notice(notes, treatment)
            self._validate(None, resolved, client, treatment, totals, full_notes)

            now = self._clock.now()
            invoice = Invoice(
                user_id=owner,
                client_id=client.id,
                stream=resolved.value,
                fiscal_year=issue_date.year,
                invoice_date=issue_date,
                due_date=due_date,
                vat_treatment=treatment.value,
                notes=full_notes,
                zm_reportable=is_zm_reportable(treatment, client.country, client.name),
                status=InvoiceStatus.ISSUED.value,
                issued_at=now,
                status_changed_at=now,
            )
            self._apply_totals(invoice, totals)
            self._assign_number(invoice)
            self.session.add(invoice)
            self.session.flush()

        self._emit(invoice, "issue", None, InvoiceStatus.ISSUED, now)
        return InvoiceView.from_model(invoice)

    def issue(self, invoice_id: UUID | str, user_id: UUID | str) -> InvoiceView:
        """
        DRAFT -> ISSUED: validate the stored draft and allocate its number.

        The fiscal year is the year of the draft's invoice date.
        """
        owner = coerce_uuid(user_id, "User")
        key = coerce_uuid(invoice_id, "Invoice")

        # On SQLite the first read already waits for the write lock, before
        # the draft's key is known.
        with lock_timeout_guard(None, None, self._lock_timeout_ms) as guard:
            invoice = self._load_invoice(owner, key)
            guard.bind(invoice.stream, invoice.fiscal_year)
            resolve_transition(str(invoice.id), invoice.status, "issue")

            treatment = VatTreatment(invoice.vat_treatment)
            notes = append_notice(invoice.notes, treatment)
            totals = self._calculator.compute_totals(self._line_items_of(invoice))
            self._validate(str(invoice.id), invoice.stream, invoice.client, treatment, totals, notes)

            now = self._clock.now()
            invoice.notes = notes
            invoice.zm_reportable = is_zm_reportable(
                treatment, invoice.client.country, invoice.client.name
            )
            self._assign_number(invoice)
            invoice.status = InvoiceStatus.ISSUED.value
            invoice.issued_at = now
            invoice.status_changed_at = now
            self.session.flush()

        self._emit(invoice, "issue", InvoiceStatus.DRAFT, InvoiceStatus.ISSUED, now)
        return InvoiceView.from_model(invoice)

    # =========================================================================
    # Drafts
    # =========================================================================

    def save_draft(
        self,
        user_id: UUID | str,
        stream: IncomeStream | str,
        client_id: UUID | str,
        line_items: Sequence[LineItem],
        vat_treatment: VatTreatment | str | None = None,
        invoice_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> InvoiceView:
        """Persist an unnumbered DRAFT. Section 14 checks run on issue."""
        owner = coerce_uuid(user_id, "User")
        resolved = coerce_stream(stream)
        if not is_invoiceable(resolved):
            raise InvalidInvoiceError(("stream_not_invoiceable",))
        totals = self._calculator.compute_totals(line_items)
        client = self._load_client(owner, client_id)
        treatment = self._resolve_treatment(vat_treatment, client)
        draft_date = invoice_date or self._clock.today()

        invoice = Invoice(
            user_id=owner,
            client_id=client.id,
            stream=resolved.value,
            fiscal_year=draft_date.year,
            invoice_date=draft_date,
            due_date=due_date,
            vat_treatment=treatment.value,
            notes=notes,
            zm_reportable=False,
            status=InvoiceStatus.DRAFT.value,
            status_changed_at=self._clock.now(),
        )
        self._apply_totals(invoice, totals)
        self.session.add(invoice)
        self.session.flush()

        logger.info(
            "invoice_draft_saved",
            extra={"invoice_id": str(invoice.id), "stream": resolved.value},
        )
        return InvoiceView.from_model(invoice)

    def update_draft(
        self,
        invoice_id: UUID | str,
        user_id: UUID | str,
        line_items: Sequence[LineItem] | None = None,
        client_id: UUID | str | None = None,
        vat_treatment: VatTreatment | str | None = None,
        invoice_date: date | None = None,
        due_date: date | None = None,
        notes: str | None = None,
    ) -> InvoiceView:
        """
        Edit a DRAFT. Arguments left as None keep their stored value.

        Totals are recomputed from the resulting lines on every call.
        """
        owner = coerce_uuid(user_id, "User")
        invoice = self._load_invoice(owner, coerce_uuid(invoice_id, "Invoice"))
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise StateConflictError("Invoice", str(invoice.id), invoice.status, "update_draft")

        items = list(line_items) if line_items is not None else self._line_items_of(invoice)
        totals = self._calculator.compute_totals(items)

        if client_id is not None:
            client = self._load_client(owner, client_id)
            invoice.client = client
        if vat_treatment is not None:
            invoice.vat_treatment = coerce_treatment(vat_treatment).value
        elif client_id is not None:
            invoice.vat_treatment = self._resolve_treatment(None, invoice.client).value
        if invoice_date is not None:
            invoice.invoice_date = invoice_date
            invoice.fiscal_year = invoice_date.year
        if due_date is not None:
            invoice.due_date = due_date
        if notes is not None:
            invoice.notes = notes

        # Old positions must be gone before new ones with the same
        # position numbers are inserted.
        invoice.lines.clear()
        self.session.flush()
        self._apply_totals(invoice, totals)
        self.session.flush()

        logger.info("invoice_draft_updated", extra={"invoice_id": str(invoice.id)})
        return InvoiceView.from_model(invoice)

    def delete_draft(self, invoice_id: UUID | str, user_id: UUID | str) -> None:
        """Remove a DRAFT. Issued invoices are never deleted."""
        owner = coerce_uuid(user_id, "User")
        invoice = self._load_invoice(owner, coerce_uuid(invoice_id, "Invoice"))
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise StateConflictError("Invoice", str(invoice.id), invoice.status, "delete_draft")
        self.session.delete(invoice)
        self.session.flush()
        logger.info("invoice_draft_deleted", extra={"invoice_id": str(invoice.id)})

    # =========================================================================
    # Status transitions after issuance
    # =========================================================================

    def mark_paid(self, invoice_id: UUID | str, user_id: UUID | str) -> InvoiceView:
        return self._transition(invoice_id, user_id, "mark_paid")

    def cancel(self, invoice_id: UUID | str, user_id: UUID | str) -> InvoiceView:
        """ISSUED -> CANCELLED. The number stays assigned and is never reused."""
        return self._transition(invoice_id, user_id, "cancel")

    def _transition(self, invoice_id: UUID | str, user_id: UUID | str, action: str) -> InvoiceView:
        owner = coerce_uuid(user_id, "User")
        invoice = self._load_invoice(owner, coerce_uuid(invoice_id, "Invoice"))
        transition = resolve_transition(str(invoice.id), invoice.status, action)

        now = self._clock.now()
        previous = InvoiceStatus(invoice.status)
        invoice.status = transition.to_state
        invoice.status_changed_at = now
        self.session.flush()

        self._emit(invoice, action, previous, InvoiceStatus(transition.to_state), now)
        return InvoiceView.from_model(invoice)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, invoice_id: UUID | str, user_id: UUID | str) -> InvoiceView:
        owner = coerce_uuid(user_id, "User")
        key = coerce_uuid(invoice_id, "Invoice")
        view = self._selector.get_view(key, owner)
        if view is None:
            raise NotFoundError("Invoice", str(key))
        return view

    def list_invoices(
        self,
        user_id: UUID | str,
        stream: IncomeStream | str | None = None,
        status: InvoiceStatus | str | None = None,
    ) -> list[InvoiceView]:
        """Newest first."""
        owner = coerce_uuid(user_id, "User")
        return self._selector.list_views(
            owner,
            stream=coerce_stream(stream) if stream is not None else None,
            status=coerce_status(status) if status is not None else None,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_client(self, owner: UUID, client_id: UUID | str) -> Client:
        key = coerce_uuid(client_id, "Client")
        client = self.session.get(Client, key)
        if client is None or client.user_id != owner:
            raise NotFoundError("Client", str(key))
        return client

    def _load_invoice(self, owner: UUID, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None or invoice.user_id != owner:
            raise NotFoundError("Invoice", str(invoice_id))
        return invoice

    @staticmethod
    def _resolve_treatment(requested: VatTreatment | str | None, client: Client) -> VatTreatment:
        if requested is not None:
            return coerce_treatment(requested)
        return determine_vat_treatment(client.country, client.client_type, client.vat_id)

    @staticmethod
    def _validate(
        invoice_id: str | None,
        stream: IncomeStream | str,
        client: Client,
        treatment: VatTreatment,
        totals: InvoiceTotals,
        notes: str | None,
    ) -> None:
        violations = compliance_violations(
            treatment,
            [line.vat_rate for line in totals.lines],
            notes,
            client.vat_id,
            client.stream,
            stream,
        )
        if violations:
            logger.info(
                "invoice_validation_failed",
                extra={"invoice_id": invoice_id, "violations": list(violations)},
            )
            raise InvalidInvoiceError(violations, invoice_id=invoice_id)

    @staticmethod
    def _apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
        invoice.net_cents = totals.net.minor_units
        invoice.vat_cents = totals.vat.minor_units
        invoice.gross_cents = totals.gross.minor_units
        invoice.currency = totals.net.currency
        for line in totals.lines:
            invoice.lines.append(
                InvoiceLine(
                    position=line.position,
                    description=line.description.strip(),
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price.minor_units,
                    vat_rate=line.vat_rate,
                    net_cents=line.net.minor_units,
                    vat_cents=line.vat.minor_units,
                    gross_cents=line.gross.minor_units,
                )
            )

    @staticmethod
    def _line_items_of(invoice: Invoice) -> list[LineItem]:
        return [
            LineItem(
                description=line.description,
                quantity=line.quantity,
                unit_price=Money(line.unit_price_cents, invoice.currency),
                vat_rate=line.vat_rate,
            )
            for line in sorted(invoice.lines, key=lambda l: l.position)
        ]

    def _assign_number(self, invoice: Invoice) -> None:
        ordinal = self._allocator.allocate(invoice.stream, invoice.fiscal_year)
        invoice.sequence_ordinal = ordinal
        invoice.number = format_invoice_number(
            invoice.stream, invoice.fiscal_year, ordinal, self._padding
        )

    def _emit(
        self,
        invoice: Invoice,
        action: str,
        from_state: InvoiceStatus | None,
        to_state: InvoiceStatus,
        occurred_at: datetime,
    ) -> None:
        event_name = {
            "issue": "invoice_issued",
            "mark_paid": "invoice_paid",
            "cancel": "invoice_cancelled",
        }[action]
        with LogContext.bind(user_id=str(invoice.user_id), invoice_id=str(invoice.id)):
            logger.info(
                event_name,
                extra={
                    "number": invoice.number,
                    "stream": invoice.stream,
                    "fiscal_year": invoice.fiscal_year,
                    "from_state": from_state.value if from_state else None,
                    "to_state": to_state.value,
                    "gross_cents": invoice.gross_cents,
                },
            )
        self._audit.emit(
            AuditEvent(
                action=action,
                entity_type="Invoice",
                entity_id=str(invoice.id),
                user_id=str(invoice.user_id),
                occurred_at=occurred_at,
                from_state=from_state.value if from_state else None,
                to_state=to_state.value,
                payload={
                    "number": invoice.number,
                    "stream": invoice.stream,
                    "fiscal_year": invoice.fiscal_year,
                    "gross_cents": invoice.gross_cents,
                    "vat_treatment": invoice.vat_treatment,
                },
            )
        )
