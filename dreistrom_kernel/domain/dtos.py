"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    The immutable structures that flow between the pure engines and the
    stateful services: line items and their computed totals, invoice and
    expense snapshots fed to the period engines, and the engine results
    (VatSummary, ThresholdStatus, CrossBorderLine, ZmReport). Also the
    AuditEvent payload handed to the audit sink.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model()`` class methods exist as boundary converters and are only
    invoked from the service layer, never from engine logic.

Invariants enforced:
    - All monetary fields are Money (never raw Decimal, never float).
    - DateRange bounds are inclusive and ordered.
    - AllocationShares always sum to 100 percent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from dreistrom_kernel.domain.lifecycle import InvoiceStatus
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.domain.streams import IncomeStream
from dreistrom_kernel.domain.vat import VatTreatment

if TYPE_CHECKING:
    from dreistrom_kernel.models.expense import ExpenseEntry as ExpenseEntryModel
    from dreistrom_kernel.models.invoice import Invoice as InvoiceModel
    from dreistrom_kernel.models.vat_return import VatReturn as VatReturnModel


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """One invoice position as entered. Validated by the calculator."""

    description: str
    quantity: Decimal
    unit_price: Money
    vat_rate: Decimal


@dataclass(frozen=True)
class LineTotals:
    """A line item with its per-line rounded figures."""

    position: int
    description: str
    quantity: Decimal
    unit_price: Money
    vat_rate: Decimal
    net: Money
    vat: Money
    gross: Money


@dataclass(frozen=True)
class InvoiceTotals:
    """Sums of per-line rounded values."""

    net: Money
    vat: Money
    gross: Money
    lines: tuple[LineTotals, ...]


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"DateRange start {self.start} is after end {self.end}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def within(self, other: DateRange) -> bool:
        """True when this range lies entirely inside ``other``."""
        return other.start <= self.start and self.end <= other.end


# ---------------------------------------------------------------------------
# Engine inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceRecord:
    """Snapshot of a persisted invoice as seen by the period engines."""

    invoice_id: str
    number: str | None
    stream: IncomeStream
    status: InvoiceStatus
    invoice_date: date
    net: Money
    vat: Money
    gross: Money
    vat_treatment: VatTreatment = VatTreatment.REGULAR
    client_country: str = "DE"
    client_vat_id: str | None = None
    zm_reportable: bool = False

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceRecord:
        client = model.client
        return cls(
            invoice_id=str(model.id),
            number=model.number,
            stream=IncomeStream(model.stream),
            status=InvoiceStatus(model.status),
            invoice_date=model.invoice_date,
            net=Money(model.net_cents, model.currency),
            vat=Money(model.vat_cents, model.currency),
            gross=Money(model.gross_cents, model.currency),
            vat_treatment=VatTreatment(model.vat_treatment),
            client_country=client.country if client is not None else "DE",
            client_vat_id=client.vat_id if client is not None else None,
            zm_reportable=model.zm_reportable,
        )


@dataclass(frozen=True)
class AllocationShares:
    """Percentage split of an expense across freelance, trade and personal use."""

    freiberuf_pct: Decimal
    gewerbe_pct: Decimal
    personal_pct: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        for name in ("freiberuf_pct", "gewerbe_pct", "personal_pct"):
            value = getattr(self, name)
            if value < 0 or value > 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        total = self.freiberuf_pct + self.gewerbe_pct + self.personal_pct
        if total != Decimal("100"):
            raise ValueError(f"Allocation percentages must sum to 100, got {total}")

    def percent_for(self, stream: IncomeStream) -> Decimal:
        if stream == IncomeStream.FREIBERUF:
            return self.freiberuf_pct
        if stream == IncomeStream.GEWERBE:
            return self.gewerbe_pct
        return Decimal("0")


@dataclass(frozen=True)
class ExpenseRecord:
    """Snapshot of a recorded expense. ``allocation`` is None when unallocated."""

    expense_id: str
    expense_date: date
    gross: Money
    vat_rate: Decimal
    allocation: AllocationShares | None = None

    @classmethod
    def from_model(cls, model: ExpenseEntryModel) -> ExpenseRecord:
        rule = model.allocation_rule
        shares = None
        if rule is not None:
            shares = AllocationShares(
                freiberuf_pct=rule.freiberuf_pct,
                gewerbe_pct=rule.gewerbe_pct,
                personal_pct=rule.personal_pct,
            )
        return cls(
            expense_id=str(model.id),
            expense_date=model.expense_date,
            gross=Money(model.gross_cents, model.currency),
            vat_rate=model.vat_rate,
            allocation=shares,
        )


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VatSummary:
    """Return-ready VAT figures for one period."""

    date_range: DateRange
    stream: IncomeStream | None
    output_vat: Money
    input_vat: Money
    net_payable: Money
    small_business: bool
    freiberuf_output_vat: Money
    gewerbe_output_vat: Money
    freiberuf_input_vat: Money
    gewerbe_input_vat: Money
    invoice_count: int
    expense_count: int


@dataclass(frozen=True)
class ThresholdStatus:
    """Small-business threshold evaluation. Ratios carry four fraction digits."""

    current_revenue: Money
    current_limit: Money
    current_ratio: Decimal
    projected_revenue: Money
    projected_limit: Money
    projected_ratio: Decimal
    current_exceeded: bool
    projected_exceeded: bool
    warning_ratio: Decimal
    current_warning: bool
    projected_warning: bool


@dataclass(frozen=True)
class ThresholdAlert:
    kind: str  # "current" or "projected"
    revenue: Money
    limit: Money
    ratio: Decimal
    exceeded: bool


@dataclass(frozen=True)
class CrossBorderLine:
    country: str
    tax_id: str | None
    net_total: Money
    invoice_count: int


@dataclass(frozen=True)
class ZmReport:
    period: DateRange
    lines: tuple[CrossBorderLine, ...]
    total_net: Money
    total_invoices: int


# ---------------------------------------------------------------------------
# Boundary views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceView:
    """Read-only view of an invoice returned across the public boundary."""

    invoice_id: str
    user_id: str
    number: str | None
    stream: IncomeStream
    fiscal_year: int
    ordinal: int | None
    status: InvoiceStatus
    client_id: str
    invoice_date: date
    due_date: date | None
    net: Money
    vat: Money
    gross: Money
    vat_treatment: VatTreatment
    notes: str | None
    zm_reportable: bool
    lines: tuple[LineTotals, ...]
    issued_at: datetime | None
    status_changed_at: datetime | None

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceView:
        currency = model.currency
        lines = tuple(
            LineTotals(
                position=line.position,
                description=line.description,
                quantity=line.quantity,
                unit_price=Money(line.unit_price_cents, currency),
                vat_rate=line.vat_rate,
                net=Money(line.net_cents, currency),
                vat=Money(line.vat_cents, currency),
                gross=Money(line.gross_cents, currency),
            )
            for line in sorted(model.lines, key=lambda l: l.position)
        )
        return cls(
            invoice_id=str(model.id),
            user_id=str(model.user_id),
            number=model.number,
            stream=IncomeStream(model.stream),
            fiscal_year=model.fiscal_year,
            ordinal=model.sequence_ordinal,
            status=InvoiceStatus(model.status),
            client_id=str(model.client_id),
            invoice_date=model.invoice_date,
            due_date=model.due_date,
            net=Money(model.net_cents, currency),
            vat=Money(model.vat_cents, currency),
            gross=Money(model.gross_cents, currency),
            vat_treatment=VatTreatment(model.vat_treatment),
            notes=model.notes,
            zm_reportable=model.zm_reportable,
            lines=lines,
            issued_at=model.issued_at,
            status_changed_at=model.status_changed_at,
        )


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditEvent:
    """Payload handed to the audit sink. Persisting it is the sink's job."""

    action: str
    entity_type: str
    entity_id: str
    user_id: str
    occurred_at: datetime
    from_state: str | None = None
    to_state: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))


@dataclass(frozen=True)
class VatReturnView:
    """Read-only view of a periodic VAT return."""

    return_id: str
    user_id: str
    fiscal_year: int
    period_type: str
    period_number: int
    output_vat: Money
    input_vat: Money
    net_payable: Money
    status: str
    submitted_on: date | None

    @classmethod
    def from_model(cls, model: VatReturnModel) -> VatReturnView:
        return cls(
            return_id=str(model.id),
            user_id=str(model.user_id),
            fiscal_year=model.fiscal_year,
            period_type=model.period_type,
            period_number=model.period_number,
            output_vat=Money(model.output_vat_cents, model.currency),
            input_vat=Money(model.input_vat_cents, model.currency),
            net_payable=Money(model.net_payable_cents, model.currency),
            status=model.status,
            submitted_on=model.submitted_on,
        )
