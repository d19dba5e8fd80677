"""
Tests for the FiscalCore boundary.

Every call runs in its own committed transaction, so these tests never hold
the shared ``session`` fixture open; clients are committed through
``session_scope`` before the boundary is called.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from dreistrom_config import get_active_config
from dreistrom_kernel.db.engine import session_scope
from dreistrom_kernel.domain.dtos import DateRange
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.exceptions import (
    AllocationTimeoutError,
    DreistromError,
    ImmutabilityViolationError,
    InvalidAmountError,
    InvalidArgumentError,
    NotFoundError,
    StateConflictError,
)
from dreistrom_kernel.models.client import Client
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector
from dreistrom_services import CoreResult, FiscalCore, ResultStatus, status_for

Q1 = DateRange(date(2026, 1, 1), date(2026, 3, 31))


def eur(text: str) -> Money:
    return Money.from_decimal_string(text)


@pytest.fixture
def core(session_factory, deterministic_clock, audit_sink) -> FiscalCore:
    return FiscalCore(session_factory, deterministic_clock, get_active_config(), audit_sink)


@pytest.fixture
def committed_client(session_factory, user_id):
    """Commit a client for ``user_id`` and return its id."""

    def _create(stream="FREIBERUF", country="DE", vat_id=None, name="Muster GmbH") -> UUID:
        with session_scope(session_factory) as session:
            client = Client(
                user_id=user_id,
                name=name,
                stream=stream,
                country=country,
                client_type="B2B",
                vat_id=vat_id,
            )
            session.add(client)
            session.flush()
            return client.id

    return _create


class TestStatusMapping:

    @pytest.mark.parametrize(
        "error, status",
        [
            (InvalidAmountError("x", "bad"), ResultStatus.INVALID),
            (InvalidArgumentError("stream", "HOBBY", "unknown"), ResultStatus.INVALID),
            (NotFoundError("Invoice", "1"), ResultStatus.NOT_FOUND),
            (StateConflictError("Invoice", "1", "PAID", "cancel"), ResultStatus.CONFLICT),
            (AllocationTimeoutError("FREIBERUF", 2026, 5000), ResultStatus.BUSY),
            (ImmutabilityViolationError("Invoice", "1", "number"), ResultStatus.FORBIDDEN),
            (DreistromError("boom"), ResultStatus.ERROR),
        ],
    )
    def test_status_for(self, error, status):
        assert status_for(error) == status

    def test_timeout_is_busy_and_retryable(self):
        result = CoreResult.from_error(AllocationTimeoutError("GEWERBE", 2026, 250))
        assert result.status == ResultStatus.BUSY
        assert result.retryable
        assert result.error_code == "ALLOCATION_TIMEOUT"
        assert dict(result.context) == {"stream": "GEWERBE", "fiscal_year": 2026, "timeout_ms": 250}

    def test_context_is_read_only(self):
        result = CoreResult.from_error(NotFoundError("Client", "abc"))
        with pytest.raises(TypeError):
            result.context["entity_id"] = "other"

    def test_ok(self):
        result = CoreResult.ok(42)
        assert result.is_success
        assert result.value == 42
        assert result.error_code is None


class TestInvoices:

    def test_create_invoice(self, core, committed_client, user_id, line, audit_sink):
        result = core.create_invoice(user_id, "FREIBERUF", committed_client(), [line()])

        assert result.is_success
        assert result.value.number == "FR-2026-001"
        assert result.value.gross.minor_units == 11900
        assert audit_sink.actions() == ["issue"]

    def test_numbers_are_committed(self, core, committed_client, user_id, line):
        client_id = committed_client()
        numbers = [
            core.create_invoice(user_id, "FREIBERUF", client_id, [line()]).value.number
            for _ in range(3)
        ]
        assert numbers == ["FR-2026-001", "FR-2026-002", "FR-2026-003"]

    def test_configured_padding(self, session_factory, deterministic_clock, committed_client, user_id, line):
        config = get_active_config()
        config = replace(config, numbering=replace(config.numbering, ordinal_padding=4))
        core = FiscalCore(session_factory, deterministic_clock, config)

        result = core.create_invoice(user_id, "GEWERBE", committed_client(stream="GEWERBE"), [line()])
        assert result.value.number == "GW-2026-0001"

    def test_invalid_invoice(self, core, committed_client, user_id, line):
        result = core.create_invoice(
            user_id, "FREIBERUF", committed_client(country="US"), [line(), line(vat_rate="0")]
        )

        assert result.status == ResultStatus.INVALID
        assert result.error_code == "INVALID_INVOICE"
        assert result.context["violations"] == ("vat_rate_must_be_zero:1",)
        assert not result.retryable

    def test_rejected_invoice_consumes_no_number(self, core, committed_client, user_id, line):
        client_id = committed_client()
        core.create_invoice(user_id, "FREIBERUF", client_id, [line(quantity="0")])
        assert core.create_invoice(user_id, "FREIBERUF", client_id, [line()]).value.number == "FR-2026-001"

    def test_unknown_stream_is_invalid(self, core, committed_client, user_id, line):
        result = core.create_invoice(user_id, "BOGUS", committed_client(), [line()])

        assert result.status == ResultStatus.INVALID
        assert result.error_code == "INVALID_ARGUMENT"
        assert dict(result.context) == {
            "field": "stream",
            "value": "BOGUS",
            "reason": "unknown income stream",
        }

    def test_unknown_vat_treatment_is_invalid(self, core, committed_client, user_id, line):
        client_id = committed_client()
        result = core.create_invoice(user_id, "FREIBERUF", client_id, [line()], vat_treatment="NOPE")

        assert result.status == ResultStatus.INVALID
        assert result.context["field"] == "vat_treatment"
        assert result.context["value"] == "NOPE"
        assert core.create_invoice(user_id, "FREIBERUF", client_id, [line()]).value.number == "FR-2026-001"

    def test_unknown_client(self, core, user_id, line):
        result = core.create_invoice(user_id, "FREIBERUF", uuid4(), [line()])
        assert result.status == ResultStatus.NOT_FOUND
        assert result.context["entity_type"] == "Client"

    def test_mark_paid_then_cancel_conflicts(self, core, committed_client, user_id, line):
        invoice = core.create_invoice(user_id, "FREIBERUF", committed_client(), [line()]).value

        paid = core.mark_paid(invoice.invoice_id, user_id)
        assert paid.value.status == "PAID"

        result = core.cancel(invoice.invoice_id, user_id)
        assert result.status == ResultStatus.CONFLICT
        assert result.context["current_state"] == "PAID"
        assert result.context["requested"] == "cancel"

    def test_cancel(self, core, committed_client, user_id, line):
        invoice = core.create_invoice(user_id, "FREIBERUF", committed_client(), [line()]).value
        assert core.cancel(invoice.invoice_id, user_id).value.status == "CANCELLED"

    def test_failure_is_logged(self, core, user_id, line, captured_logs):
        core.create_invoice(user_id, "FREIBERUF", uuid4(), [line()])

        records = [r for r in captured_logs() if r["message"] == "boundary_call_failed"]
        assert len(records) == 1
        assert records[0]["operation"] == "create_invoice"
        assert records[0]["error_code"] == "NOT_FOUND"
        assert records[0]["result_status"] == "not_found"
        assert records[0]["user_id"] == str(user_id)


class TestVat:

    def test_summarize_vat(self, core, committed_client, user_id, line):
        core.create_invoice(
            user_id, "FREIBERUF", committed_client(), [line(unit_price="1000.00")],
            invoice_date=date(2026, 2, 1),
        )
        result = core.summarize_vat(user_id, None, Q1)

        assert result.is_success
        assert result.value.output_vat.minor_units == 19000
        assert result.value.net_payable.minor_units == 19000

    def test_record_expense_uses_configured_rate(self, core, user_id):
        result = core.record_expense(user_id, eur("119.00"), date(2026, 2, 1), "office")
        assert result.value.vat_rate == Decimal("0.19")
        assert result.value.allocation is None

    def test_record_expense_with_unknown_rule(self, core, user_id):
        result = core.record_expense(
            user_id, eur("119.00"), date(2026, 2, 1), "office", allocation_rule_id=uuid4()
        )
        assert result.status == ResultStatus.NOT_FOUND

    def test_generate_vat_return(self, core, committed_client, user_id, line, audit_sink):
        core.create_invoice(user_id, "FREIBERUF", committed_client(), [line()])
        result = core.generate_vat_return(user_id, 2026, "QUARTERLY", 1)

        assert result.value.status == "DRAFT"
        assert result.value.output_vat.minor_units == 1900
        assert audit_sink.actions()[-1] == "generate"

    @pytest.mark.parametrize(
        "period_type, number, field",
        [
            ("MONTHLY", 13, "period_number"),
            ("QUARTERLY", 5, "period_number"),
            ("WEEKLY", 1, "period_type"),
        ],
    )
    def test_bad_period_is_invalid(self, core, user_id, period_type, number, field):
        result = core.generate_vat_return(user_id, 2026, period_type, number)

        assert result.status == ResultStatus.INVALID
        assert result.error_code == "INVALID_ARGUMENT"
        assert result.context["field"] == field
        assert not result.retryable

    def test_unknown_stream_filter_is_invalid(self, core, user_id):
        result = core.summarize_vat(user_id, "HOBBY", Q1)
        assert result.status == ResultStatus.INVALID
        assert result.context["value"] == "HOBBY"


class TestThresholdAndZm:

    def test_evaluate_threshold(self, core):
        result = core.evaluate_threshold(
            eur("20000.00"), eur("25000.00"), eur("30000.00"), eur("100000.00")
        )
        assert result.value.current_ratio == Decimal("0.8000")
        assert result.value.current_warning
        assert not result.value.projected_warning

    def test_evaluate_threshold_rejects_negative_revenue(self, core):
        result = core.evaluate_threshold(
            eur("-1.00"), eur("25000.00"), eur("0.00"), eur("100000.00")
        )
        assert result.status == ResultStatus.INVALID
        assert result.error_code == "INVALID_AMOUNT"

    def test_threshold_status(self, core, committed_client, user_id, line):
        core.create_invoice(
            user_id, "FREIBERUF", committed_client(), [line(unit_price="26000.00", vat_rate="0")]
        )
        result = core.threshold_status(user_id, 2026, projected=eur("26000.00"))

        assert result.value.current_limit == eur("25000.00")
        assert result.value.current_exceeded
        assert not result.value.projected_exceeded

    def test_cross_border_report(self, core, committed_client, user_id, line):
        vienna = committed_client(stream="GEWERBE", country="AT", vat_id="ATU1")
        core.create_invoice(user_id, "GEWERBE", vienna, [line(vat_rate="0")])

        report = core.cross_border_report(user_id, Q1).value
        assert [(l.country, l.tax_id, l.invoice_count) for l in report.lines] == [("AT", "ATU1", 1)]

    def test_aggregate_cross_border(self, core, session_factory, committed_client, user_id, line):
        vienna = committed_client(stream="GEWERBE", country="AT", vat_id="ATU1")
        core.create_invoice(user_id, "GEWERBE", vienna, [line(unit_price="80.00", vat_rate="0")])
        core.create_invoice(user_id, "GEWERBE", vienna, [line(unit_price="20.00", vat_rate="0")])
        with session_scope(session_factory) as session:
            records = InvoiceSelector(session).zm_reportable_in_range(user_id, Q1)

        lines = core.aggregate_cross_border(records).value
        assert [(l.tax_id, l.net_total.minor_units, l.invoice_count) for l in lines] == [
            ("ATU1", 10000, 2)
        ]

    def test_aggregate_empty(self, core):
        assert core.aggregate_cross_border([]).value == []
