"""Tests for ThresholdService and CrossBorderService over stored invoices."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from dreistrom_kernel.domain.clock import DeterministicClock
from dreistrom_kernel.domain.dtos import DateRange
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.services.cross_border_service import CrossBorderService
from dreistrom_kernel.services.threshold_service import ThresholdService

YEAR_2026 = DateRange(date(2026, 1, 1), date(2026, 12, 31))


def eur(text: str) -> Money:
    return Money.from_decimal_string(text)


@pytest.fixture
def threshold_service(session, deterministic_clock) -> ThresholdService:
    return ThresholdService(session, deterministic_clock)


class TestThresholdService:

    def test_revenue_is_gross_of_issued_and_paid(
        self, threshold_service, invoice_service, create_client, user_id, line
    ):
        client = create_client()
        paid = invoice_service.create_invoice(user_id, "FREIBERUF", client.id, [line(unit_price="1000.00")])
        invoice_service.mark_paid(paid.invoice_id, user_id)
        cancelled = invoice_service.create_invoice(user_id, "FREIBERUF", client.id, [line()])
        invoice_service.cancel(cancelled.invoice_id, user_id)
        invoice_service.save_draft(user_id, "FREIBERUF", client.id, [line()])
        invoice_service.create_invoice(
            user_id, "GEWERBE", create_client(stream="GEWERBE").id, [line(unit_price="500.00")]
        )

        assert threshold_service.revenue_for_year(user_id, 2026) == eur("1785.00")
        assert threshold_service.revenue_for_year(user_id, 2025).is_zero

    def test_status_with_explicit_projection(
        self, threshold_service, invoice_service, create_client, user_id, line
    ):
        invoice_service.create_invoice(
            user_id, "FREIBERUF", create_client().id, [line(unit_price="24000.00", vat_rate="0")],
            vat_treatment="REGULAR",
        )
        status = threshold_service.status(user_id, 2026, projected=eur("30000.00"))
        assert status.current_ratio == Decimal("0.9600")
        assert status.projected_ratio == Decimal("0.3000")
        assert not status.current_exceeded
        assert status.current_warning

    def test_projection_from_clock(
        self, session, invoice_service, create_client, user_id, line
    ):
        clock = DeterministicClock(datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc))
        invoice_service.create_invoice(
            user_id, "FREIBERUF", create_client().id, [line(unit_price="10000.00", vat_rate="0")],
            invoice_date=date(2026, 3, 1),
        )
        status = ThresholdService(session, clock).status(user_id, 2026)
        assert status.projected_revenue.minor_units == 2005495

    def test_alerts_logged(
        self, threshold_service, invoice_service, create_client, user_id, line, captured_logs
    ):
        invoice_service.create_invoice(
            user_id, "FREIBERUF", create_client().id, [line(unit_price="26000.00", vat_rate="0")]
        )
        alerts = threshold_service.check_alerts(user_id, 2026, projected=eur("26000.00"))

        assert [a.kind for a in alerts] == ["current"]
        assert alerts[0].exceeded
        records = [r for r in captured_logs() if r["message"] == "small_business_threshold_alert"]
        assert records[0]["level"] == "WARNING"
        assert records[0]["kind"] == "current"

    def test_custom_limits(self, session, deterministic_clock, user_id):
        service = ThresholdService(
            session, deterministic_clock,
            current_limit=eur("22000.00"), projected_limit=eur("50000.00"),
            warning_ratio=Decimal("0.5"),
        )
        status = service.status(user_id, 2026, projected=eur("25000.00"))
        assert status.current_limit == eur("22000.00")
        assert status.projected_ratio == Decimal("0.5000")
        assert status.projected_warning


class TestCrossBorderService:

    def test_report_groups_reverse_charge_invoices(
        self, session, invoice_service, create_client, user_id, line
    ):
        vienna = create_client(name="Wien GmbH", stream="GEWERBE", country="AT", vat_id="ATU1")
        dublin = create_client(name="Dublin Ltd", stream="GEWERBE", country="IE", vat_id="IE1")
        local = create_client(stream="GEWERBE")
        for client, net in ((vienna, "100.00"), (vienna, "50.00"), (dublin, "70.00")):
            invoice_service.create_invoice(
                user_id, "GEWERBE", client.id, [line(unit_price=net, vat_rate="0")]
            )
        invoice_service.create_invoice(user_id, "GEWERBE", local.id, [line()])

        report = CrossBorderService(session).report(user_id, YEAR_2026)

        assert [(l.country, l.tax_id, l.net_total.minor_units, l.invoice_count) for l in report.lines] == [
            ("AT", "ATU1", 15000, 2),
            ("IE", "IE1", 7000, 1),
        ]
        assert report.total_net.minor_units == 22000
        assert report.total_invoices == 3

    def test_platform_provider_included(self, session, invoice_service, create_client, user_id, line):
        apple = create_client(name="Apple Distribution International", stream="GEWERBE", country="IE")
        invoice_service.create_invoice(user_id, "GEWERBE", apple.id, [line()])

        report = CrossBorderService(session).report(user_id, YEAR_2026)
        assert report.total_invoices == 1
        assert report.lines[0].tax_id is None

    def test_cancelled_excluded(self, session, invoice_service, create_client, user_id, line):
        vienna = create_client(stream="GEWERBE", country="AT", vat_id="ATU1")
        view = invoice_service.create_invoice(user_id, "GEWERBE", vienna.id, [line(vat_rate="0")])
        invoice_service.cancel(view.invoice_id, user_id)

        report = CrossBorderService(session).report(user_id, YEAR_2026)
        assert report.lines == ()
        assert report.total_net.is_zero

    def test_other_user_sees_nothing(self, session, invoice_service, create_client, user_id, line):
        vienna = create_client(stream="GEWERBE", country="AT", vat_id="ATU1")
        invoice_service.create_invoice(user_id, "GEWERBE", vienna.id, [line(vat_rate="0")])
        assert CrossBorderService(session).report(uuid4(), YEAR_2026).total_invoices == 0
