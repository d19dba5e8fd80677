"""Tests for income streams, invoice number format, periods and DTO invariants."""

from datetime import date
from decimal import Decimal

import pytest

from dreistrom_kernel.domain.dtos import AllocationShares, AuditEvent, DateRange
from dreistrom_kernel.domain.periods import (
    PeriodType,
    coerce_period_type,
    period_bounds,
    periods_in_year,
)
from dreistrom_kernel.domain.streams import (
    IncomeStream,
    coerce_stream,
    format_invoice_number,
    is_invoiceable,
)
from dreistrom_kernel.exceptions import InvalidArgumentError, ValidationError


class TestStreams:

    def test_coerce_accepts_lowercase(self):
        assert coerce_stream("freiberuf") is IncomeStream.FREIBERUF

    def test_coerce_rejects_unknown(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            coerce_stream("HOBBY")
        assert exc_info.value.context["field"] == "stream"
        assert exc_info.value.context["value"] == "HOBBY"
        assert isinstance(exc_info.value, ValidationError)
        assert not isinstance(exc_info.value, ValueError)

    def test_employment_is_not_invoiceable(self):
        assert not is_invoiceable(IncomeStream.EMPLOYMENT)
        assert is_invoiceable("GEWERBE")


class TestFormatInvoiceNumber:

    @pytest.mark.parametrize(
        "stream,year,ordinal,expected",
        [
            ("FREIBERUF", 2026, 1, "FR-2026-001"),
            ("GEWERBE", 2026, 42, "GW-2026-042"),
            ("FREIBERUF", 2027, 999, "FR-2027-999"),
            ("FREIBERUF", 2026, 1000, "FR-2026-1000"),
        ],
    )
    def test_format(self, stream, year, ordinal, expected):
        assert format_invoice_number(stream, year, ordinal) == expected

    def test_custom_padding(self):
        assert format_invoice_number("GEWERBE", 2026, 7, padding=5) == "GW-2026-00007"

    def test_employment_has_no_number(self):
        with pytest.raises(InvalidArgumentError):
            format_invoice_number("EMPLOYMENT", 2026, 1)

    def test_ordinal_must_be_positive(self):
        with pytest.raises(InvalidArgumentError):
            format_invoice_number("FREIBERUF", 2026, 0)


class TestPeriodBounds:

    def test_monthly_february_leap_year(self):
        assert period_bounds(2028, "MONTHLY", 2) == DateRange(date(2028, 2, 1), date(2028, 2, 29))

    def test_quarters(self):
        assert period_bounds(2026, PeriodType.QUARTERLY, 1) == DateRange(
            date(2026, 1, 1), date(2026, 3, 31)
        )
        assert period_bounds(2026, PeriodType.QUARTERLY, 4) == DateRange(
            date(2026, 10, 1), date(2026, 12, 31)
        )

    def test_annual(self):
        assert period_bounds(2026, "ANNUAL", 1) == DateRange(date(2026, 1, 1), date(2026, 12, 31))

    @pytest.mark.parametrize("ptype,number", [("MONTHLY", 13), ("QUARTERLY", 0), ("ANNUAL", 2)])
    def test_out_of_range(self, ptype, number):
        with pytest.raises(InvalidArgumentError) as exc_info:
            period_bounds(2026, ptype, number)
        assert exc_info.value.field == "period_number"
        assert exc_info.value.value == number

    def test_unknown_period_type(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            period_bounds(2026, "WEEKLY", 1)
        assert exc_info.value.field == "period_type"

    def test_coerce_period_type_accepts_lowercase(self):
        assert coerce_period_type("quarterly") is PeriodType.QUARTERLY

    def test_periods_in_year(self):
        assert [periods_in_year(p) for p in PeriodType] == [12, 4, 1]


class TestDateRange:

    def test_inclusive_bounds(self):
        q1 = DateRange(date(2026, 1, 1), date(2026, 3, 31))
        assert q1.contains(date(2026, 1, 1))
        assert q1.contains(date(2026, 3, 31))
        assert not q1.contains(date(2026, 4, 1))

    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2026, 2, 1), date(2026, 1, 1))

    def test_within(self):
        year = DateRange(date(2026, 1, 1), date(2026, 12, 31))
        assert DateRange(date(2026, 4, 1), date(2026, 6, 30)).within(year)
        assert not DateRange(date(2025, 12, 1), date(2026, 1, 31)).within(year)


class TestAllocationShares:

    def test_must_sum_to_hundred(self):
        with pytest.raises(ValueError):
            AllocationShares(Decimal("60"), Decimal("30"))

    def test_percent_for_streams(self):
        shares = AllocationShares(Decimal("50"), Decimal("30"), Decimal("20"))
        assert shares.percent_for(IncomeStream.FREIBERUF) == Decimal("50")
        assert shares.percent_for(IncomeStream.GEWERBE) == Decimal("30")
        assert shares.percent_for(IncomeStream.EMPLOYMENT) == Decimal("0")

    def test_negative_share_rejected(self):
        with pytest.raises(ValueError):
            AllocationShares(Decimal("110"), Decimal("-10"))


class TestAuditEvent:

    def test_payload_is_read_only(self, deterministic_clock):
        event = AuditEvent(
            action="issue",
            entity_type="Invoice",
            entity_id="inv-1",
            user_id="user-1",
            occurred_at=deterministic_clock.now(),
            payload={"number": "FR-2026-001"},
        )
        with pytest.raises(TypeError):
            event.payload["number"] = "FR-2026-002"
