"""
Tests for the small-business threshold evaluator.

Verifies:
- Ratios are HALF_UP to four fraction digits
- Exceeded is strict and computed on exact cents
- Warning flags and alerts follow the warning ratio
- Annual projection from year-to-date revenue
"""

from datetime import date
from decimal import Decimal

import pytest

from dreistrom_engines.threshold import ThresholdEvaluator, project_annual_revenue
from dreistrom_kernel.domain.money import Money
from dreistrom_kernel.exceptions import InvalidAmountError


def eur(text: str) -> Money:
    return Money.from_decimal_string(text)


CURRENT_LIMIT = eur("25000.00")
PROJECTED_LIMIT = eur("100000.00")


@pytest.fixture
def evaluator() -> ThresholdEvaluator:
    return ThresholdEvaluator()


class TestEvaluate:

    def test_below_both_limits(self, evaluator):
        status = evaluator.evaluate(eur("24000.00"), CURRENT_LIMIT, eur("30000.00"), PROJECTED_LIMIT)
        assert status.current_ratio == Decimal("0.9600")
        assert status.projected_ratio == Decimal("0.3000")
        assert not status.current_exceeded
        assert not status.projected_exceeded

    def test_exactly_at_limit_is_not_exceeded(self, evaluator):
        status = evaluator.evaluate(CURRENT_LIMIT, CURRENT_LIMIT, eur("0"), PROJECTED_LIMIT)
        assert status.current_ratio == Decimal("1.0000")
        assert not status.current_exceeded

    def test_one_cent_over_is_exceeded(self, evaluator):
        status = evaluator.evaluate(eur("25000.01"), CURRENT_LIMIT, eur("0"), PROJECTED_LIMIT)
        assert status.current_ratio == Decimal("1.0000")
        assert status.current_exceeded

    def test_ratio_rounds_half_up(self, evaluator):
        # 0.15 / 1000.00 = 0.00015
        status = evaluator.evaluate(eur("0.15"), eur("1000.00"), eur("0"), PROJECTED_LIMIT)
        assert status.current_ratio == Decimal("0.0002")

    def test_warning_flags(self, evaluator):
        status = evaluator.evaluate(
            eur("20000.00"), CURRENT_LIMIT, eur("79000.00"), PROJECTED_LIMIT, Decimal("0.80")
        )
        assert status.current_warning
        assert not status.projected_warning

    def test_default_warning_ratio(self, evaluator):
        status = evaluator.evaluate(eur("0"), CURRENT_LIMIT, eur("0"), PROJECTED_LIMIT)
        assert status.warning_ratio == Decimal("0.80")

    @pytest.mark.parametrize(
        "current,limit",
        [(eur("-1.00"), CURRENT_LIMIT), (eur("1.00"), eur("0")), (eur("1.00"), eur("-5.00"))],
    )
    def test_rejects_bad_amounts(self, evaluator, current, limit):
        with pytest.raises(InvalidAmountError):
            evaluator.evaluate(current, limit, eur("0"), PROJECTED_LIMIT)

    @pytest.mark.parametrize("ratio", ["0", "1.5", "-0.2"])
    def test_rejects_bad_warning_ratio(self, evaluator, ratio):
        with pytest.raises(InvalidAmountError):
            evaluator.evaluate(eur("0"), CURRENT_LIMIT, eur("0"), PROJECTED_LIMIT, ratio)


class TestAlerts:

    def test_alert_per_side_over_warning(self, evaluator):
        status = evaluator.evaluate(eur("26000.00"), CURRENT_LIMIT, eur("90000.00"), PROJECTED_LIMIT)
        alerts = evaluator.alerts(status)
        assert [a.kind for a in alerts] == ["current", "projected"]
        assert alerts[0].exceeded
        assert not alerts[1].exceeded

    def test_no_alerts_when_quiet(self, evaluator):
        status = evaluator.evaluate(eur("100.00"), CURRENT_LIMIT, eur("100.00"), PROJECTED_LIMIT)
        assert evaluator.alerts(status) == []


class TestProjection:

    def test_mid_year_extrapolation(self):
        # 2026 is not a leap year; 1 July is day 182
        projected = project_annual_revenue(eur("10000.00"), 2026, date(2026, 7, 1))
        assert projected.minor_units == 2005495

    def test_past_year_is_final(self):
        assert project_annual_revenue(eur("12345.67"), 2025, date(2026, 3, 1)) == eur("12345.67")

    def test_last_day_of_year_is_identity(self):
        assert project_annual_revenue(eur("500.00"), 2028, date(2028, 12, 31)) == eur("500.00")
