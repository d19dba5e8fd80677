"""
Threshold Evaluator -- small-business (Kleinunternehmer) eligibility.

Pure function of its inputs. Revenue is supplied by the caller; this module
never derives it from storage, so it can be tested in isolation.

    ratio    = revenue / limit, HALF_UP to four fraction digits
    exceeded = revenue > limit  (strict, on exact cents)
    warning  = ratio >= warning_ratio

The exceeded flags are computed from the exact amounts, not from the rounded
ratio, so a revenue one cent above the limit is exceeded even though its
ratio rounds to 1.0000.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from dreistrom_engines.tracer import traced_engine
from dreistrom_kernel.domain.dtos import ThresholdAlert, ThresholdStatus
from dreistrom_kernel.domain.money import Money, round_half_up, to_ratio
from dreistrom_kernel.exceptions import InvalidAmountError
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("engines.threshold")

RATIO_QUANTUM = Decimal("0.0001")
DEFAULT_WARNING_RATIO = Decimal("0.80")


@dataclass(frozen=True)
class _Side:
    ratio: Decimal
    exceeded: bool


def _evaluate_side(revenue: Money, limit: Money, field: str) -> _Side:
    if revenue.is_negative:
        raise InvalidAmountError(revenue, f"{field} revenue must not be negative")
    if not limit.is_positive:
        raise InvalidAmountError(limit, f"{field} limit must be positive")
    ratio = (Decimal(revenue.minor_units) / Decimal(limit.minor_units)).quantize(
        RATIO_QUANTUM, rounding=ROUND_HALF_UP
    )
    return _Side(ratio=ratio, exceeded=revenue > limit)


class ThresholdEvaluator:
    """Stateless; every call computes fresh."""

    @traced_engine(
        "threshold",
        "1.0",
        fingerprint_fields=(
            "current_revenue", "current_limit",
            "projected_revenue", "projected_limit", "warning_ratio",
        ),
    )
    def evaluate(
        self,
        current_revenue: Money,
        current_limit: Money,
        projected_revenue: Money,
        projected_limit: Money,
        warning_ratio: Decimal | str | None = None,
    ) -> ThresholdStatus:
        """
        Evaluate both years.

        Raises:
            InvalidAmountError: negative revenue, non-positive limit or a
                warning ratio outside 0..1.
        """
        warn = DEFAULT_WARNING_RATIO if warning_ratio is None else to_ratio(
            warning_ratio, field="warning_ratio"
        )
        if warn <= 0 or warn > 1:
            raise InvalidAmountError(warning_ratio, "warning ratio must be in (0, 1]")

        current = _evaluate_side(current_revenue, current_limit, "current")
        projected = _evaluate_side(projected_revenue, projected_limit, "projected")

        return ThresholdStatus(
            current_revenue=current_revenue,
            current_limit=current_limit,
            current_ratio=current.ratio,
            projected_revenue=projected_revenue,
            projected_limit=projected_limit,
            projected_ratio=projected.ratio,
            current_exceeded=current.exceeded,
            projected_exceeded=projected.exceeded,
            warning_ratio=warn,
            current_warning=current.ratio >= warn,
            projected_warning=projected.ratio >= warn,
        )

    def alerts(self, status: ThresholdStatus) -> list[ThresholdAlert]:
        """Alerts for each side whose ratio reached the warning ratio."""
        result: list[ThresholdAlert] = []
        if status.current_warning:
            result.append(ThresholdAlert(
                kind="current",
                revenue=status.current_revenue,
                limit=status.current_limit,
                ratio=status.current_ratio,
                exceeded=status.current_exceeded,
            ))
        if status.projected_warning:
            result.append(ThresholdAlert(
                kind="projected",
                revenue=status.projected_revenue,
                limit=status.projected_limit,
                ratio=status.projected_ratio,
                exceeded=status.projected_exceeded,
            ))
        return result


def project_annual_revenue(revenue: Money, year: int, today: date) -> Money:
    """
    Extrapolate year-to-date revenue to a full year.

    For the current year: ``revenue * days_in_year / day_of_year`` (HALF_UP).
    For a past year the actual revenue is final. For a future year nothing
    has been earned yet, so the revenue is returned unchanged.
    """
    if year != today.year:
        return revenue
    days_in_year = 366 if calendar.isleap(year) else 365
    day_of_year = today.timetuple().tm_yday
    cents = round_half_up(Decimal(revenue.minor_units) * days_in_year / day_of_year)
    return Money(cents, revenue.currency)
