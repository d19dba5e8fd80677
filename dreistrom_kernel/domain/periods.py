"""VAT return periods (monthly, quarterly, annual) and their date bounds."""

from __future__ import annotations

import calendar
from datetime import date
from enum import Enum

from dreistrom_kernel.domain.dtos import DateRange
from dreistrom_kernel.exceptions import InvalidArgumentError


class PeriodType(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


_PERIODS_PER_YEAR: dict[PeriodType, int] = {
    PeriodType.MONTHLY: 12,
    PeriodType.QUARTERLY: 4,
    PeriodType.ANNUAL: 1,
}


def coerce_period_type(value: PeriodType | str) -> PeriodType:
    if isinstance(value, PeriodType):
        return value
    try:
        return PeriodType(str(value).upper())
    except ValueError:
        raise InvalidArgumentError("period_type", value, "unknown period type") from None


def period_bounds(year: int, period_type: PeriodType | str, number: int) -> DateRange:
    """
    Inclusive date range of period ``number`` (1-based) in ``year``.

    Raises:
        InvalidArgumentError: Unknown ``period_type``, or ``number`` outside
            1..periods-per-year.
    """
    ptype = coerce_period_type(period_type)
    count = _PERIODS_PER_YEAR[ptype]
    if not 1 <= number <= count:
        raise InvalidArgumentError(
            "period_number", number, f"{ptype.value} periods run from 1 to {count}"
        )
    if ptype == PeriodType.ANNUAL:
        return DateRange(date(year, 1, 1), date(year, 12, 31))
    months = 12 // count
    first_month = (number - 1) * months + 1
    last_month = first_month + months - 1
    last_day = calendar.monthrange(year, last_month)[1]
    return DateRange(date(year, first_month, 1), date(year, last_month, last_day))


def periods_in_year(period_type: PeriodType | str) -> int:
    return _PERIODS_PER_YEAR[coerce_period_type(period_type)]
