"""
ThresholdService -- small-business eligibility from stored revenue.

Sums the gross totals of issued and paid invoices across the freelance and
trade streams for a calendar year and feeds them, with the configured
limits, to the pure ThresholdEvaluator. Computed fresh on every call,
nothing is cached or stored.

Limits are injected (``dreistrom_config`` supplies them at the boundary);
the kernel never reads configuration itself.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_engines.threshold import (
    DEFAULT_WARNING_RATIO,
    ThresholdEvaluator,
    project_annual_revenue,
)
from dreistrom_kernel.domain.clock import Clock
from dreistrom_kernel.domain.dtos import ThresholdAlert, ThresholdStatus
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY, Money
from dreistrom_kernel.logging_config import get_logger
from dreistrom_kernel.models.invoice import Invoice
from dreistrom_kernel.selectors.invoice_selector import InvoiceSelector
from dreistrom_kernel.services.base import BaseService, coerce_uuid

logger = get_logger("services.threshold")

DEFAULT_CURRENT_LIMIT = Money.from_decimal_string("25000.00")
DEFAULT_PROJECTED_LIMIT = Money.from_decimal_string("100000.00")


class ThresholdService(BaseService[Invoice]):

    def __init__(
        self,
        session: Session,
        clock: Clock,
        current_limit: Money = DEFAULT_CURRENT_LIMIT,
        projected_limit: Money = DEFAULT_PROJECTED_LIMIT,
        warning_ratio: Decimal = DEFAULT_WARNING_RATIO,
        currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session)
        self._clock = clock
        self._current_limit = current_limit
        self._projected_limit = projected_limit
        self._warning_ratio = warning_ratio
        self._currency = currency
        self._evaluator = ThresholdEvaluator()
        self._selector = InvoiceSelector(session)

    def revenue_for_year(self, user_id: UUID | str, fiscal_year: int) -> Money:
        owner = coerce_uuid(user_id, "User")
        return Money(self._selector.gross_revenue_cents(owner, fiscal_year), self._currency)

    def status(
        self,
        user_id: UUID | str,
        fiscal_year: int,
        projected: Money | None = None,
    ) -> ThresholdStatus:
        """
        Evaluate ``fiscal_year`` against both limits.

        Args:
            projected: Expected revenue of the year. When None, the
                year-to-date revenue is extrapolated to the full year.
        """
        revenue = self.revenue_for_year(user_id, fiscal_year)
        if projected is None:
            projected = project_annual_revenue(revenue, fiscal_year, self._clock.today())
        return self._evaluator.evaluate(
            revenue,
            self._current_limit,
            projected,
            self._projected_limit,
            self._warning_ratio,
        )

    def check_alerts(
        self,
        user_id: UUID | str,
        fiscal_year: int,
        projected: Money | None = None,
    ) -> list[ThresholdAlert]:
        """Alerts for each limit whose warning ratio is reached, logged at WARNING."""
        alerts = self._evaluator.alerts(self.status(user_id, fiscal_year, projected))
        for alert in alerts:
            logger.warning(
                "small_business_threshold_alert",
                extra={
                    "user_id": str(user_id),
                    "fiscal_year": fiscal_year,
                    "kind": alert.kind,
                    "revenue_cents": alert.revenue.minor_units,
                    "limit_cents": alert.limit.minor_units,
                    "ratio": alert.ratio,
                    "exceeded": alert.exceeded,
                },
            )
        return alerts
