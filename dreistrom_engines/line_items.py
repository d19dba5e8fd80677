"""
Line-Item Calculator -- net, VAT and gross totals of an invoice.

Pure and deterministic. Rounding is applied per line, then the rounded
line values are summed:

    net   = round(quantity * unit_price)
    vat   = round(net * vat_rate)
    gross = net + vat

Summing unrounded values and rounding once at the end would disagree with
the tax authority's own tooling by a cent on some invoices, so the order is
fixed here and pinned by tests.

Usage:
    calculator = LineItemCalculator()
    totals = calculator.compute_totals([
        LineItem("Consulting", Decimal("8"), Money.from_decimal_string("95.00"),
                 Decimal("0.19")),
    ])
    totals.gross  # Money(90440, 'EUR')
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from dreistrom_engines.tracer import traced_engine
from dreistrom_kernel.domain.dtos import InvoiceTotals, LineItem, LineTotals
from dreistrom_kernel.domain.money import Money, to_ratio
from dreistrom_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidLineItemError,
)
from dreistrom_kernel.logging_config import get_logger

logger = get_logger("engines.line_items")


class LineItemCalculator:
    """Stateless; safe to share across threads."""

    def validate(self, line_items: Sequence[LineItem]) -> None:
        """
        Check preconditions, naming the first offending item.

        Raises:
            InvalidLineItemError: empty list, blank description,
                quantity <= 0, unit price < 0, VAT rate < 0 or a malformed
                number.
        """
        if not line_items:
            raise InvalidLineItemError(None, "line_items", [], "at least one line item is required")

        currency = None
        for index, item in enumerate(line_items):
            if not item.description or not item.description.strip():
                raise InvalidLineItemError(index, "description", item.description, "must not be blank")

            quantity = self._as_decimal(index, "quantity", item.quantity)
            if quantity <= 0:
                raise InvalidLineItemError(index, "quantity", item.quantity, "must be greater than zero")

            if not isinstance(item.unit_price, Money):
                raise InvalidLineItemError(index, "unit_price", item.unit_price, "must be Money")
            if item.unit_price.is_negative:
                raise InvalidLineItemError(index, "unit_price", item.unit_price, "must not be negative")

            rate = self._as_decimal(index, "vat_rate", item.vat_rate)
            if rate < 0:
                raise InvalidLineItemError(index, "vat_rate", item.vat_rate, "must not be negative")

            if currency is None:
                currency = item.unit_price.currency
            elif item.unit_price.currency != currency:
                raise CurrencyMismatchError(currency, item.unit_price.currency)

    @traced_engine("line_items", "1.0", fingerprint_fields=("line_items",))
    def compute_totals(self, line_items: Sequence[LineItem]) -> InvoiceTotals:
        """Validate, then compute per-line rounded figures and their sums."""
        self.validate(line_items)

        currency = line_items[0].unit_price.currency
        lines: list[LineTotals] = []
        for position, item in enumerate(line_items, start=1):
            quantity = to_ratio(item.quantity, field="quantity")
            rate = to_ratio(item.vat_rate, field="vat_rate")
            net = item.unit_price.multiply_by_ratio(quantity)
            vat = net.multiply_by_ratio(rate)
            lines.append(
                LineTotals(
                    position=position,
                    description=item.description.strip(),
                    quantity=quantity,
                    unit_price=item.unit_price,
                    vat_rate=rate,
                    net=net,
                    vat=vat,
                    gross=net + vat,
                )
            )

        net_total = Money.sum_of((l.net for l in lines), currency)
        vat_total = Money.sum_of((l.vat for l in lines), currency)
        totals = InvoiceTotals(
            net=net_total,
            vat=vat_total,
            gross=net_total + vat_total,
            lines=tuple(lines),
        )
        logger.debug(
            "line_item_totals_computed",
            extra={
                "line_count": len(lines),
                "net_cents": totals.net.minor_units,
                "vat_cents": totals.vat.minor_units,
                "gross_cents": totals.gross.minor_units,
            },
        )
        return totals

    @staticmethod
    def _as_decimal(index: int, field: str, value) -> Decimal:
        try:
            return to_ratio(value, field=field)
        except InvalidAmountError as e:
            raise InvalidLineItemError(index, field, value, e.reason) from e
