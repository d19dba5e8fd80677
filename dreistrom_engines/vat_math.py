"""VAT arithmetic on Money: extraction from gross and gross-up from net."""

from __future__ import annotations

from decimal import Decimal

from dreistrom_kernel.domain.money import Money, round_half_up, to_ratio
from dreistrom_kernel.exceptions import InvalidAmountError


def _rate(rate: Decimal | int | str) -> Decimal:
    value = to_ratio(rate, field="vat_rate")
    if value < 0:
        raise InvalidAmountError(rate, "VAT rate must not be negative")
    return value


def extract_vat(gross: Money, rate: Decimal | int | str) -> Money:
    """VAT contained in a gross amount: ``gross * rate / (1 + rate)``, HALF_UP."""
    r = _rate(rate)
    # Divide last so an exact midpoint stays exact before rounding.
    cents = round_half_up(Decimal(gross.minor_units) * r / (Decimal(1) + r))
    return Money(cents, gross.currency)


def net_from_gross(gross: Money, rate: Decimal | int | str) -> Money:
    """Net part of a gross amount; net + extracted VAT equals gross exactly."""
    return gross - extract_vat(gross, rate)


def gross_from_net(net: Money, rate: Decimal | int | str) -> Money:
    return net + net.multiply_by_ratio(_rate(rate))
