"""
Money -- Exact fixed-point monetary value in minor units.

Responsibility:
    The single representation of every monetary figure in the core: an
    integer count of cents paired with a currency code. All conversion from
    human-facing decimal text and all ratio arithmetic funnels through one
    rounding rule, HALF_UP to two fraction digits.

Architecture position:
    Kernel > Domain -- pure value type, zero I/O, no dependencies beyond the
    kernel exception hierarchy.

Invariants enforced:
    - minor_units is always an ``int`` (never float, never Decimal).
    - ``to_decimal(from_decimal(x)) == x`` for every x that is an exact
      multiple of one cent. Other inputs are rounded HALF_UP and the
      conversion is lossy.
    - ``from_decimal`` and ``multiply_by_ratio`` round once, after an exact
      multiplication.
    - Arithmetic across currencies is rejected.

Failure modes:
    - InvalidAmountError for malformed text, NaN/Infinity, binary floats,
      non-integer minor units and amounts whose cent value does not fit the
      default decimal context (28 significant digits).
    - CurrencyMismatchError when mixing currencies.

Audit relevance:
    VAT returns and the ZM report are sums of these values. A one-cent drift
    here is a compliance defect downstream, which is why float input is
    refused outright instead of being coerced.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Iterable

from dreistrom_kernel.exceptions import CurrencyMismatchError, InvalidAmountError

DEFAULT_CURRENCY = "EUR"

_CENT = Decimal("0.01")
_ONE = Decimal(1)
_HUNDRED = Decimal(100)


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, midpoints away from zero."""
    try:
        return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise InvalidAmountError(value, "too many digits to round to a whole cent") from e


def exact_product(left: Decimal, right: Decimal) -> Decimal:
    """Multiply two finite Decimals without context rounding."""
    with localcontext() as ctx:
        ctx.prec = len(left.as_tuple().digits) + len(right.as_tuple().digits)
        return left * right


def to_ratio(value: Decimal | int | str, *, field: str = "ratio") -> Decimal:
    """Coerce a ratio argument to Decimal. Floats are rejected."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, f"{field} must not be a binary float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmountError(value, f"{field} is not a number") from e
    else:
        raise InvalidAmountError(value, f"unsupported {field} type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(value, f"{field} must be finite")
    return result


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount as integer minor units plus currency.

    Contract:
        Construct through the factories (``from_minor_units``,
        ``from_decimal_string``, ``from_decimal``, ``zero``). Direct
        construction is allowed but validated the same way.

    Guarantees:
        - Immutable and hashable.
        - Ordering and equality are defined only within one currency.
    """

    minor_units: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise InvalidAmountError(
                self.minor_units, "minor units must be an integer"
            )
        if not isinstance(self.currency, str) or len(self.currency.strip()) != 3:
            raise InvalidAmountError(self.currency, "currency must be a 3-letter code")
        object.__setattr__(self, "currency", self.currency.strip().upper())

    # -- factories ---------------------------------------------------------

    @classmethod
    def from_minor_units(cls, minor_units: int, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(minor_units=minor_units, currency=currency)

    @classmethod
    def from_decimal(cls, amount: Decimal, currency: str = DEFAULT_CURRENCY) -> Money:
        """
        Build from a Decimal amount in major units.

        More than two fraction digits is resolved by HALF_UP rounding, so
        ``Decimal("10.005")`` becomes 1001 cents and ``Decimal("-10.005")``
        becomes -1001 cents.
        """
        if isinstance(amount, float):
            raise InvalidAmountError(amount, "binary floats are not accepted")
        if not isinstance(amount, Decimal):
            raise InvalidAmountError(amount, f"expected Decimal, got {type(amount).__name__}")
        if not amount.is_finite():
            raise InvalidAmountError(amount, "amount must be finite")
        return cls(minor_units=round_half_up(exact_product(amount, _HUNDRED)), currency=currency)

    @classmethod
    def from_decimal_string(cls, text: str, currency: str = DEFAULT_CURRENCY) -> Money:
        """Parse decimal text such as ``"1234.56"`` and round HALF_UP to the cent."""
        if not isinstance(text, str):
            raise InvalidAmountError(text, "expected decimal text")
        stripped = text.strip()
        if not stripped:
            raise InvalidAmountError(text, "empty amount")
        try:
            amount = Decimal(stripped)
        except InvalidOperation as e:
            raise InvalidAmountError(text, "not a decimal number") from e
        return cls.from_decimal(amount, currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(minor_units=0, currency=currency)

    @classmethod
    def sum_of(cls, amounts: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
        """Sum an iterable of Money; an empty iterable yields zero."""
        total = cls.zero(currency)
        for amount in amounts:
            total = total.add(amount)
        return total

    # -- conversion --------------------------------------------------------

    def to_decimal(self) -> Decimal:
        """Amount in major units with exactly two fraction digits."""
        return (Decimal(self.minor_units) / _HUNDRED).quantize(_CENT)

    def to_decimal_string(self) -> str:
        return f"{self.to_decimal():f}"

    # -- arithmetic --------------------------------------------------------

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def add(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def subtract(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def multiply_by_ratio(self, fraction: Decimal | int | str) -> Money:
        """
        Multiply by a decimal fraction and round HALF_UP to the cent.

        Used for VAT rates, quantities and percentage allocations. The exact
        product is computed first; rounding happens once at the end.
        """
        ratio = to_ratio(fraction)
        return Money(round_half_up(exact_product(Decimal(self.minor_units), ratio)), self.currency)

    def compare(self, other: Money) -> int:
        """Return -1, 0 or 1."""
        self._check_currency(other)
        if self.minor_units < other.minor_units:
            return -1
        if self.minor_units > other.minor_units:
            return 1
        return 0

    @property
    def is_zero(self) -> bool:
        return self.minor_units == 0

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    @property
    def is_negative(self) -> bool:
        return self.minor_units < 0

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> Money:
        return Money(-self.minor_units, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.minor_units), self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.compare(other) < 0

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.compare(other) <= 0

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.compare(other) > 0

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.to_decimal_string()} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.minor_units}, {self.currency!r})"
