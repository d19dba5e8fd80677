"""
Income streams and invoice numbering format.

The three streams are legally distinct earning categories. Only freelance
(Freiberuf) and trade (Gewerbe) are ever invoiced; employment income never
produces an invoice and therefore has no number prefix.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from dreistrom_kernel.exceptions import InvalidArgumentError


class IncomeStream(str, Enum):
    """Earning category under German income tax law."""

    EMPLOYMENT = "EMPLOYMENT"
    FREIBERUF = "FREIBERUF"
    GEWERBE = "GEWERBE"


INVOICE_NUMBER_PREFIXES: MappingProxyType[IncomeStream, str] = MappingProxyType({
    IncomeStream.FREIBERUF: "FR",
    IncomeStream.GEWERBE: "GW",
})

INVOICEABLE_STREAMS: tuple[IncomeStream, ...] = tuple(INVOICE_NUMBER_PREFIXES)

DEFAULT_ORDINAL_PADDING = 3


def coerce_stream(value: IncomeStream | str) -> IncomeStream:
    """Accept an enum member or its string value."""
    if isinstance(value, IncomeStream):
        return value
    try:
        return IncomeStream(str(value).upper())
    except ValueError:
        raise InvalidArgumentError("stream", value, "unknown income stream") from None


def is_invoiceable(stream: IncomeStream | str) -> bool:
    return coerce_stream(stream) in INVOICE_NUMBER_PREFIXES


def format_invoice_number(
    stream: IncomeStream | str,
    fiscal_year: int,
    ordinal: int,
    padding: int = DEFAULT_ORDINAL_PADDING,
) -> str:
    """
    Render ``<prefix>-<year>-<ordinal>``, e.g. ``FR-2026-001``.

    Ordinals wider than ``padding`` are rendered in full (``FR-2026-1000``).
    """
    resolved = coerce_stream(stream)
    prefix = INVOICE_NUMBER_PREFIXES.get(resolved)
    if prefix is None:
        raise InvalidArgumentError("stream", resolved.value, "stream is not invoiceable")
    if ordinal < 1:
        raise InvalidArgumentError("ordinal", ordinal, "invoice ordinal must be positive")
    return f"{prefix}-{fiscal_year}-{ordinal:0{padding}d}"
