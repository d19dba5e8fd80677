"""
Configuration schema (``dreistrom_config.schema``).

Frozen dataclasses describing the runtime configuration. Monetary limits
are held as Decimal major units here; services convert them to Money at the
point of use.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class SmallBusinessLimits:
    """Statutory limits of section 19 UStG (revenue in major units)."""

    current_limit: Decimal
    projected_limit: Decimal
    warning_ratio: Decimal

    def __post_init__(self) -> None:
        if self.current_limit <= 0 or self.projected_limit <= 0:
            raise ValueError("small_business limits must be positive")
        if not Decimal(0) < self.warning_ratio <= Decimal(1):
            raise ValueError("small_business.warning_ratio must be in (0, 1]")


@dataclass(frozen=True)
class VatSettings:
    input_default_rate: Decimal

    def __post_init__(self) -> None:
        if self.input_default_rate < 0:
            raise ValueError("vat.input_default_rate must not be negative")


@dataclass(frozen=True)
class NumberingSettings:
    ordinal_padding: int
    lock_timeout_ms: int

    def __post_init__(self) -> None:
        if self.ordinal_padding < 1:
            raise ValueError("invoice_numbering.ordinal_padding must be >= 1")
        if self.lock_timeout_ms < 1:
            raise ValueError("invoice_numbering.lock_timeout_ms must be >= 1")


@dataclass(frozen=True)
class FiscalConfig:
    """The single runtime configuration artifact."""

    config_id: str
    version: int
    currency: str
    small_business: SmallBusinessLimits
    vat: VatSettings
    numbering: NumberingSettings
    checksum: str = ""
