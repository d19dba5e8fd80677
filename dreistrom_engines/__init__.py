"""
Module: dreistrom_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines. This is
    the import surface for the kernel services and the public boundary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import dreistrom_kernel.domain, dreistrom_kernel.exceptions,
    dreistrom_kernel.logging_config and sibling engine modules.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``;
      dates are explicit parameters.
    - Money-only arithmetic with one rounding rule (HALF_UP to the cent);
      binary floats are rejected.
    - Determinism: identical inputs always produce equal outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit a
    DREISTROM_ENGINE_TRACE record with an input fingerprint.
"""

from dreistrom_engines.cross_border import CrossBorderAggregator
from dreistrom_engines.line_items import LineItemCalculator
from dreistrom_engines.threshold import (
    DEFAULT_WARNING_RATIO,
    ThresholdEvaluator,
    project_annual_revenue,
)
from dreistrom_engines.vat_math import extract_vat, gross_from_net, net_from_gross
from dreistrom_engines.vat_period import VatPeriodEngine

__all__ = [
    "CrossBorderAggregator",
    "DEFAULT_WARNING_RATIO",
    "LineItemCalculator",
    "ThresholdEvaluator",
    "VatPeriodEngine",
    "extract_vat",
    "gross_from_net",
    "net_from_gross",
    "project_annual_revenue",
]
