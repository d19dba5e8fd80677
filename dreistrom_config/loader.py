"""
Configuration Loader (``dreistrom_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen ``dreistrom_config.schema``
dataclasses. Runtime callers use ``dreistrom_config.get_active_config()``
instead of calling this module directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Decimals are parsed from their text form, so ``0.19`` in YAML becomes
  ``Decimal("0.19")``, never a binary float value.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from dreistrom_config.schema import (
    FiscalConfig,
    NumberingSettings,
    SmallBusinessLimits,
    VatSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level YAML value is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from a YAML scalar via its text form."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{key}: expected a decimal number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"{key}: not a decimal number: {value!r}") from e


def parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    return value


def merge_overrides(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_overrides(merged[key], value)
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_fiscal_config(data: dict[str, Any]) -> FiscalConfig:
    """
    Parse a ``FiscalConfig`` from a dict.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if values cannot be parsed or fail validation.
    """
    sb = data["small_business"]
    vat = data["vat"]
    numbering = data["invoice_numbering"]

    currency = str(data["currency"]).strip().upper()
    if len(currency) != 3:
        raise ValueError(f"currency: expected a 3-letter code, got {data['currency']!r}")

    return FiscalConfig(
        config_id=str(data["config_id"]),
        version=parse_int(data["version"], "version"),
        currency=currency,
        small_business=SmallBusinessLimits(
            current_limit=parse_decimal(sb["current_limit"], "small_business.current_limit"),
            projected_limit=parse_decimal(sb["projected_limit"], "small_business.projected_limit"),
            warning_ratio=parse_decimal(sb["warning_ratio"], "small_business.warning_ratio"),
        ),
        vat=VatSettings(
            input_default_rate=parse_decimal(vat["input_default_rate"], "vat.input_default_rate"),
        ),
        numbering=NumberingSettings(
            ordinal_padding=parse_int(
                numbering["ordinal_padding"], "invoice_numbering.ordinal_padding"
            ),
            lock_timeout_ms=parse_int(
                numbering["lock_timeout_ms"], "invoice_numbering.lock_timeout_ms"
            ),
        ),
        checksum=compute_checksum(data),
    )
