"""
dreistrom_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration. It
    reads the packaged ``defaults.yaml`` and, when the ``DREISTROM_CONFIG``
    environment variable names a file, merges that file over the defaults.

Architecture position:
    Sits beside the kernel. The kernel never imports from this package;
    the boundary layer reads the config and injects values (limits, lock
    timeout, padding, default input VAT rate) into kernel services.

Failure modes:
    - ``FileNotFoundError`` when DREISTROM_CONFIG names a missing file.
    - ``KeyError`` / ``ValueError`` on missing or malformed keys.

Audit relevance:
    Every call emits a ``DREISTROM_CONFIG_TRACE`` log record with the
    config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dreistrom_config.loader import load_yaml_file, merge_overrides, parse_fiscal_config
from dreistrom_config.schema import (
    FiscalConfig,
    NumberingSettings,
    SmallBusinessLimits,
    VatSettings,
)

_logger = logging.getLogger("dreistrom_kernel.config")

CONFIG_ENV_VAR = "DREISTROM_CONFIG"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> FiscalConfig:
    """
    Load the active configuration.

    Args:
        config_path: Override file merged over the defaults. When None,
            the DREISTROM_CONFIG environment variable is consulted.
    """
    data = load_yaml_file(DEFAULTS_PATH)

    override = config_path or os.environ.get(CONFIG_ENV_VAR)
    if override:
        data = merge_overrides(data, load_yaml_file(Path(override)))

    config = parse_fiscal_config(data)
    _logger.info(
        "DREISTROM_CONFIG_TRACE",
        extra={
            "trace_type": "DREISTROM_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "override": str(override) if override else None,
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULTS_PATH",
    "FiscalConfig",
    "NumberingSettings",
    "SmallBusinessLimits",
    "VatSettings",
    "get_active_config",
]
