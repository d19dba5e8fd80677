"""Outer boundary: the FiscalCore facade and its explicit result values."""

from dreistrom_services.boundary import (
    ERROR_STATUS_MAP,
    CoreResult,
    FiscalCore,
    ResultStatus,
    status_for,
)

__all__ = [
    "CoreResult",
    "ERROR_STATUS_MAP",
    "FiscalCore",
    "ResultStatus",
    "status_for",
]
