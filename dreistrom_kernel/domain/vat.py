"""
VAT treatment rules.

Responsibility:
    Classifies an invoice's VAT treatment from the client's country and type,
    supplies the legal notice each treatment requires on the document, and
    decides whether an invoice belongs on the summary EU-sales report (ZM).

Architecture position:
    Kernel > Domain -- pure lookup tables and functions, zero I/O.

Invariants enforced:
    - Every non-REGULAR treatment carries zero VAT on every line.
    - Treatment-to-notice is a lookup table, not per-treatment subclasses.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from dreistrom_kernel.domain.streams import IncomeStream, coerce_stream, is_invoiceable
from dreistrom_kernel.exceptions import InvalidArgumentError


class VatTreatment(str, Enum):
    REGULAR = "REGULAR"
    SMALL_BUSINESS = "SMALL_BUSINESS"
    REVERSE_CHARGE = "REVERSE_CHARGE"
    INTRA_EU = "INTRA_EU"
    THIRD_COUNTRY = "THIRD_COUNTRY"


def coerce_treatment(value: VatTreatment | str) -> VatTreatment:
    if isinstance(value, VatTreatment):
        return value
    try:
        return VatTreatment(str(value).upper())
    except ValueError:
        raise InvalidArgumentError("vat_treatment", value, "unknown VAT treatment") from None


class ClientType(str, Enum):
    B2B = "B2B"
    B2C = "B2C"


HOME_COUNTRY = "DE"

# EU member states other than Germany (ISO 3166-1 alpha-2).
EU_COUNTRIES: frozenset[str] = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "GR", "HU",
    "IE", "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI",
    "ES", "SE",
})

TREATMENT_NOTICES: MappingProxyType[VatTreatment, str] = MappingProxyType({
    VatTreatment.REVERSE_CHARGE: (
        "Steuerschuldnerschaft des Leistungsempfängers "
        "(Reverse Charge, §13b UStG)."
    ),
    VatTreatment.THIRD_COUNTRY: (
        "Leistung nicht steuerbar per §3a UStG (Leistungsort im Drittland)."
    ),
    VatTreatment.INTRA_EU: (
        "Steuerfreie innergemeinschaftliche Lieferung/Leistung."
    ),
})

ZERO_RATED_TREATMENTS: frozenset[VatTreatment] = frozenset({
    VatTreatment.SMALL_BUSINESS,
    VatTreatment.REVERSE_CHARGE,
    VatTreatment.INTRA_EU,
    VatTreatment.THIRD_COUNTRY,
})

SMALL_BUSINESS_NOTICE_MARKER = "§19"

# Platform payout providers whose statements are reported on the ZM
# regardless of the invoice's own treatment.
ZM_PLATFORM_KEYWORDS: tuple[str, ...] = ("apple", "google")


def normalize_country(country: str | None) -> str:
    return (country or HOME_COUNTRY).strip().upper()


def is_eu_country(country: str | None) -> bool:
    return normalize_country(country) in EU_COUNTRIES


def determine_vat_treatment(
    country: str | None,
    client_type: ClientType | str | None,
    vat_id: str | None,
) -> VatTreatment:
    """
    Pick the treatment for a client.

    DE is always REGULAR. An EU business with a VAT id is REVERSE_CHARGE,
    any other EU client is REGULAR. Everything outside the EU is
    THIRD_COUNTRY.
    """
    code = normalize_country(country)
    if code == HOME_COUNTRY:
        return VatTreatment.REGULAR
    if code in EU_COUNTRIES:
        is_business = ClientType(client_type) == ClientType.B2B if client_type else False
        if is_business and vat_id and vat_id.strip():
            return VatTreatment.REVERSE_CHARGE
        return VatTreatment.REGULAR
    return VatTreatment.THIRD_COUNTRY


def notice_for(treatment: VatTreatment) -> str | None:
    return TREATMENT_NOTICES.get(treatment)


def append_notice(notes: str | None, treatment: VatTreatment) -> str | None:
    """Append the treatment's legal notice to ``notes`` unless already present."""
    notice = notice_for(treatment)
    if notice is None:
        return notes
    if notes and notice in notes:
        return notes
    if not notes or not notes.strip():
        return notice
    return f"{notes.rstrip()}\n\n{notice}"


def is_zm_reportable(
    treatment: VatTreatment,
    client_country: str | None,
    client_name: str | None,
) -> bool:
    """Reverse charge to an EU member state, or a known platform provider."""
    if treatment == VatTreatment.REVERSE_CHARGE and is_eu_country(client_country):
        return True
    name = (client_name or "").lower()
    return any(keyword in name for keyword in ZM_PLATFORM_KEYWORDS)


def compliance_violations(
    treatment: VatTreatment,
    line_vat_rates: Sequence[Decimal],
    notes: str | None,
    client_vat_id: str | None,
    client_stream: IncomeStream | str | None,
    invoice_stream: IncomeStream | str,
) -> tuple[str, ...]:
    """
    Check the section 14 UStG content rules that depend on the treatment.

    Returns machine-readable violation codes in a stable order; an empty
    tuple means the invoice may be issued. Line positions in codes start
    at 1, matching the printed document.
    """
    violations: list[str] = []

    stream = coerce_stream(invoice_stream)
    if not is_invoiceable(stream):
        violations.append("stream_not_invoiceable")
    if client_stream is not None and coerce_stream(client_stream) != stream:
        violations.append("client_stream_mismatch")

    if treatment in ZERO_RATED_TREATMENTS:
        for position, rate in enumerate(line_vat_rates, start=1):
            if rate != 0:
                violations.append(f"vat_rate_must_be_zero:{position}")

    if treatment == VatTreatment.SMALL_BUSINESS:
        if not notes or SMALL_BUSINESS_NOTICE_MARKER not in notes:
            violations.append("small_business_notice_missing")

    if treatment == VatTreatment.INTRA_EU:
        if not client_vat_id or not client_vat_id.strip():
            violations.append("client_vat_id_missing")

    return tuple(violations)
