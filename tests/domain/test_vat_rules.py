"""
Tests for VAT treatment rules.

Verifies:
- Treatment detection from country, client type and VAT id
- Legal notices are appended once
- ZM reportability
- Section 14 content violations and their stable order
"""

from decimal import Decimal

import pytest

from dreistrom_kernel.domain.vat import (
    TREATMENT_NOTICES,
    VatTreatment,
    append_notice,
    coerce_treatment,
    compliance_violations,
    determine_vat_treatment,
    is_eu_country,
    is_zm_reportable,
    notice_for,
)
from dreistrom_kernel.exceptions import InvalidArgumentError

ZERO = Decimal("0")
FULL = Decimal("0.19")


class TestDetermineVatTreatment:

    @pytest.mark.parametrize(
        "country,client_type,vat_id,expected",
        [
            ("DE", "B2B", "DE123456789", VatTreatment.REGULAR),
            ("DE", "B2C", None, VatTreatment.REGULAR),
            (None, None, None, VatTreatment.REGULAR),
            ("AT", "B2B", "ATU12345678", VatTreatment.REVERSE_CHARGE),
            ("fr", "B2B", "FR12345678901", VatTreatment.REVERSE_CHARGE),
            ("AT", "B2B", None, VatTreatment.REGULAR),
            ("AT", "B2B", "   ", VatTreatment.REGULAR),
            ("AT", "B2C", "ATU12345678", VatTreatment.REGULAR),
            ("US", "B2B", None, VatTreatment.THIRD_COUNTRY),
            ("CH", "B2C", None, VatTreatment.THIRD_COUNTRY),
            ("GB", "B2B", "GB123456789", VatTreatment.THIRD_COUNTRY),
        ],
    )
    def test_detection(self, country, client_type, vat_id, expected):
        assert determine_vat_treatment(country, client_type, vat_id) == expected

    def test_germany_is_not_an_eu_destination(self):
        assert not is_eu_country("DE")
        assert is_eu_country(" nl ")

    def test_coerce_treatment(self):
        assert coerce_treatment("reverse_charge") is VatTreatment.REVERSE_CHARGE
        assert coerce_treatment(VatTreatment.INTRA_EU) is VatTreatment.INTRA_EU

    def test_coerce_treatment_rejects_unknown(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            coerce_treatment("NOPE")
        assert exc_info.value.field == "vat_treatment"
        assert exc_info.value.value == "NOPE"


class TestNotices:

    def test_regular_has_no_notice(self):
        assert notice_for(VatTreatment.REGULAR) is None
        assert append_notice("Danke!", VatTreatment.REGULAR) == "Danke!"

    def test_notice_replaces_empty_notes(self):
        assert append_notice(None, VatTreatment.REVERSE_CHARGE) == (
            TREATMENT_NOTICES[VatTreatment.REVERSE_CHARGE]
        )
        assert append_notice("  ", VatTreatment.THIRD_COUNTRY) == (
            TREATMENT_NOTICES[VatTreatment.THIRD_COUNTRY]
        )

    def test_notice_appended_after_blank_line(self):
        notes = append_notice("Zahlbar in 14 Tagen.", VatTreatment.REVERSE_CHARGE)
        assert notes.startswith("Zahlbar in 14 Tagen.\n\n")
        assert "§13b UStG" in notes

    def test_notice_not_duplicated(self):
        once = append_notice("Hinweis", VatTreatment.INTRA_EU)
        assert append_notice(once, VatTreatment.INTRA_EU) == once


class TestZmReportable:

    def test_reverse_charge_to_eu(self):
        assert is_zm_reportable(VatTreatment.REVERSE_CHARGE, "AT", "Wien GmbH")

    def test_regular_eu_client_is_not_reportable(self):
        assert not is_zm_reportable(VatTreatment.REGULAR, "AT", "Wien GmbH")

    @pytest.mark.parametrize("name", ["Apple Distribution International", "Google Ireland"])
    def test_platform_providers_always_reportable(self, name):
        assert is_zm_reportable(VatTreatment.REGULAR, "IE", name)


class TestComplianceViolations:

    def test_regular_invoice_passes(self):
        assert compliance_violations(
            VatTreatment.REGULAR, [FULL, Decimal("0.07")], None, None, "FREIBERUF", "FREIBERUF"
        ) == ()

    def test_zero_rated_lines_must_carry_zero_vat(self):
        violations = compliance_violations(
            VatTreatment.REVERSE_CHARGE, [ZERO, FULL, FULL], None, "ATU1", None, "GEWERBE"
        )
        assert violations == ("vat_rate_must_be_zero:2", "vat_rate_must_be_zero:3")

    def test_small_business_requires_notice(self):
        assert compliance_violations(
            VatTreatment.SMALL_BUSINESS, [ZERO], "Danke", None, None, "FREIBERUF"
        ) == ("small_business_notice_missing",)
        assert compliance_violations(
            VatTreatment.SMALL_BUSINESS, [ZERO], "Gemäß §19 UStG wird keine Umsatzsteuer berechnet.",
            None, None, "FREIBERUF",
        ) == ()

    def test_intra_eu_requires_client_vat_id(self):
        assert compliance_violations(
            VatTreatment.INTRA_EU, [ZERO], None, None, None, "GEWERBE"
        ) == ("client_vat_id_missing",)

    def test_stream_checks_come_first(self):
        violations = compliance_violations(
            VatTreatment.SMALL_BUSINESS, [FULL], None, None, "GEWERBE", "EMPLOYMENT"
        )
        assert violations == (
            "stream_not_invoiceable",
            "client_stream_mismatch",
            "vat_rate_must_be_zero:1",
            "small_business_notice_missing",
        )

    def test_client_without_stream_matches_any(self):
        assert compliance_violations(
            VatTreatment.REGULAR, [FULL], None, None, None, "GEWERBE"
        ) == ()
