"""
Tests for tax and commission calculators.

Test Classes:
    TestCalculateTax: Forward tax on pre-tax amounts
    TestExtractTax: Backward extraction from tax-inclusive totals
    TestSplitCommission: Platform/professional split
"""

from decimal import Decimal

import pytest

from payments.calculators import (
    calculate_tax,
    extract_tax,
    split_commission,
    to_minor_units,
)
from payments.config import SettlementConfig
from payments.exceptions import PaymentValidationError


@pytest.fixture
def config():
    return SettlementConfig(
        default_tax_rate=Decimal("0.16"),
        tax_rates={"MX": "0.16", "us": "0.08"},
    )


class TestCalculateTax:
    def test_adds_jurisdiction_rate(self, config):
        breakdown = calculate_tax(Decimal("500.00"), "MX", config)

        assert breakdown.subtotal == Decimal("500.00")
        assert breakdown.tax_rate == Decimal("0.16")
        assert breakdown.tax_amount == Decimal("80.00")
        assert breakdown.total == Decimal("580.00")

    def test_jurisdiction_lookup_is_case_insensitive(self, config):
        breakdown = calculate_tax(Decimal("100.00"), "US", config)

        assert breakdown.tax_amount == Decimal("8.00")

    def test_unknown_jurisdiction_uses_default_rate(self, config):
        breakdown = calculate_tax(Decimal("100.00"), "ZZ", config)

        assert breakdown.tax_rate == Decimal("0.16")
        assert breakdown.total == Decimal("116.00")

    def test_missing_jurisdiction_uses_default_rate(self, config):
        assert calculate_tax("100", None, config).total == Decimal("116.00")

    def test_rounds_half_up_to_cents(self, config):
        # 0.16 * 10.03 = 1.6048
        breakdown = calculate_tax(Decimal("10.03"), "MX", config)

        assert breakdown.tax_amount == Decimal("1.60")
        assert breakdown.total == breakdown.subtotal + breakdown.tax_amount

    def test_zero_amount(self, config):
        breakdown = calculate_tax(Decimal("0"), "MX", config)

        assert breakdown.tax_amount == Decimal("0.00")
        assert breakdown.total == Decimal("0.00")

    def test_negative_amount_rejected(self, config):
        with pytest.raises(PaymentValidationError) as exc_info:
            calculate_tax(Decimal("-1.00"), "MX", config)

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    @pytest.mark.parametrize("amount", ["NaN", "sNaN", "Infinity", "-Infinity", Decimal("NaN")])
    def test_non_finite_amount_rejected(self, config, amount):
        with pytest.raises(PaymentValidationError) as exc_info:
            calculate_tax(amount, "MX", config)

        assert exc_info.value.error_code == "INVALID_AMOUNT"


class TestExtractTax:
    def test_extracts_from_inclusive_total(self):
        extraction = extract_tax(Decimal("580.00"), Decimal("0.16"))

        assert extraction.subtotal == Decimal("500.00")
        assert extraction.tax_amount == Decimal("80.00")

    def test_parts_always_sum_to_total(self):
        extraction = extract_tax(Decimal("99.99"), Decimal("0.16"))

        assert extraction.subtotal == Decimal("86.20")
        assert extraction.subtotal + extraction.tax_amount == Decimal("99.99")

    def test_zero_rate(self):
        extraction = extract_tax(Decimal("250.00"), Decimal("0"))

        assert extraction.subtotal == Decimal("250.00")
        assert extraction.tax_amount == Decimal("0.00")

    def test_negative_rate_rejected(self):
        with pytest.raises(PaymentValidationError):
            extract_tax(Decimal("100.00"), Decimal("-0.16"))

    @pytest.mark.parametrize("jurisdiction", ["MX", "US", "AR", "BR", "CL", "PE"])
    @pytest.mark.parametrize(
        "amount",
        ["0.01", "0.05", "1.00", "9.99", "10.03", "33.33", "431.03", "999.99", "12345.67"],
    )
    def test_round_trip_within_one_cent(self, jurisdiction, amount):
        config = SettlementConfig(
            default_tax_rate=Decimal("0.16"),
            tax_rates={"MX": "0.16", "US": "0.08", "AR": "0.21", "BR": "0.17", "CL": "0.19", "PE": "0.18"},
        )
        breakdown = calculate_tax(Decimal(amount), jurisdiction, config)

        extraction = extract_tax(breakdown.total, breakdown.tax_rate)

        assert abs(extraction.subtotal - Decimal(amount)) <= Decimal("0.01")


class TestSplitCommission:
    def test_fifteen_percent(self):
        split = split_commission(Decimal("1000.00"), Decimal("0.15"))

        assert split.platform_fee == Decimal("150.00")
        assert split.professional_amount == Decimal("850.00")

    def test_rounding_remainder_goes_to_professional(self):
        # 0.15 * 33.33 = 4.9995 -> 5.00
        split = split_commission(Decimal("33.33"), Decimal("0.15"))

        assert split.platform_fee == Decimal("5.00")
        assert split.professional_amount == Decimal("28.33")
        assert split.platform_fee + split.professional_amount == Decimal("33.33")

    @pytest.mark.parametrize(
        "rate,fee",
        [
            (Decimal("0"), Decimal("0.00")),
            (Decimal("1"), Decimal("100.00")),
        ],
    )
    def test_boundary_rates(self, rate, fee):
        split = split_commission(Decimal("100.00"), rate)

        assert split.platform_fee == fee
        assert split.platform_fee + split.professional_amount == Decimal("100.00")

    def test_rate_above_one_rejected(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            split_commission(Decimal("100.00"), Decimal("1.5"))

        assert exc_info.value.error_code == "INVALID_RATE"

    def test_negative_amount_rejected(self):
        with pytest.raises(PaymentValidationError):
            split_commission(Decimal("-10.00"), Decimal("0.15"))

    def test_sub_cent_amount_rejected(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            split_commission(Decimal("10.005"), Decimal("0.15"))

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_trailing_zeros_accepted(self):
        split = split_commission(Decimal("10.000"), Decimal("0.15"))

        assert split.platform_fee + split.professional_amount == Decimal("10.00")


class TestToMinorUnits:
    def test_converts_to_cents(self):
        assert to_minor_units(Decimal("1000.50")) == 100050

    def test_rounds_sub_cent_values(self):
        assert to_minor_units("10.005") == 1001
