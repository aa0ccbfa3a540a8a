"""
Tax and commission calculations.

Pure functions over Decimal. Every monetary result is quantized to cents
with ROUND_HALF_UP. Where two results must add up to an input, only one is
rounded and the other is derived by subtraction.

Functions:
    calculate_tax: Forward direction, amount is pre-tax
    extract_tax: Backward direction, total already includes tax
    split_commission: Platform fee and professional share of an amount
    to_minor_units: Decimal amount to integer cents for the gateway

Rounding tolerance:
    extract_tax(calculate_tax(A, ...).total, rate).subtotal differs from A
    by at most 0.01.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

from payments.exceptions import PaymentValidationError

if TYPE_CHECKING:
    from payments.config import SettlementConfig

CENT = Decimal("0.01")


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class TaxExtraction:
    subtotal: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class CommissionSplit:
    platform_fee: Decimal
    professional_amount: Decimal


def quantize(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, name: str = "amount") -> Decimal:
    """
    Coerce ints, strings and Decimals; floats go through str().

    NaN and Infinity are rejected along with unparseable input.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise PaymentValidationError(
                f"Invalid {name}: {value!r}",
                error_code="INVALID_AMOUNT",
                details={name: str(value)},
            ) from e
    if not result.is_finite():
        raise PaymentValidationError(
            f"Invalid {name}: {value!r}",
            error_code="INVALID_AMOUNT",
            details={name: str(value)},
        )
    return result


def _non_negative(value, name: str) -> Decimal:
    value = to_decimal(value, name)
    if value < 0:
        raise PaymentValidationError(
            f"{name} must not be negative",
            error_code="INVALID_AMOUNT",
            details={name: str(value)},
        )
    return value


def calculate_tax(amount, jurisdiction: str | None, config: SettlementConfig) -> TaxBreakdown:
    """
    Apply tax on top of a pre-tax amount.

    Args:
        amount: Pre-tax amount
        jurisdiction: Country code used to look up the rate; unknown or
            missing codes use the configured default rate
        config: Settlement configuration

    Returns:
        TaxBreakdown with total == subtotal + tax_amount
    """
    subtotal = quantize(_non_negative(amount, "amount"))
    rate = config.tax_rate_for(jurisdiction)
    tax_amount = quantize(subtotal * rate)
    return TaxBreakdown(
        subtotal=subtotal,
        tax_rate=rate,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )


def extract_tax(total, tax_rate) -> TaxExtraction:
    """
    Split a tax-inclusive total into subtotal and tax.

    Example:
        extract_tax(Decimal("580.00"), Decimal("0.16"))
        # TaxExtraction(subtotal=Decimal("500.00"), tax_amount=Decimal("80.00"))
    """
    total = quantize(_non_negative(total, "total"))
    rate = _non_negative(tax_rate, "tax_rate")
    subtotal = quantize(total / (Decimal("1") + rate))
    return TaxExtraction(subtotal=subtotal, tax_amount=total - subtotal)


def split_commission(amount, commission_rate) -> CommissionSplit:
    """
    Split an amount between the platform and the professional.

    platform_fee + professional_amount == amount, always. Amounts with
    sub-cent digits are rejected since no split of them in cents is exact.
    """
    amount = _non_negative(amount, "amount")
    if amount != quantize(amount):
        raise PaymentValidationError(
            "amount must not have more than two decimal places",
            error_code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )
    amount = quantize(amount)
    rate = _non_negative(commission_rate, "commission_rate")
    if rate > 1:
        raise PaymentValidationError(
            "commission_rate must be between 0 and 1",
            error_code="INVALID_RATE",
            details={"commission_rate": str(rate)},
        )
    platform_fee = quantize(amount * rate)
    return CommissionSplit(
        platform_fee=platform_fee,
        professional_amount=amount - platform_fee,
    )


def to_minor_units(amount) -> int:
    """Convert a Decimal amount to integer cents (1000.50 -> 100050)."""
    return int(quantize(to_decimal(amount)) * 100)


__all__ = [
    "CommissionSplit",
    "TaxBreakdown",
    "TaxExtraction",
    "calculate_tax",
    "extract_tax",
    "quantize",
    "split_commission",
    "to_decimal",
    "to_minor_units",
]
