"""
Settlement configuration.

Commission rate, tax rates, hold duration and payout limits are read from
Django settings once and passed around as an immutable value object, so the
calculators, services and the escrow sweep can be exercised with fixed values.

Usage:
    from payments.config import SettlementConfig

    config = SettlementConfig.from_settings()
    config.tax_rate_for("MX")  # Decimal("0.16")

    # Tests build their own
    config = SettlementConfig(commission_rate=Decimal("0.15"))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import TYPE_CHECKING

from django.conf import settings

from payments.exceptions import PaymentValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any


def _to_rate(value: Any, name: str, upper: Decimal | None = None) -> Decimal:
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PaymentValidationError(
            f"{name} is not a valid decimal: {value!r}",
            error_code="INVALID_RATE",
            details={"setting": name},
        ) from e

    if not rate.is_finite() or rate < 0 or (upper is not None and rate > upper):
        raise PaymentValidationError(
            f"{name} out of range: {rate}",
            error_code="INVALID_RATE",
            details={"setting": name, "value": str(rate)},
        )
    return rate


@dataclass(frozen=True)
class SettlementConfig:
    """
    Immutable settlement parameters.

    Attributes:
        commission_rate: Platform share of a released payment, in [0, 1]
        default_tax_rate: Fallback rate for unknown jurisdictions
        tax_rates: Jurisdiction code (upper-case) to tax rate
        hold_duration: Time a completed booking's funds stay in escrow
        default_currency: Lower-case ISO 4217 code
        min_payout_amount: Smallest payout a professional can request
        invoice_due_days: Days between issue and due date on invoices
    """

    commission_rate: Decimal = Decimal("0.15")
    default_tax_rate: Decimal = Decimal("0.16")
    tax_rates: Mapping[str, Decimal] = field(
        default_factory=lambda: MappingProxyType({})
    )
    hold_duration: timedelta = timedelta(hours=24)
    default_currency: str = "mxn"
    min_payout_amount: Decimal = Decimal("100.00")
    invoice_due_days: int = 30

    def __post_init__(self) -> None:
        # Normalize on construction so hand-built configs behave like
        # ones read from settings.
        object.__setattr__(
            self,
            "commission_rate",
            _to_rate(self.commission_rate, "commission_rate", upper=Decimal("1")),
        )
        object.__setattr__(
            self,
            "default_tax_rate",
            _to_rate(self.default_tax_rate, "default_tax_rate"),
        )
        object.__setattr__(
            self,
            "tax_rates",
            MappingProxyType(
                {
                    code.upper(): _to_rate(rate, f"tax_rates[{code}]")
                    for code, rate in dict(self.tax_rates).items()
                }
            ),
        )
        object.__setattr__(
            self, "min_payout_amount", Decimal(str(self.min_payout_amount))
        )
        object.__setattr__(self, "default_currency", self.default_currency.lower())
        if self.hold_duration < timedelta(0):
            raise PaymentValidationError(
                "hold_duration must not be negative",
                error_code="INVALID_HOLD_DURATION",
            )

    @classmethod
    def from_settings(cls) -> SettlementConfig:
        """Build the config from Django settings."""
        return cls(
            commission_rate=getattr(settings, "PLATFORM_COMMISSION_RATE", "0.15"),
            default_tax_rate=getattr(settings, "PLATFORM_TAX_RATE", "0.16"),
            tax_rates=getattr(settings, "TAX_RATES_BY_JURISDICTION", {}),
            hold_duration=timedelta(hours=getattr(settings, "ESCROW_HOLD_HOURS", 24)),
            default_currency=getattr(settings, "PAYMENTS_DEFAULT_CURRENCY", "mxn"),
            min_payout_amount=getattr(settings, "MIN_PAYOUT_AMOUNT", "100.00"),
            invoice_due_days=getattr(settings, "INVOICE_DUE_DAYS", 30),
        )

    def tax_rate_for(self, jurisdiction: str | None) -> Decimal:
        """Return the rate for a jurisdiction code, or the default rate."""
        if not jurisdiction:
            return self.default_tax_rate
        return self.tax_rates.get(jurisdiction.upper(), self.default_tax_rate)


__all__ = ["SettlementConfig"]
