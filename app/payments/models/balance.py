"""
Balance model holding what the platform owes each professional.

``available`` is credited when escrowed funds are released and is the only
amount a professional can withdraw. Requesting a payout moves money from
``available`` to ``pending``; completing it removes it from ``pending``.

Balances are never edited directly. PaymentLifecycleManager and
PayoutService lock the row with select_for_update() and apply the helpers
below inside the same transaction.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedModelMixin


class Balance(UUIDPrimaryKeyMixin, VersionedModelMixin, BaseModel):
    """
    One balance per professional.

    Fields:
        professional_id: Owner of the balance
        available: Funds that can be paid out
        pending: Funds reserved by payouts not yet completed
        currency: ISO 4217 currency code (lowercase)
    """

    professional_id = models.UUIDField(
        unique=True,
        help_text="Professional this balance belongs to",
    )

    available = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Released funds available for payout",
    )

    pending = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Funds reserved by in-flight payouts",
    )

    currency = models.CharField(max_length=3, default="mxn")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Balance"
        verbose_name_plural = "Balances"
        constraints = [
            models.CheckConstraint(
                condition=Q(available__gte=0),
                name="balance_available_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(pending__gte=0),
                name="balance_pending_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Balance({self.professional_id}, {self.available} {self.currency.upper()})"

    @classmethod
    def lock_for(cls, professional_id, currency: str) -> Balance:
        """
        Return the professional's balance locked for update.

        Creates a zero balance first if the professional has none. Must be
        called inside transaction.atomic().
        """
        cls.objects.get_or_create(
            professional_id=professional_id,
            defaults={"currency": currency},
        )
        return cls.objects.select_for_update().get(professional_id=professional_id)

    def credit(self, amount: Decimal) -> None:
        self.available = self.available + amount

    def debit(self, amount: Decimal) -> None:
        self.available = self.available - amount

    def reserve(self, amount: Decimal) -> None:
        """Move funds from available to pending for a payout request."""
        self.available = self.available - amount
        self.pending = self.pending + amount

    def restore(self, amount: Decimal) -> None:
        """Return a failed or cancelled payout's funds to available."""
        self.pending = self.pending - amount
        self.available = self.available + amount

    def settle(self, amount: Decimal) -> None:
        """Drop a completed payout from pending."""
        self.pending = self.pending - amount
