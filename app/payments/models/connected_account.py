"""
ConnectedAccount model for professionals' external payout accounts.

Each professional who can receive payouts has one ConnectedAccount holding
the gateway's account ID (acct_xxx). Onboarding itself happens outside this
system; only the resulting account reference and payout flag are stored.

Usage:
    from payments.models import ConnectedAccount

    account = ConnectedAccount.objects.create(
        professional_id=professional_id,
        external_account_id="acct_1234567890",
        payouts_enabled=True,
    )
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class ConnectedAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    A professional's payout destination at the gateway.

    Fields:
        professional_id: Owner of the account
        external_account_id: Gateway account ID (acct_xxx)
        payouts_enabled: Whether the gateway accepts transfers to it
        metadata: Flexible JSON storage
    """

    professional_id = models.UUIDField(
        unique=True,
        help_text="Professional this account pays out to",
    )

    external_account_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway account ID (acct_xxx)",
    )

    payouts_enabled = models.BooleanField(
        default=False,
        help_text="Whether the gateway has enabled payouts for this account",
    )

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Connected Account"
        verbose_name_plural = "Connected Accounts"

    def __str__(self) -> str:
        return f"ConnectedAccount({self.external_account_id}, payouts={self.payouts_enabled})"

    @property
    def is_ready_for_payouts(self) -> bool:
        return self.payouts_enabled and bool(self.external_account_id)
