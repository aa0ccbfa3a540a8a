"""
Notification models.

A Notification is the durable record that something happened to a user's
money: a payment released to them, a refund, an issued invoice, a payout.
Delivery over push/email/websocket is handled outside this project; the
row here is what a delivery worker picks up.

Usage:
    from notifications.models import Notification, NotificationKind

    Notification.objects.create(
        recipient_id=professional_id,
        kind=NotificationKind.PAYMENT_RECEIVED,
        title="You received 850.00 MXN",
        data={"payment_id": str(payment.id)},
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationKind(models.TextChoices):
    """Money-related events users are told about."""

    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    INVOICE_GENERATED = "invoice_generated", "Invoice Generated"
    RECEIPT_GENERATED = "receipt_generated", "Receipt Generated"
    PAYOUT_COMPLETED = "payout_completed", "Payout Completed"
    PAYOUT_FAILED = "payout_failed", "Payout Failed"


# Title templates rendered with the notification payload.
TITLE_TEMPLATES: dict[str, str] = {
    NotificationKind.PAYMENT_RECEIVED: "You received {amount} {currency}",
    NotificationKind.PAYMENT_REFUNDED: "Your payment of {amount} {currency} was refunded",
    NotificationKind.INVOICE_GENERATED: "Invoice {number} is ready",
    NotificationKind.RECEIPT_GENERATED: "Receipt {number} is ready",
    NotificationKind.PAYOUT_COMPLETED: "Payout of {amount} {currency} completed",
    NotificationKind.PAYOUT_FAILED: "Payout of {amount} {currency} failed",
}


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Individual notification record for a user.

    Fields:
        recipient_id: User receiving the notification
        kind: Event kind (see NotificationKind)
        title: Fully rendered title
        data: JSON payload (ids, amounts, document numbers)
        is_read: Whether the recipient has read it
        idempotency_key: Optional key preventing duplicates on retries
    """

    recipient_id = models.UUIDField(
        db_index=True,
        help_text="User receiving this notification",
    )
    kind = models.CharField(
        max_length=50,
        choices=NotificationKind.choices,
        help_text="Event kind",
    )
    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Event payload",
    )
    is_read = models.BooleanField(default=False)
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Prevents duplicate notifications for the same event",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient_id", "is_read"],
                name="notif_recipient_read_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="notif_unique_idempotency_key",
            ),
        ]

    def __str__(self) -> str:
        return f"Notification({self.kind} -> {self.recipient_id})"
