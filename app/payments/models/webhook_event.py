"""
WebhookEvent model for gateway event ingestion.

Each event the gateway delivers is stored once, keyed by its event ID, before
it is dispatched to the payment reconcilers. Redeliveries of the same event
hit the unique constraint and are recognised as duplicates.

Usage:
    from payments.webhooks import ingest_webhook

    event = ingest_webhook(request.body, request.headers["Stripe-Signature"])
    # stored PENDING, process_webhook_event queued
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus

MAX_PROCESSING_ATTEMPTS = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A gateway event and its processing status.

    Processing Flow:
        1. Signature verified by the gateway adapter
        2. Row inserted (or fetched) by gateway_event_id
        3. Already PROCESSED -> nothing to do
        4. PROCESSING -> dispatched to the handler registry
        5. PROCESSED or FAILED; FAILED events may be retried

    Fields:
        gateway_event_id: Event ID from the gateway (evt_xxx)
        event_type: e.g. 'payment_intent.succeeded'
        payload: Full event body
        status: Processing status
        processed_at: When processing succeeded
        error_message: Last processing error
        retry_count: Number of processing attempts
    """

    gateway_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway event ID (evt_xxx)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'charge.refunded')",
    )

    payload = models.JSONField(help_text="Full event body from the gateway")

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.gateway_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_PROCESSING_ATTEMPTS
        )

    # Mutators below do not save; the caller saves.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        """Return ``payload.data.object`` or an empty dict."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    def get_payment_intent_ref(self) -> str | None:
        """
        External payment reference the event is about.

        PaymentIntent events carry it as the object id; charge events
        reference it through ``payment_intent``.
        """
        obj = self.get_object()
        if obj.get("object") == "payment_intent":
            return obj.get("id")
        return obj.get("payment_intent") or None
