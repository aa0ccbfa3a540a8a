"""
Webhook ingestion for gateway events.

ingest_webhook is the entry point an HTTP endpoint calls with the raw
request body and signature header. It:
1. Verifies the signature through the gateway adapter
2. Creates/retrieves the WebhookEvent record (idempotent on the event id)
3. Queues the event for async processing once the record is committed

Usage:
    from payments.webhooks import ingest_webhook

    webhook_event = ingest_webhook(request.body, request.headers["Stripe-Signature"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import transaction

from payments.adapters import StripeGatewayAdapter
from payments.exceptions import PaymentValidationError
from payments.models import WebhookEvent

if TYPE_CHECKING:
    from payments.adapters import PaymentGateway


logger = logging.getLogger(__name__)


def ingest_webhook(
    payload: bytes | str,
    signature: str,
    gateway: PaymentGateway | None = None,
) -> WebhookEvent:
    """
    Verify, store and queue a gateway webhook.

    Redelivery of an already processed event returns the stored record
    without queuing it again.

    Raises:
        StripeInvalidRequestError: Invalid signature or payload
        PaymentValidationError: INVALID_EVENT when id or type is missing
    """
    gateway = gateway or StripeGatewayAdapter()
    event_data = gateway.verify_webhook_signature(payload, signature)

    gateway_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not gateway_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        raise PaymentValidationError(
            "Webhook event has no id or type",
            error_code="INVALID_EVENT",
        )

    logger.info(
        f"Received gateway webhook: {event_type}",
        extra={"gateway_event_id": gateway_event_id, "event_type": event_type},
    )

    with transaction.atomic():
        webhook_event, created = WebhookEvent.objects.get_or_create(
            gateway_event_id=gateway_event_id,
            defaults={"event_type": event_type, "payload": event_data},
        )

        if not created and webhook_event.is_processed:
            logger.info(
                "Webhook already processed, skipping",
                extra={"gateway_event_id": gateway_event_id},
            )
            return webhook_event

        webhook_event_id = str(webhook_event.id)
        transaction.on_commit(lambda: _enqueue(webhook_event_id))

    return webhook_event


def _enqueue(webhook_event_id: str) -> None:
    from payments.tasks import process_webhook_event

    process_webhook_event.delay(webhook_event_id)
    logger.info(
        "Webhook queued for processing",
        extra={"webhook_event_id": webhook_event_id},
    )
