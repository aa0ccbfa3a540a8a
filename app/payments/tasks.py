"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing gateway webhook events
- Retrying failed webhook events
- The periodic escrow sweep and payout execution (re-exported from workers)

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task
from django.db import transaction

from payments.models import WebhookEvent
from payments.models.webhook_event import MAX_PROCESSING_ATTEMPTS
from payments.state_machines import WebhookEventStatus
from payments.workers import execute_payout, run_escrow_sweep

logger = logging.getLogger(__name__)


# Failed events retried per run of retry_failed_webhooks
RETRY_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_PROCESSING_ATTEMPTS},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a gateway webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to the registered handler
    5. Marks as processed or failed

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry
    """
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "gateway_event_id": webhook_event.gateway_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "gateway_event_id": webhook_event.gateway_event_id,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()

        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "gateway_event_id": webhook_event.gateway_event_id,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "gateway_event_id": webhook_event.gateway_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
            "error_code": result.error_code,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "gateway_event_id": webhook_event.gateway_event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "gateway_event_id": webhook_event.gateway_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue failed webhook events that still have attempts left.

    Handler failures (e.g. an event for a payment that is not yet written)
    are not retried by Celery, so this periodic task picks them up.
    """
    failed_events = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_PROCESSING_ATTEMPTS,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued = 0
    for webhook_event in failed_events:
        process_webhook_event.delay(str(webhook_event.id))
        queued += 1

    logger.info(
        f"Re-queued {queued} failed webhook events",
        extra={"queued_count": queued},
    )
    return {"queued_count": queued}


__all__ = [
    "execute_payout",
    "process_webhook_event",
    "retry_failed_webhooks",
    "run_escrow_sweep",
]
