"""
Webhook handling for payment events from the gateway.

Webhooks are verified, stored idempotently, and processed asynchronously
via Celery tasks.

Usage:
    from payments.webhooks import ingest_webhook

    ingest_webhook(request.body, request.headers["Stripe-Signature"])
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.ingest import ingest_webhook

__all__ = [
    "dispatch_webhook",
    "ingest_webhook",
    "register_handler",
]
