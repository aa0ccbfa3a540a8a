"""
Webhook event handlers for gateway events.

This module provides a handler registry and the handlers that reconcile
Payment state with what the gateway reports. Every handler delegates to a
PaymentLifecycleManager reconciler, and every reconciler is a no-op when
the payment is already in the target state, so redelivered or out-of-order
events are harmless.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable

from core.services import ServiceResult

from payments.models import WebhookEvent
from payments.services import PaymentLifecycleManager

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The gateway event type (e.g., "payment_intent.succeeded")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged with success so the gateway
    stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"gateway_event_id": webhook_event.gateway_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"gateway_event_id": webhook_event.gateway_event_id},
    )

    return handler(webhook_event)


def _missing_ref(webhook_event: WebhookEvent) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: could not extract payment reference",
        extra={"gateway_event_id": webhook_event.gateway_event_id},
    )
    return ServiceResult.failure(
        "Event payload has no payment reference",
        error_code="MISSING_OBJECT_ID",
    )


# =============================================================================
# Payment Intent Handlers
# =============================================================================


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """Authorization confirmed by the gateway: PENDING -> AUTHORIZED."""
    external_ref = webhook_event.get_payment_intent_ref()
    if not external_ref:
        return _missing_ref(webhook_event)

    payment = PaymentLifecycleManager().on_gateway_succeeded(external_ref)
    return ServiceResult.success(payment)


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    external_ref = webhook_event.get_payment_intent_ref()
    if not external_ref:
        return _missing_ref(webhook_event)

    last_error = webhook_event.get_object().get("last_payment_error") or {}
    reason = last_error.get("message") or last_error.get("code")

    payment = PaymentLifecycleManager().on_gateway_failed(external_ref, reason=reason)
    return ServiceResult.success(payment)


@register_handler("payment_intent.canceled")
def handle_payment_intent_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    external_ref = webhook_event.get_payment_intent_ref()
    if not external_ref:
        return _missing_ref(webhook_event)

    payment = PaymentLifecycleManager().on_gateway_canceled(external_ref)
    return ServiceResult.success(payment)


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Refund reported by the gateway.

    ``amount_refunded`` is in minor units; when it is missing the whole
    refundable amount is assumed.
    """
    external_ref = webhook_event.get_payment_intent_ref()
    if not external_ref:
        return _missing_ref(webhook_event)

    amount_refunded = webhook_event.get_object().get("amount_refunded")
    amount = (
        Decimal(amount_refunded) / Decimal(100) if amount_refunded is not None else None
    )

    payment = PaymentLifecycleManager().on_gateway_refunded(external_ref, amount=amount)
    return ServiceResult.success(payment)
