"""
Payment adapters for external services.

All payment processor calls go through these adapters to ensure consistent
error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import StripeGatewayAdapter

    gateway = StripeGatewayAdapter()
    result = gateway.authorize_and_hold(Decimal("1000.00"), "mxn", metadata={})
"""

from payments.adapters.base import (
    AuthorizationResult,
    NotificationSender,
    PaymentGateway,
)
from payments.adapters.stripe_adapter import (
    IdempotencyKeyGenerator,
    StripeGatewayAdapter,
)

__all__ = [
    "AuthorizationResult",
    "IdempotencyKeyGenerator",
    "NotificationSender",
    "PaymentGateway",
    "StripeGatewayAdapter",
]
