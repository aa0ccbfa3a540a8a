"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    TERMINAL_PAYMENT_STATUSES,
    DocumentKind,
    InvoiceKind,
    InvoiceStatus,
    PaymentStatus,
    PayoutStatus,
    WebhookEventStatus,
)

__all__ = [
    "DocumentKind",
    "InvoiceKind",
    "InvoiceStatus",
    "PaymentStatus",
    "PayoutStatus",
    "TERMINAL_PAYMENT_STATUSES",
    "WebhookEventStatus",
]
