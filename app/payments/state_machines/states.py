"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    pending → authorized → captured → released (escrow path)
    pending → captured (capture without a prior authorization webhook)
    pending/authorized → failed
    captured/released → refunded

Payout States:
    pending → processing → completed
    pending → processing → failed
    pending → cancelled
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: REFUNDED, FAILED
    RELEASED can still move to REFUNDED when the professional's balance
    covers the clawback.

    State Flow:
        PENDING → AUTHORIZED → CAPTURED → RELEASED
        PENDING → CAPTURED
        PENDING/AUTHORIZED → FAILED
        CAPTURED/RELEASED → REFUNDED
    """

    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    CAPTURED = "captured", "Captured"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


TERMINAL_PAYMENT_STATUSES = frozenset({PaymentStatus.REFUNDED, PaymentStatus.FAILED})


class PayoutStatus(models.TextChoices):
    """
    States for the Payout model lifecycle.

    Terminal states: COMPLETED, FAILED, CANCELLED

    State Flow:
        PENDING → PROCESSING → COMPLETED
        PENDING → PROCESSING → FAILED
        PENDING → CANCELLED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class InvoiceKind(models.TextChoices):
    """Whether the customer asked for a tax invoice or a plain receipt."""

    WITH_INVOICE = "with_invoice", "With Invoice"
    WITHOUT_INVOICE = "without_invoice", "Without Invoice"


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ISSUED = "issued", "Issued"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class DocumentKind(models.TextChoices):
    """
    Billing document series.

    The value is the number prefix; each kind has its own yearly counter.
    """

    INVOICE = "INV", "Invoice"
    RECEIPT = "REC", "Receipt"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "DocumentKind",
    "InvoiceKind",
    "InvoiceStatus",
    "PaymentStatus",
    "PayoutStatus",
    "TERMINAL_PAYMENT_STATUSES",
    "WebhookEventStatus",
]
