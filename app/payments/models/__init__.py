"""
Payment domain models.

This module contains all payment-related models:
- Payment: One charge per booking or order, escrow state machine
- Balance: What the platform owes each professional
- Payout: Withdrawals from a professional's balance
- ConnectedAccount: Professionals' external payout accounts
- Invoice / Receipt: Billing documents for settled payments
- DocumentSequence: Yearly numbering counters for billing documents
- WebhookEvent: Gateway events stored for idempotent processing
"""

from payments.models.balance import Balance
from payments.models.billing import (
    DocumentSequence,
    Invoice,
    Receipt,
    format_document_number,
)
from payments.models.connected_account import ConnectedAccount
from payments.models.payment import Payment
from payments.models.payout import Payout
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Balance",
    "ConnectedAccount",
    "DocumentSequence",
    "Invoice",
    "Payment",
    "Payout",
    "Receipt",
    "WebhookEvent",
    "format_document_number",
]
