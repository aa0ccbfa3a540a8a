"""
Payment services.

This module provides:
- PaymentLifecycleManager: Payment state machine and balance crediting
- EscrowService: Escrow status and the automatic release sweep
- PayoutService: Payout requests and execution
- BillingDocumentGenerator: Idempotent invoices and receipts

Usage:
    from payments.services import PaymentLifecycleManager

    manager = PaymentLifecycleManager()
    result = manager.release(booking_id)

    # Collaborators can be injected (tests, alternative gateways)
    manager = PaymentLifecycleManager(gateway=gateway, config=config, notifier=notifier)
"""

from payments.services.base import SettlementService
from payments.services.billing_service import BillingDocumentGenerator
from payments.services.escrow_service import EscrowService, EscrowStatus, SweepReport
from payments.services.payment_lifecycle import (
    IntentResult,
    PaymentLifecycleManager,
    ReleaseResult,
)
from payments.services.payout_service import PayoutService

__all__ = [
    "BillingDocumentGenerator",
    "EscrowService",
    "EscrowStatus",
    "IntentResult",
    "PaymentLifecycleManager",
    "PayoutService",
    "ReleaseResult",
    "SettlementService",
    "SweepReport",
]
