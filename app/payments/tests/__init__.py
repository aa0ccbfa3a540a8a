"""
Tests for payments app.

This package contains test modules for:
- test_calculators.py / test_config.py: Pure arithmetic and settings parsing
- test_models.py: Payment, Balance, Payout, DocumentSequence, WebhookEvent
- test_payment_lifecycle.py: Intent, capture, release, refund, reconcilers
- test_escrow.py: Escrow status and the release sweep
- test_payouts.py: Payout requests and execution
- test_billing.py: Invoices and receipts
- test_tasks.py: Webhook processing tasks

Usage:
    pytest payments/tests/
    pytest payments/tests/test_payouts.py
"""
