"""
Payments app configuration.

This app provides the settlement engine:
- Escrowed payments with manual capture
- Commission split and professional balances
- Payouts, invoices and receipts
- Gateway webhook reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
