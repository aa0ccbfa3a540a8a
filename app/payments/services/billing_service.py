"""
Billing document generator: one invoice or receipt per settled payment.

Generation is idempotent. The payment row is locked and an existing
document for the payment's booking/order is looked up before a number is
allocated, so retries (for example after a failed notification) return the
same document and never consume a second number.

Usage:
    from payments.services import BillingDocumentGenerator

    invoice = BillingDocumentGenerator().generate_invoice(payment.id, invoice_data)
    invoice.number  # "INV-2026-000001"
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from notifications.models import NotificationKind

from payments.calculators import extract_tax
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentValidationError,
    PreconditionError,
)
from payments.models import DocumentSequence, Invoice, Payment, Receipt
from payments.services.base import SettlementService
from payments.state_machines import (
    DocumentKind,
    InvoiceKind,
    InvoiceStatus,
    PaymentStatus,
)

if TYPE_CHECKING:
    from typing import Any


SETTLED_STATUSES = (PaymentStatus.CAPTURED, PaymentStatus.RELEASED)

REQUIRED_INVOICE_FIELDS = ("customer_name", "customer_tax_id")


class BillingDocumentGenerator(SettlementService):
    """
    Service for invoices and receipts.

    Methods:
        generate_invoice: Invoice for a WITH_INVOICE payment
        generate_receipt: Receipt for a payment without invoice
        get_invoice / get_receipt: Reads
    """

    def generate_invoice(
        self,
        payment_id: uuid.UUID | str,
        invoice_data: dict[str, Any] | None = None,
    ) -> Invoice:
        """
        Generate (or return the existing) invoice for a payment.

        ``invoice_data`` defaults to the data given at intent creation. The
        payment amount already includes tax, so subtotal and tax are
        extracted backwards at the rate for ``invoice_data["country"]``.

        Raises:
            PaymentNotFoundError: Unknown payment
            PreconditionError: INVOICE_NOT_REQUESTED or PAYMENT_NOT_SETTLED
            PaymentValidationError: MISSING_INVOICE_DATA
        """
        payment = self._get_settled_payment(payment_id)
        if payment.invoice_kind != InvoiceKind.WITH_INVOICE:
            raise PreconditionError(
                "Payment was not made with invoice",
                error_code="INVOICE_NOT_REQUESTED",
                details={"payment_id": str(payment.id), "invoice_kind": payment.invoice_kind},
            )

        invoice_data = dict(invoice_data or payment.metadata.get("invoice_data") or {})
        missing = [
            name for name in REQUIRED_INVOICE_FIELDS if not str(invoice_data.get(name) or "").strip()
        ]
        if missing:
            raise PaymentValidationError(
                "Invoice data is incomplete",
                error_code="MISSING_INVOICE_DATA",
                details={"missing": missing},
            )

        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)

            existing = self._existing(Invoice, payment)
            if existing is not None:
                self.get_logger().info(
                    "Invoice already exists",
                    extra={"payment_id": str(payment.id), "invoice_number": existing.number},
                )
                return existing

            today = timezone.localdate()
            tax_rate = self.config.tax_rate_for(invoice_data.get("country"))
            extraction = extract_tax(payment.amount, tax_rate)
            source = payment.source

            invoice = Invoice(
                payment=payment,
                booking=payment.booking,
                order=payment.order,
                number=DocumentSequence.next_number(DocumentKind.INVOICE, today.year),
                status=InvoiceStatus.ISSUED,
                customer_name=invoice_data["customer_name"],
                customer_tax_id=invoice_data["customer_tax_id"],
                customer_address=invoice_data.get("address", ""),
                customer_city=invoice_data.get("city", ""),
                customer_country=(invoice_data.get("country") or "").upper(),
                customer_postal_code=invoice_data.get("postal_code", ""),
                customer_email=invoice_data.get("email", ""),
                items=[
                    {
                        "description": source.description,
                        "quantity": 1,
                        "unit_price": str(extraction.subtotal),
                        "amount": str(extraction.subtotal),
                        "source_type": "booking" if payment.booking_id else "order",
                        "source_id": str(source.id),
                    }
                ],
                subtotal=extraction.subtotal,
                tax_rate=tax_rate,
                tax_amount=extraction.tax_amount,
                total=payment.amount,
                currency=payment.currency,
                issue_date=today,
                due_date=today + timedelta(days=self.config.invoice_due_days),
            )
            invoice.document_url = f"/invoices/{invoice.id}.pdf"
            invoice.save()

            self.notify_after_commit(
                payment.customer_id,
                NotificationKind.INVOICE_GENERATED,
                {
                    "number": invoice.number,
                    "invoice_id": str(invoice.id),
                    "payment_id": str(payment.id),
                },
                idempotency_key=f"invoice_generated:{invoice.id}",
            )

        self.get_logger().info(
            "Invoice generated",
            extra={
                "payment_id": str(payment.id),
                "invoice_number": invoice.number,
                "subtotal": str(invoice.subtotal),
                "tax_amount": str(invoice.tax_amount),
            },
        )
        return invoice

    def generate_receipt(self, payment_id: uuid.UUID | str) -> Receipt:
        """
        Generate (or return the existing) receipt for a payment.

        Payments without an invoice kind get receipts too.

        Raises:
            PaymentNotFoundError: Unknown payment
            PreconditionError: RECEIPT_NOT_APPLICABLE or PAYMENT_NOT_SETTLED
        """
        payment = self._get_settled_payment(payment_id)
        if payment.invoice_kind == InvoiceKind.WITH_INVOICE:
            raise PreconditionError(
                "Payment was made with invoice; generate an invoice instead",
                error_code="RECEIPT_NOT_APPLICABLE",
                details={"payment_id": str(payment.id)},
            )

        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)

            existing = self._existing(Receipt, payment)
            if existing is not None:
                return existing

            today = timezone.localdate()
            receipt = Receipt(
                payment=payment,
                booking=payment.booking,
                order=payment.order,
                number=DocumentSequence.next_number(DocumentKind.RECEIPT, today.year),
                amount=payment.amount,
                currency=payment.currency,
                description=payment.source.description,
                issue_date=today,
            )
            receipt.document_url = f"/receipts/{receipt.id}.pdf"
            receipt.save()

            self.notify_after_commit(
                payment.customer_id,
                NotificationKind.RECEIPT_GENERATED,
                {
                    "number": receipt.number,
                    "receipt_id": str(receipt.id),
                    "payment_id": str(payment.id),
                },
                idempotency_key=f"receipt_generated:{receipt.id}",
            )

        self.get_logger().info(
            "Receipt generated",
            extra={"payment_id": str(payment.id), "receipt_number": receipt.number},
        )
        return receipt

    def get_invoice(self, invoice_id: uuid.UUID | str) -> Invoice:
        invoice = Invoice.objects.filter(id=invoice_id).first()
        if invoice is None:
            raise PaymentNotFoundError(
                f"Invoice {invoice_id} not found",
                error_code="INVOICE_NOT_FOUND",
                details={"invoice_id": str(invoice_id)},
            )
        return invoice

    def get_receipt(self, receipt_id: uuid.UUID | str) -> Receipt:
        receipt = Receipt.objects.filter(id=receipt_id).first()
        if receipt is None:
            raise PaymentNotFoundError(
                f"Receipt {receipt_id} not found",
                error_code="RECEIPT_NOT_FOUND",
                details={"receipt_id": str(receipt_id)},
            )
        return receipt

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get_settled_payment(payment_id) -> Payment:
        payment = (
            Payment.objects.select_related("booking", "order").filter(id=payment_id).first()
        )
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        if payment.status not in SETTLED_STATUSES:
            raise PreconditionError(
                f"Payment in '{payment.status}' state is not settled",
                error_code="PAYMENT_NOT_SETTLED",
                details={"payment_id": str(payment.id), "status": payment.status},
            )
        return payment

    @staticmethod
    def _existing(model, payment: Payment):
        """Document already issued for the payment's booking or order."""
        if payment.booking_id:
            return model.objects.filter(booking_id=payment.booking_id).first()
        return model.objects.filter(order_id=payment.order_id).first()
