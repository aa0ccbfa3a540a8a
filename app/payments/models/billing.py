"""
Billing documents: invoices, receipts and their numbering.

Every settled Payment gets exactly one document: an Invoice when the
customer asked for one (with tax breakdown and customer tax data) or a
Receipt otherwise. Numbers look like ``INV-2026-000001`` and come from a
per-kind, per-year DocumentSequence row incremented under a row lock, so
they increase monotonically within a year and are never reused.

Usage:
    from payments.models import DocumentSequence
    from payments.state_machines import DocumentKind

    with transaction.atomic():
        number = DocumentSequence.next_number(DocumentKind.INVOICE, 2026)
        # "INV-2026-000001"
"""

from __future__ import annotations

from django.db import models, transaction
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import DocumentKind, InvoiceStatus


def format_document_number(kind: str, year: int, value: int) -> str:
    """Format ``{INV|REC}-<4-digit year>-<6-digit sequence>``."""
    return f"{kind}-{year:04d}-{value:06d}"


class DocumentSequence(BaseModel):
    """
    Yearly counter for one document kind.

    Fields:
        kind: DocumentKind value (INV or REC)
        year: Calendar year the counter belongs to
        last_value: Last number handed out (0 before the first)
    """

    kind = models.CharField(max_length=3, choices=DocumentKind.choices)
    year = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["kind", "year"]
        constraints = [
            models.UniqueConstraint(
                fields=["kind", "year"],
                name="document_sequence_unique_kind_year",
            ),
        ]

    def __str__(self) -> str:
        return f"DocumentSequence({self.kind}-{self.year}: {self.last_value})"

    @classmethod
    def allocate(cls, kind: str, year: int) -> int:
        """
        Hand out the next value for (kind, year).

        Must run inside the caller's transaction so that the allocation is
        rolled back together with the document if anything fails.
        """
        with transaction.atomic():
            cls.objects.get_or_create(kind=kind, year=year)
            sequence = cls.objects.select_for_update().get(kind=kind, year=year)
            sequence.last_value += 1
            sequence.save(update_fields=["last_value", "updated_at"])
        return sequence.last_value

    @classmethod
    def next_number(cls, kind: str, year: int) -> str:
        return format_document_number(kind, year, cls.allocate(kind, year))


class Invoice(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tax invoice for a payment made with invoice_kind WITH_INVOICE.

    Amounts come from a backward tax extraction on Payment.amount, which
    already includes tax.

    Fields:
        payment: The settled payment
        booking / order: Billable source copied from the payment
        number: INV-<year>-<seq>
        status: Issued on generation
        customer_*: Fiscal data supplied by the customer
        items: One line item per billable source
        subtotal / tax_rate / tax_amount / total: Tax breakdown
        issue_date / due_date: Due date is issue date + INVOICE_DUE_DAYS
        document_url: Where the rendered document will live
    """

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="invoice",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="invoices",
    )
    order = models.ForeignKey(
        "bookings.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="invoices",
    )

    number = models.CharField(max_length=20, unique=True)
    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.ISSUED,
    )

    customer_name = models.CharField(max_length=255)
    customer_tax_id = models.CharField(max_length=50)
    customer_address = models.CharField(max_length=255, blank=True, default="")
    customer_city = models.CharField(max_length=100, blank=True, default="")
    customer_country = models.CharField(max_length=2, blank=True, default="")
    customer_postal_code = models.CharField(max_length=20, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")

    items = models.JSONField(default=list)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=4)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="mxn")

    issue_date = models.DateField()
    due_date = models.DateField()
    document_url = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=Q(booking__isnull=False),
                name="invoice_unique_booking",
            ),
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(order__isnull=False),
                name="invoice_unique_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Invoice({self.number}, {self.total} {self.currency.upper()})"


class Receipt(UUIDPrimaryKeyMixin, BaseModel):
    """
    Plain receipt for a payment made with invoice_kind WITHOUT_INVOICE.

    ``amount`` is copied verbatim from the payment; there is no tax breakdown.
    """

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="receipt",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="receipts",
    )
    order = models.ForeignKey(
        "bookings.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="receipts",
    )

    number = models.CharField(max_length=20, unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="mxn")
    description = models.CharField(max_length=255, blank=True, default="")

    issue_date = models.DateField()
    document_url = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Receipt"
        verbose_name_plural = "Receipts"
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=Q(booking__isnull=False),
                name="receipt_unique_booking",
            ),
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(order__isnull=False),
                name="receipt_unique_order",
            ),
        ]

    def __str__(self) -> str:
        return f"Receipt({self.number}, {self.amount} {self.currency.upper()})"
