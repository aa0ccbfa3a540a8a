"""
Booking and Order models.

These are the billable sources a Payment settles against. The payments
engine reads Booking.status and Booking.completed_at to decide when held
funds may be released, but never writes Booking.status itself.

Usage:
    from bookings.models import Booking, BookingStatus

    booking = Booking.objects.create(
        customer_id=customer.id,
        professional_id=professional.id,
        service_name="Deep tissue massage",
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class BookingStatus(models.TextChoices):
    """
    Lifecycle of a booking.

    Only COMPLETED makes held funds eligible for release.
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REJECTED = "rejected", "Rejected"
    DISPUTED = "disputed", "Disputed"
    RESOLVED = "resolved", "Resolved"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A service appointment between a customer and a professional.

    Fields:
        customer_id: User paying for the service
        professional_id: User delivering the service (receives the payout)
        service_name: Short description used on billing documents
        status: Current booking status
        completed_at: When the service was marked complete (escrow clock start)
    """

    customer_id = models.UUIDField(
        db_index=True,
        help_text="User ID of the paying customer",
    )
    professional_id = models.UUIDField(
        db_index=True,
        help_text="User ID of the professional delivering the service",
    )
    service_name = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Service description shown on invoices and receipts",
    )
    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
        db_index=True,
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was completed; the escrow hold starts here",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "completed_at"],
                name="booking_status_completed_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status})"

    @property
    def description(self) -> str:
        return self.service_name or f"Booking {self.id}"


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """A product purchase paid without escrow."""

    customer_id = models.UUIDField(db_index=True)
    description = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Order({self.id}, {self.status})"
