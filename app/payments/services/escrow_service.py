"""
Escrow service: hold-period checks and the automatic release sweep.

A booking's captured funds become releasable once the booking is COMPLETED
and ``hold_duration`` has passed since ``completed_at``. The sweep finds
every such booking and releases it through the lifecycle manager. Because
release requires a CAPTURED payment, bookings released by an earlier run
drop out of the scan on their own.

Usage:
    from payments.services import EscrowService

    report = EscrowService().run_escrow_sweep()
    status = EscrowService().get_escrow_status(booking.id)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from bookings.models import Booking, BookingStatus
from core.exceptions import BaseApplicationError
from core.services import BaseService

from payments.config import SettlementConfig
from payments.exceptions import BookingNotFoundError
from payments.models import Payment
from payments.services.payment_lifecycle import PaymentLifecycleManager
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class EscrowStatus:
    """
    Escrow view of one booking.

    Attributes:
        in_escrow: The booking's payment is CAPTURED and not yet released
        release_at: completed_at + hold duration (None until completed)
        can_release: in_escrow, booking COMPLETED and release_at reached
    """

    booking_id: uuid.UUID
    in_escrow: bool
    payment_status: str | None
    booking_status: str
    completed_at: datetime | None
    release_at: datetime | None
    can_release: bool
    amount: Decimal | None = None
    currency: str | None = None


@dataclass
class SweepReport:
    scanned: int = 0
    released: int = 0
    failed: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "released": self.released,
            "failed": self.failed,
            "failures": self.failures,
        }


class EscrowService(BaseService):
    """
    Service for escrow hold inspection and automatic release.

    Args:
        lifecycle_manager: Used for each release (built from config if omitted)
        config: Settlement parameters (hold duration)
    """

    def __init__(
        self,
        lifecycle_manager: PaymentLifecycleManager | None = None,
        config: SettlementConfig | None = None,
    ) -> None:
        if config is None:
            config = (
                lifecycle_manager.config
                if lifecycle_manager is not None
                else SettlementConfig.from_settings()
            )
        self.config = config
        self.lifecycle_manager = lifecycle_manager or PaymentLifecycleManager(config=config)

    def get_escrow_status(
        self,
        booking_id: uuid.UUID | str,
        now: datetime | None = None,
    ) -> EscrowStatus:
        """
        Report whether a booking's funds are held and when they can be released.

        Raises:
            BookingNotFoundError: Unknown booking
        """
        booking = Booking.objects.filter(id=booking_id).first()
        if booking is None:
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            )

        now = now or timezone.now()
        payment = (
            Payment.objects.filter(booking=booking)
            .exclude(status=PaymentStatus.FAILED)
            .order_by("-created_at")
            .first()
        )
        in_escrow = payment is not None and payment.status == PaymentStatus.CAPTURED
        release_at = (
            booking.completed_at + self.config.hold_duration
            if booking.completed_at
            else None
        )
        can_release = (
            in_escrow
            and booking.status == BookingStatus.COMPLETED
            and release_at is not None
            and now >= release_at
        )

        return EscrowStatus(
            booking_id=booking.id,
            in_escrow=in_escrow,
            payment_status=payment.status if payment else None,
            booking_status=booking.status,
            completed_at=booking.completed_at,
            release_at=release_at,
            can_release=can_release,
            amount=payment.amount if payment else None,
            currency=payment.currency if payment else None,
        )

    def eligible_booking_ids(self, now: datetime | None = None) -> list[uuid.UUID]:
        """Bookings COMPLETED before the hold cutoff with a CAPTURED payment."""
        cutoff = (now or timezone.now()) - self.config.hold_duration
        return list(
            Booking.objects.filter(
                status=BookingStatus.COMPLETED,
                completed_at__lte=cutoff,
                payments__status=PaymentStatus.CAPTURED,
            )
            .order_by("completed_at")
            .values_list("id", flat=True)
            .distinct()
        )

    def run_escrow_sweep(self, now: datetime | None = None) -> SweepReport:
        """
        Release every booking whose hold period has elapsed.

        Each booking is released independently: a failure is logged and
        recorded in the report, the sweep moves on, and the booking stays
        eligible for the next run.
        """
        logger = self.get_logger()
        report = SweepReport()
        booking_ids = self.eligible_booking_ids(now)
        report.scanned = len(booking_ids)

        logger.info(
            "Escrow sweep started",
            extra={"candidates": report.scanned},
        )

        for booking_id in booking_ids:
            try:
                self.lifecycle_manager.release(booking_id)
            except BaseApplicationError as e:
                report.failed += 1
                report.failures.append(
                    {"booking_id": str(booking_id), "error_code": e.error_code, "error": e.message}
                )
                logger.warning(
                    "Escrow release failed",
                    extra={"booking_id": str(booking_id), "error_code": e.error_code},
                )
            except Exception as e:
                report.failed += 1
                report.failures.append(
                    {"booking_id": str(booking_id), "error_code": type(e).__name__, "error": str(e)}
                )
                logger.exception(
                    "Unexpected error releasing escrow",
                    extra={"booking_id": str(booking_id)},
                )
            else:
                report.released += 1

        logger.info("Escrow sweep finished", extra=report.to_dict())
        return report
