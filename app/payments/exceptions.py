"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/payout/document lookup failures (NotFoundError)
    ├── BookingNotFoundError - Referenced booking or order does not exist (NotFoundError)
    ├── PaymentValidationError - Invalid input, raised before any write (ValidationError)
    ├── PreconditionError - Wrong state for the requested operation (ConflictError)
    │   ├── InvalidStateTransitionError - FSM transition not allowed
    │   └── InsufficientBalanceError - Balance cannot cover a payout or clawback
    └── GatewayError - Gateway call failed or timed out
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidAccountError - Invalid payout account (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

    LockAcquisitionError - Distributed lock not acquired (ConflictError)

Usage:
    from payments.exceptions import PreconditionError

    if payment.status != PaymentStatus.CAPTURED:
        raise PreconditionError(
            "Payment is not captured",
            error_code="PAYMENT_NOT_CAPTURED",
            details={"payment_id": str(payment.id), "status": payment.status},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            manager.release(booking_id)
        except PaymentError as e:
            logger.error("Release failed", extra=e.to_dict())
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment entity cannot be found.

    Use for Payment, Payout, Invoice, Receipt and ConnectedAccount lookups.
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class BookingNotFoundError(PaymentError, NotFoundError):
    """Raised when the booking or order a payment refers to does not exist."""

    default_error_code: str = "BOOKING_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment input is invalid.

    Use for:
    - Non-positive or malformed amounts
    - Missing invoice data / tax identifier
    - Rates outside their allowed range

    Always raised before any row is written or any gateway call is made.
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PreconditionError(PaymentError, ConflictError):
    """
    Raised when the current state does not allow the requested operation.

    Each check carries its own error_code so callers can tell them apart
    (BOOKING_NOT_COMPLETED, PAYMENT_NOT_CAPTURED, ...). Nothing is mutated.
    """

    default_error_code: str = "PRECONDITION_FAILED"


class InvalidStateTransitionError(PreconditionError):
    """
    Raised when a payment or payout is not in a state the operation accepts.

    Services check the status under select_for_update() before calling the
    gateway, so the FSM transition itself is never attempted.

    Example:
        if payment.status not in CAPTURABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot capture payment in '{payment.status}' state",
                error_code="PAYMENT_NOT_CAPTURABLE",
                details={"payment_id": str(payment.id), "status": payment.status},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class InsufficientBalanceError(PreconditionError):
    """
    Raised when a professional's available balance cannot cover a debit.

    The balance is left untouched.
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError):
    """
    Raised when the payment gateway call fails.

    Local state is never advanced when this is raised. ``is_retryable``
    tells the caller whether the same request may succeed later.
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False


class StripeError(GatewayError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the operation can be retried

    Example:
        try:
            gateway.capture(payment.external_ref)
        except StripeError as e:
            if e.is_retryable:
                raise self.retry(exc=e)
            raise
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    The decline_code attribute contains the specific reason
    (generic_decline, lost_card, expired_card, ...).
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInsufficientFundsError(StripeError):
    """Insufficient funds on the payment method. User action is required."""

    default_error_code: str = "INSUFFICIENT_FUNDS"
    is_retryable: bool = False


class StripeInvalidAccountError(StripeError):
    """
    Invalid destination account for a transfer.

    Raised when the professional's payout account is missing, disabled
    or not onboarded. Requires manual intervention.
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Usually a bug on our side (unknown intent id, refund larger than the
    captured amount, invalid signature). Never retried.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API. Retry with exponential backoff."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    Covers network connectivity issues and Stripe 5xx responses.
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out (STRIPE_API_TIMEOUT_SECONDS).

    The operation may have succeeded on Stripe's side. Retrying with the
    same idempotency key is safe; Stripe returns the original response.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        with DistributedLock("escrow:sweep", blocking=False):
            ...
        # raises LockAcquisitionError if another sweep is running
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "BookingNotFoundError",
    "PaymentValidationError",
    "PreconditionError",
    "InvalidStateTransitionError",
    "InsufficientBalanceError",
    # Gateway
    "GatewayError",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInsufficientFundsError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
    # Concurrency control
    "LockAcquisitionError",
]
