"""
Stripe implementation of the payment gateway.

All Stripe calls go through StripeGatewayAdapter so that timeouts,
idempotency keys, logging and error translation are handled in one place.

Escrow maps onto Stripe as follows:
- authorize_and_hold: PaymentIntent with capture_method="manual"
- capture: PaymentIntent.capture (funds now held by the platform)
- refund: Refund against the PaymentIntent
- transfer: Transfer to the professional's Connect account

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import StripeGatewayAdapter

    gateway = StripeGatewayAdapter()
    result = gateway.authorize_and_hold(
        Decimal("580.00"), "mxn", {"booking_id": str(booking.id)}
    )
    gateway.capture(result.external_ref)
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from typing import TYPE_CHECKING

import stripe
from django.conf import settings

from payments.adapters.base import AuthorizationResult
from payments.calculators import to_minor_units
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


# Stripe only accepts these refund reasons; anything else goes in metadata.
STRIPE_REFUND_REASONS = frozenset({"duplicate", "fraudulent", "requested_by_customer"})


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for gateway calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same (operation, entity, attempt) always yields the same key, so a
    retried call is recognised by Stripe as a repeat of the first one.

    Example:
        key = IdempotencyKeyGenerator.generate("capture", payment.id)
        # "capture:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Gateway Adapter
# =============================================================================


class StripeGatewayAdapter:
    """
    PaymentGateway backed by the Stripe API.

    Stateless; every method is a classmethod so the class and its instances
    can both be passed where a gateway is expected. Thread-safe for use from
    Celery workers.

    Every call either returns on success or raises a StripeError subclass
    whose ``is_retryable`` tells the caller whether to try again.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _call(cls, operation: str, log_context: dict[str, Any], func, *args, **kwargs):
        """Run one Stripe call with timing logs and error translation."""
        cls._configure_stripe()
        logger = cls.get_logger()
        log_context = {"operation": operation, **log_context}

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_object_id": getattr(result, "id", None),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return result

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def authorize_and_hold(
        cls,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> AuthorizationResult:
        """
        Create a manual-capture PaymentIntent.

        The customer confirms it client-side with the returned client_handle;
        funds stay authorized until capture() is called.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        amount_cents = to_minor_units(amount)
        idempotency_key = idempotency_key or IdempotencyKeyGenerator.generate(
            "authorize", uuid.uuid4()
        )
        intent = cls._call(
            "authorize_and_hold",
            {
                "amount_cents": amount_cents,
                "currency": currency,
                "idempotency_key": idempotency_key,
            },
            stripe.PaymentIntent.create,
            amount=amount_cents,
            currency=currency,
            capture_method="manual",
            payment_method_types=["card"],
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return AuthorizationResult(
            external_ref=intent.id,
            client_handle=intent.client_secret,
        )

    @classmethod
    def capture(cls, external_ref: str, idempotency_key: str | None = None) -> None:
        """
        Capture a held PaymentIntent.

        Raises:
            StripeInvalidRequestError: PaymentIntent not capturable
            StripeAPIUnavailableError: Stripe service unavailable
        """
        idempotency_key = idempotency_key or IdempotencyKeyGenerator.generate(
            "capture", external_ref
        )
        cls._call(
            "capture",
            {"payment_intent_id": external_ref, "idempotency_key": idempotency_key},
            stripe.PaymentIntent.capture,
            external_ref,
            idempotency_key=idempotency_key,
        )

    @classmethod
    def refund(
        cls,
        external_ref: str,
        amount: Decimal | None = None,
        reason: str | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        """
        Refund a captured PaymentIntent, fully or partially.

        Returns:
            Stripe Refund ID (re_xxx)
        """
        params: dict[str, Any] = {"payment_intent": external_ref, "metadata": {}}
        if amount is not None:
            params["amount"] = to_minor_units(amount)
        if reason in STRIPE_REFUND_REASONS:
            params["reason"] = reason
        elif reason:
            params["reason"] = "requested_by_customer"
            params["metadata"]["reason"] = reason[:500]

        idempotency_key = idempotency_key or IdempotencyKeyGenerator.generate(
            "refund", f"{external_ref}:{params.get('amount', 'full')}"
        )
        refund = cls._call(
            "refund",
            {
                "payment_intent_id": external_ref,
                "amount_cents": params.get("amount"),
                "idempotency_key": idempotency_key,
            },
            stripe.Refund.create,
            idempotency_key=idempotency_key,
            **params,
        )
        return refund.id

    @classmethod
    def transfer(
        cls,
        amount: Decimal,
        currency: str,
        destination_account: str,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> str:
        """
        Transfer funds to a connected account.

        Returns:
            Stripe Transfer ID (tr_xxx)

        Raises:
            StripeInvalidAccountError: Invalid destination account
            StripeInsufficientFundsError: Insufficient platform balance
        """
        amount_cents = to_minor_units(amount)
        idempotency_key = idempotency_key or IdempotencyKeyGenerator.generate(
            "transfer", uuid.uuid4()
        )
        transfer = cls._call(
            "transfer",
            {
                "amount_cents": amount_cents,
                "destination_account": destination_account,
                "idempotency_key": idempotency_key,
            },
            stripe.Transfer.create,
            amount=amount_cents,
            currency=currency,
            destination=destination_account,
            metadata=metadata or {},
            idempotency_key=idempotency_key,
        )
        return transfer.id

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a webhook signature and return the parsed event.

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidAccountError: Invalid Connect account
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: API unavailable
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                ) from error

            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )

            if "account" in str(error).lower():
                raise StripeInvalidAccountError(
                    str(error),
                    stripe_code=error.code,
                ) from error

            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            message = str(error).lower()
            if "timeout" in message or "timed out" in message:
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error

            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error


__all__ = [
    "IdempotencyKeyGenerator",
    "STRIPE_REFUND_REASONS",
    "StripeGatewayAdapter",
]
