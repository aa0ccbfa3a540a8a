"""
Tests for the Stripe gateway adapter.

Tests cover:
- Idempotency key generation
- Error translation for each exception type
- Successful API operations
"""

import json
import uuid
from decimal import Decimal

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    AuthorizationResult,
    IdempotencyKeyGenerator,
    StripeGatewayAdapter,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    def test_generate_key_format(self):
        entity_id = uuid.uuid4()

        key = IdempotencyKeyGenerator.generate("capture", entity_id, attempt=1)

        parts = key.split(":")
        assert len(parts) == 4
        assert parts[:3] == ["capture", str(entity_id), "1"]
        assert len(parts[3]) == 8

    def test_same_inputs_produce_same_key(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "transfer", entity_id
        ) == IdempotencyKeyGenerator.generate("transfer", entity_id)

    def test_attempt_and_operation_change_the_key(self):
        entity_id = uuid.uuid4()
        base = IdempotencyKeyGenerator.generate("refund", entity_id)

        assert IdempotencyKeyGenerator.generate("refund", entity_id, attempt=2) != base
        assert IdempotencyKeyGenerator.generate("capture", entity_id) != base

    def test_key_depends_on_secret(self):
        with override_settings(SECRET_KEY="one"):
            first = IdempotencyKeyGenerator.generate("capture", "pi_1")
        with override_settings(SECRET_KEY="two"):
            second = IdempotencyKeyGenerator.generate("capture", "pi_1")

        assert first != second


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestErrorTranslation:
    def test_card_declined(self, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.create.side_effect = card_error()

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            StripeGatewayAdapter.authorize_and_hold(Decimal("580.00"), "mxn", {})

        assert exc_info.value.details["decline_code"] == "generic_decline"
        assert exc_info.value.is_retryable is False

    def test_insufficient_funds(self, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.create.side_effect = card_error(
            message="Your card has insufficient funds.",
            decline_code="insufficient_funds",
        )

        with pytest.raises(StripeInsufficientFundsError):
            StripeGatewayAdapter.authorize_and_hold(Decimal("580.00"), "mxn", {})

    def test_invalid_request(self, mock_stripe_payment_intent, invalid_request_error):
        mock_stripe_payment_intent.capture.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeGatewayAdapter.capture("pi_missing")

        assert exc_info.value.is_retryable is False

    def test_invalid_account(self, mock_stripe_transfer, invalid_request_error):
        mock_stripe_transfer.create.side_effect = invalid_request_error(
            message="No such account: acct_invalid",
            code="account_invalid",
        )

        with pytest.raises(StripeInvalidAccountError):
            StripeGatewayAdapter.transfer(Decimal("400.00"), "mxn", "acct_invalid")

    def test_rate_limit(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.RateLimitError(
            "Too many requests hit the API too quickly."
        )

        with pytest.raises(StripeRateLimitError) as exc_info:
            StripeGatewayAdapter.authorize_and_hold(Decimal("580.00"), "mxn", {})

        assert exc_info.value.is_retryable is True

    def test_connection_timeout(self, mock_stripe_refund):
        mock_stripe_refund.create.side_effect = stripe.APIConnectionError(
            "Request timed out"
        )

        with pytest.raises(StripeTimeoutError):
            StripeGatewayAdapter.refund("pi_1")

    def test_connection_error(self, mock_stripe_refund):
        mock_stripe_refund.create.side_effect = stripe.APIConnectionError(
            "Could not connect to Stripe."
        )

        with pytest.raises(StripeAPIUnavailableError):
            StripeGatewayAdapter.refund("pi_1")

    def test_authentication_error_is_permanent(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.AuthenticationError(
            "Invalid API Key provided."
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeGatewayAdapter.authorize_and_hold(Decimal("580.00"), "mxn", {})

        assert exc_info.value.is_retryable is False

    def test_unknown_error(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = RuntimeError("Unexpected")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            StripeGatewayAdapter.authorize_and_hold(Decimal("580.00"), "mxn", {})

        assert "Unexpected" in str(exc_info.value)


# =============================================================================
# Operation Tests
# =============================================================================


class TestAuthorizeAndHold:
    def test_creates_manual_capture_intent(self, mock_stripe_payment_intent):
        result = StripeGatewayAdapter.authorize_and_hold(
            Decimal("580.00"),
            "mxn",
            {"booking_id": "b1"},
            idempotency_key="authorize-key",
        )

        assert result == AuthorizationResult(
            external_ref="pi_test123456",
            client_handle="pi_test123456_secret_abc123",
        )
        call_kwargs = mock_stripe_payment_intent.create.call_args.kwargs
        assert call_kwargs["amount"] == 58000
        assert call_kwargs["currency"] == "mxn"
        assert call_kwargs["capture_method"] == "manual"
        assert call_kwargs["metadata"] == {"booking_id": "b1"}
        assert call_kwargs["idempotency_key"] == "authorize-key"

    @override_settings(STRIPE_SECRET_KEY="sk_test_custom", STRIPE_API_TIMEOUT_SECONDS=30)
    def test_configures_client_from_settings(
        self, mock_stripe_payment_intent, mock_stripe_http_client
    ):
        StripeGatewayAdapter.authorize_and_hold(Decimal("10.00"), "mxn", {})

        assert stripe.api_key == "sk_test_custom"
        mock_stripe_http_client.assert_called_with(timeout=30)


class TestCapture:
    def test_captures_by_reference(self, mock_stripe_payment_intent):
        StripeGatewayAdapter.capture("pi_test123", idempotency_key="capture-key")

        mock_stripe_payment_intent.capture.assert_called_once_with(
            "pi_test123",
            idempotency_key="capture-key",
        )

    def test_default_key_is_stable(self, mock_stripe_payment_intent):
        StripeGatewayAdapter.capture("pi_test123")
        StripeGatewayAdapter.capture("pi_test123")

        keys = [
            call.kwargs["idempotency_key"]
            for call in mock_stripe_payment_intent.capture.call_args_list
        ]
        assert keys[0] == keys[1]


class TestRefund:
    def test_full_refund(self, mock_stripe_refund):
        refund_id = StripeGatewayAdapter.refund("pi_original")

        assert refund_id == "re_test123456"
        call_kwargs = mock_stripe_refund.create.call_args.kwargs
        assert call_kwargs["payment_intent"] == "pi_original"
        assert "amount" not in call_kwargs

    def test_partial_refund_in_minor_units(self, mock_stripe_refund):
        StripeGatewayAdapter.refund("pi_original", amount=Decimal("25.50"))

        assert mock_stripe_refund.create.call_args.kwargs["amount"] == 2550

    def test_stripe_reason_passed_through(self, mock_stripe_refund):
        StripeGatewayAdapter.refund("pi_original", reason="duplicate")

        assert mock_stripe_refund.create.call_args.kwargs["reason"] == "duplicate"

    def test_free_text_reason_goes_to_metadata(self, mock_stripe_refund):
        StripeGatewayAdapter.refund("pi_original", reason="professional_no_show")

        call_kwargs = mock_stripe_refund.create.call_args.kwargs
        assert call_kwargs["reason"] == "requested_by_customer"
        assert call_kwargs["metadata"] == {"reason": "professional_no_show"}


class TestTransfer:
    def test_transfers_to_destination(self, mock_stripe_transfer):
        transfer_id = StripeGatewayAdapter.transfer(
            Decimal("400.00"),
            "mxn",
            "acct_dest123",
            metadata={"payout_id": "p1"},
            idempotency_key="transfer-key",
        )

        assert transfer_id == "tr_test123456"
        mock_stripe_transfer.create.assert_called_once_with(
            amount=40000,
            currency="mxn",
            destination="acct_dest123",
            metadata={"payout_id": "p1"},
            idempotency_key="transfer-key",
        )


class TestVerifyWebhookSignature:
    def test_returns_parsed_event(self, mock_stripe_webhook):
        payload = json.dumps({"id": "evt_1", "type": "charge.refunded"}).encode()

        event = StripeGatewayAdapter.verify_webhook_signature(payload, "t=1,v1=abc")

        assert event == {"id": "evt_1", "type": "charge.refunded"}
        mock_stripe_webhook.construct_event.assert_called_once()

    def test_invalid_signature(self, mock_stripe_webhook, signature_verification_error):
        mock_stripe_webhook.construct_event.side_effect = signature_verification_error

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeGatewayAdapter.verify_webhook_signature(b"tampered", "bad_signature")

        assert "signature" in str(exc_info.value).lower()

    def test_invalid_payload(self, mock_stripe_webhook):
        mock_stripe_webhook.construct_event.side_effect = ValueError("bad json")

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeGatewayAdapter.verify_webhook_signature(b"{", "sig")

        assert exc_info.value.details["stripe_code"] == "invalid_payload"
