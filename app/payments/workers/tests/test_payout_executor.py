"""
Tests for the execute_payout worker.

PayoutService is mocked; the service itself is covered in
payments/tests/test_payouts.py.
"""

import uuid
from unittest.mock import patch

import pytest

from payments.exceptions import (
    LockAcquisitionError,
    PaymentNotFoundError,
    StripeRateLimitError,
)
from payments.state_machines import PayoutStatus
from payments.tests.factories import PayoutFactory
from payments.workers.payout_executor import execute_payout


@pytest.fixture
def mock_service():
    with patch("payments.services.PayoutService") as service_cls:
        yield service_cls.return_value


@pytest.mark.django_db
class TestExecutePayout:
    def test_returns_payout_result(self, mock_redis_lock, mock_service):
        payout = PayoutFactory(status=PayoutStatus.COMPLETED, external_ref="tr_123")
        mock_service.process_payout.return_value = payout

        result = execute_payout(str(payout.id))

        mock_service.process_payout.assert_called_once_with(str(payout.id))
        assert result == {
            "status": PayoutStatus.COMPLETED,
            "payout_id": str(payout.id),
            "external_ref": "tr_123",
        }

    def test_holds_per_payout_lock(self, mock_redis_lock, mock_service):
        payout = PayoutFactory()
        mock_service.process_payout.return_value = payout

        execute_payout(str(payout.id))

        assert mock_redis_lock.set.call_args[0][0] == f"lock:payout:execute:{payout.id}"
        mock_redis_lock.eval.assert_called_once()

    def test_not_found(self, mock_redis_lock, mock_service):
        payout_id = str(uuid.uuid4())
        mock_service.process_payout.side_effect = PaymentNotFoundError("missing")

        result = execute_payout(payout_id)

        assert result == {"status": "not_found", "payout_id": payout_id}

    def test_lock_held_elsewhere(self, mock_service):
        payout_id = str(uuid.uuid4())
        with patch(
            "payments.workers.payout_executor.DistributedLock.acquire",
            side_effect=LockAcquisitionError("held"),
        ):
            result = execute_payout(payout_id)

        assert result["status"] == "lock_failed"
        mock_service.process_payout.assert_not_called()

    def test_transient_error_propagates_and_releases_lock(
        self, mock_redis_lock, mock_service
    ):
        mock_service.process_payout.side_effect = StripeRateLimitError("Slow down")

        with pytest.raises(StripeRateLimitError):
            execute_payout(str(uuid.uuid4()))

        mock_redis_lock.eval.assert_called_once()
