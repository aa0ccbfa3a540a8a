"""
Pytest fixtures shared by every payments test package.

Service fixtures live in payments/tests/conftest.py; the Redis mock is here
so the worker tests in payments/workers/tests can use it as well.
"""

from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def mock_redis_lock():
    """Mock Redis for distributed locking."""
    mock_redis = MagicMock()
    mock_redis.set.return_value = True
    mock_redis.get.return_value = None
    mock_redis.delete.return_value = 1
    mock_redis.eval.return_value = 1

    with patch("payments.locks.get_redis_connection", return_value=mock_redis):
        yield mock_redis
