"""
Redis-based distributed locks.

Row locks (select_for_update) protect individual Payment, Balance and
Payout rows. DistributedLock covers what row locks cannot: keeping two
escrow sweeps from running at the same time, and keeping two workers from
executing the same payout while the gateway call is in flight.

Usage:
    from payments.locks import DistributedLock

    with DistributedLock("escrow:sweep", ttl=600, blocking=False):
        EscrowService().run_escrow_sweep()

    # LockAcquisitionError if another process holds the lock
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


class DistributedLock:
    """
    Redis lock with TTL and token ownership.

    The TTL releases the lock if the holder crashes. The random token makes
    sure a process only ever releases a lock it acquired itself.

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before the lock expires on its own
        blocking: Wait for the lock instead of failing immediately
        timeout: Maximum wait in seconds when blocking

    Example:
        lock = DistributedLock(f"payout:execute:{payout_id}", ttl=120)
        try:
            with lock:
                process()
        except LockAcquisitionError:
            # Another worker is on it
            ...
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Atomic check-and-expire
    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: Held by someone else (non-blocking) or not
                released within ``timeout`` (blocking)
        """
        token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.monotonic() + self.timeout
            while time.monotonic() < end_time:
                if redis.set(self.key, token, nx=True, ex=self.ttl):
                    self._token = token
                    return True
                time.sleep(0.05)

            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not redis.set(self.key, token, nx=True, ex=self.ttl):
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        self._token = token
        return True

    def release(self) -> bool:
        """Release the lock if we hold it. Safe to call more than once."""
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, additional_ttl: int | None = None) -> bool:
        """Reset the TTL (to ``additional_ttl`` or the original TTL)."""
        if self._token is None:
            return False

        ttl = additional_ttl or self.ttl
        result = self._get_redis().eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl
        )
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = ["DistributedLock"]
