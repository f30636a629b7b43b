"""
Cross-request locking for checkout operations.

Confirm and reconcile calls for the same order may arrive concurrently:
a client resubmitting after a timeout, or a gateway delivering the same
notification twice. Both paths run under a per-order DistributedLock so
their read-compare-write of the order payment state never interleaves.

Usage:

    from checkout.locks import order_lock

    with order_lock("stripe", order_id):
        # Only one request per order and gateway executes this at a time
        adapter_internal_work()

    # Lower level
    from checkout.locks import DistributedLock

    with DistributedLock("checkout:payone:1001", ttl=30, timeout=10.0):
        ...
"""

from __future__ import annotations

import logging
import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django.conf import settings
from django_redis import get_redis_connection

from checkout.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

logger = logging.getLogger(__name__)


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - Automatic TTL prevents deadlocks from crashed processes
        - Token-based ownership prevents accidental release by other processes
        - Blocking and non-blocking acquisition modes
        - Context manager support

    Example:
        lock = DistributedLock("checkout:stripe:1001", ttl=30, blocking=True, timeout=5.0)
        try:
            with lock:
                confirm_payment()
        except LockAcquisitionError:
            # Another request holds the lock
            return conflict_response()

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)

    Note:
        The TTL should be longer than the gateway call timeout.
    """

    # Lua script for atomic check-and-delete (release)
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
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
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Attempt to acquire the lock.

        Returns:
            True if lock was acquired

        Raises:
            LockAcquisitionError: If lock couldn't be acquired
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)  # 50ms between retries

            self._token = None
            logger.warning(
                "Lock acquisition timed out",
                extra={"lock_key": self.key, "timeout": self.timeout},
            )
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        """Try once to acquire the lock."""
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Returns:
            True if lock was released, False if we didn't hold it

        Note:
            Safe to call multiple times.
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def __enter__(self) -> DistributedLock:
        """Context manager entry - acquire the lock."""
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        """Context manager exit - always release the lock."""
        self.release()
        return False  # Don't suppress exceptions


def order_lock(gateway: str, order_id: str) -> DistributedLock:
    """
    Build the per-order lock used around confirm and reconcile.

    TTL and wait timeout come from CHECKOUT_LOCK_TTL_SECONDS and
    CHECKOUT_LOCK_TIMEOUT_SECONDS.
    """
    return DistributedLock(
        f"checkout:{gateway}:{order_id}",
        ttl=getattr(settings, "CHECKOUT_LOCK_TTL_SECONDS", 60),
        blocking=True,
        timeout=getattr(settings, "CHECKOUT_LOCK_TIMEOUT_SECONDS", 10.0),
    )


__all__ = [
    "DistributedLock",
    "order_lock",
]
