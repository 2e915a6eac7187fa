"""
Redis-based distributed lock for scheduled payment work.

Correctness of escrow release rests on the compare-and-set update in
EscrowHoldManager; the lock keeps overlapping beat ticks from scanning the
same holds at the same time.

Usage:
    from payments.locks import DistributedLock

    with DistributedLock(AUTO_RELEASE_LOCK_KEY, ttl=300, blocking=False):
        release_eligible_holds()
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


AUTO_RELEASE_LOCK_KEY = "escrow:auto-release"


class DistributedLock:
    """
    Token-owned Redis lock with a TTL.

    The key is set with NX and an expiry, so a crashed worker never holds
    it longer than ``ttl`` seconds. Release and extend only act when the
    stored token is ours.

    Example:
        lock = DistributedLock(AUTO_RELEASE_LOCK_KEY, ttl=300, blocking=False)
        try:
            with lock:
                release_eligible_holds()
        except LockAcquisitionError:
            logger.info("Previous scan still running")

    Args:
        key: Lock identifier (stored as "lock:<key>")
        ttl: Seconds before Redis drops the lock on its own
        blocking: Poll until acquired or ``timeout`` elapses
        timeout: Polling budget in seconds (blocking mode only)
    """

    POLL_INTERVAL = 0.05

    # Delete only if the stored token matches
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Reset expiry only if the stored token matches
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
        Take the lock or raise.

        Raises:
            LockAcquisitionError: Lock is held elsewhere (non-blocking) or
                could not be taken within ``timeout`` (blocking)
        """
        self._token = str(uuid.uuid4())
        redis = self._get_redis()

        if not self.blocking:
            if self._try_acquire(redis):
                return True
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if self._try_acquire(redis):
                return True
            time.sleep(self.POLL_INTERVAL)

        self._token = None
        raise LockAcquisitionError(
            f"Failed to acquire lock '{self.key}' within {self.timeout}s",
            details={"key": self.key, "timeout": self.timeout},
        )

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """Release if held by us. Safe to call more than once."""
        if self._token is None:
            return False

        result = self._get_redis().eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, ttl: int | None = None) -> bool:
        """Reset the expiry to ``ttl`` (default: the original TTL) if still held."""
        if self._token is None:
            return False

        result = self._get_redis().eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl
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
