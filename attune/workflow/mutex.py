"""Per-session mutual exclusion.

Every read-validate-write sequence of a controller operation runs while
holding the lock of its session, so concurrent submits for one session
cannot interleave. Different sessions never contend.
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from redis.asyncio import Redis
from redis.exceptions import LockError

from attune.observability.logging import get_logger

logger = get_logger(__name__)


class SessionMutex(ABC):
    """Lock keyed by session ID."""

    @abstractmethod
    def acquire(
        self,
        session_id: str,
        blocking_timeout: float | None = None,
    ) -> AbstractAsyncContextManager[bool]:
        """Acquire the session lock, yielding True if it was acquired."""
        pass


class LocalSessionMutex(SessionMutex):
    """In-process lock per session for single-process deployments and tests.

    Locks are held in a weak mapping and disappear once nobody waits on them.
    """

    def __init__(self, blocking_timeout: float = 5.0) -> None:
        self._blocking_timeout = blocking_timeout
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    @asynccontextmanager
    async def acquire(
        self,
        session_id: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        """Acquire the session lock.

        A blocking timeout of 0 tries once without waiting.

        Yields:
            True if the lock was acquired, False if timed out
        """
        timeout = self._blocking_timeout if blocking_timeout is None else blocking_timeout
        lock = self._lock(session_id)
        if timeout <= 0:
            acquired = not lock.locked()
            if acquired:
                await lock.acquire()
        else:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
                acquired = True
            except TimeoutError:
                acquired = False
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    def is_locked(self, session_id: str) -> bool:
        """Check if a session is currently locked."""
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()


class RedisSessionMutex(SessionMutex):
    """Redis-backed distributed lock for multi-process deployments.

    Lock key format: {prefix}:sesslock:{session_id}
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "attune",
        lock_timeout: int = 30,
        blocking_timeout: float = 5.0,
    ) -> None:
        """Initialize session mutex.

        Args:
            redis: Redis client instance
            key_prefix: Prefix for lock keys
            lock_timeout: How long lock is held before auto-release (seconds)
            blocking_timeout: How long to wait when trying to acquire (seconds)
        """
        self._redis = redis
        self._prefix = key_prefix
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, session_id: str) -> str:
        """Build Redis lock key."""
        return f"{self._prefix}:sesslock:{session_id}"

    @asynccontextmanager
    async def acquire(
        self,
        session_id: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[bool, None]:
        """Acquire exclusive lock for a session.

        Yields:
            True if lock was acquired, False if timed out
        """
        timeout = self._blocking_timeout if blocking_timeout is None else blocking_timeout

        lock = self._redis.lock(
            self._key(session_id),
            timeout=self._lock_timeout,
            blocking_timeout=timeout,
        )

        acquired = await lock.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    # Lock expired while held
                    logger.warning("session_lock_expired", session_id=session_id)

    async def is_locked(self, session_id: str) -> bool:
        """Check if a session is currently locked."""
        return await self._redis.exists(self._key(session_id)) > 0
