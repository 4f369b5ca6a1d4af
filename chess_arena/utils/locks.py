"""
Per-record mutual exclusion for matches and tournaments.

Every read-modify-write of a Match or Tournament row runs inside
``lock(LockType.X, record_id)``. Locks are keyed per record, so operations on
different matches (or different tournaments) never wait on each other.

Lock keys:
- lock:match:{id}        # move submission, abort
- lock:tournament:{id}   # registration, start, bracket advancement

Ordering rule: a tournament lock may be taken while a match lock is held
(match completion -> bracket advance), never the other way round.

Two implementations share the same interface:
- LocalLockManager: asyncio.Lock per key, single process
- RedisLockManager: SET NX PX + owner-checked Lua release, multi process
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator
from uuid import uuid4

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class LockType(Enum):
    """Lockable record types."""

    MATCH = "match"
    TOURNAMENT = "tournament"


@dataclass
class LockInfo:
    """Lock metadata."""

    lock_key: str
    owner_id: str
    acquired_at: float
    expires_at: float
    lock_type: LockType


class LockError(Exception):
    """Base lock error."""


class LockAcquisitionError(LockError):
    """Failed to acquire lock within timeout."""


def make_lock_key(lock_type: LockType, resource_id: int | str) -> str:
    return f"lock:{lock_type.value}:{resource_id}"


class LockManager(ABC):
    """Common ``lock()`` context manager over ``acquire``/``release``."""

    def __init__(
        self,
        default_lock_timeout_ms: int = 10000,
        default_acquire_timeout_ms: int = 5000,
    ):
        self.default_lock_timeout_ms = default_lock_timeout_ms
        self.default_acquire_timeout_ms = default_acquire_timeout_ms

    @abstractmethod
    async def acquire(
        self,
        lock_type: LockType,
        resource_id: int | str,
        lock_timeout_ms: int | None = None,
        acquire_timeout_ms: int | None = None,
    ) -> LockInfo: ...

    @abstractmethod
    async def release(self, lock_info: LockInfo) -> bool: ...

    async def close(self) -> None:
        """Release resources held by the manager."""

    @asynccontextmanager
    async def lock(
        self,
        lock_type: LockType,
        resource_id: int | str,
        lock_timeout_ms: int | None = None,
        acquire_timeout_ms: int | None = None,
    ) -> AsyncGenerator[LockInfo, None]:
        """
        Context manager for automatic lock acquire/release.

        ```python
        async with locks.lock(LockType.MATCH, match_id):
            # exclusive access to this match row
            ...
        ```

        The lock is released in ``finally`` even when the block raises.
        """
        lock_info = await self.acquire(
            lock_type,
            resource_id,
            lock_timeout_ms,
            acquire_timeout_ms,
        )
        try:
            yield lock_info
        finally:
            await self.release(lock_info)


@dataclass
class _LocalEntry:
    lock: asyncio.Lock
    waiters: int = 0


class LocalLockManager(LockManager):
    """In-process lock manager backed by one ``asyncio.Lock`` per key.

    Entries are reference counted and removed once no task holds or waits
    for them, so the table does not grow with the number of records ever
    touched. ``lock_timeout_ms`` is ignored: an in-process holder cannot
    vanish without unwinding its ``finally``.
    """

    def __init__(
        self,
        default_lock_timeout_ms: int = 10000,
        default_acquire_timeout_ms: int = 5000,
    ):
        super().__init__(default_lock_timeout_ms, default_acquire_timeout_ms)
        self._entries: dict[str, _LocalEntry] = {}

    async def acquire(
        self,
        lock_type: LockType,
        resource_id: int | str,
        lock_timeout_ms: int | None = None,
        acquire_timeout_ms: int | None = None,
    ) -> LockInfo:
        lock_key = make_lock_key(lock_type, resource_id)
        lock_timeout = lock_timeout_ms or self.default_lock_timeout_ms
        acquire_timeout = acquire_timeout_ms or self.default_acquire_timeout_ms

        entry = self._entries.get(lock_key)
        if entry is None:
            entry = _LocalEntry(lock=asyncio.Lock())
            self._entries[lock_key] = entry
        entry.waiters += 1

        try:
            await asyncio.wait_for(entry.lock.acquire(), timeout=acquire_timeout / 1000)
        except asyncio.TimeoutError:
            self._drop_reference(lock_key, entry)
            raise LockAcquisitionError(
                f"Failed to acquire lock {lock_key} within {acquire_timeout}ms"
            ) from None
        except BaseException:
            self._drop_reference(lock_key, entry)
            raise

        now = time.time()
        return LockInfo(
            lock_key=lock_key,
            owner_id=uuid4().hex,
            acquired_at=now,
            expires_at=now + (lock_timeout / 1000),
            lock_type=lock_type,
        )

    async def release(self, lock_info: LockInfo) -> bool:
        entry = self._entries.get(lock_info.lock_key)
        if entry is None or not entry.lock.locked():
            return False
        entry.lock.release()
        self._drop_reference(lock_info.lock_key, entry)
        return True

    def _drop_reference(self, lock_key: str, entry: _LocalEntry) -> None:
        entry.waiters -= 1
        if entry.waiters <= 0 and self._entries.get(lock_key) is entry:
            del self._entries[lock_key]

    def is_locked(self, lock_type: LockType, resource_id: int | str) -> bool:
        entry = self._entries.get(make_lock_key(lock_type, resource_id))
        return entry is not None and entry.lock.locked()

    @property
    def tracked_keys(self) -> int:
        return len(self._entries)


class RedisLockManager(LockManager):
    """
    Record locks shared by several worker processes through Redis.

    ─────────────────────────────────────────────────────────────────
    - acquire: SET key token NX PX lock_timeout, polled until it succeeds
    - release: Lua compare-and-delete, so only the acquiring token frees it
    - a crashed holder blocks its record for at most lock_timeout
    ─────────────────────────────────────────────────────────────────
    """

    COMPARE_AND_DELETE = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    end
    return 0
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        default_lock_timeout_ms: int = 10000,
        default_acquire_timeout_ms: int = 5000,
        retry_interval_ms: int = 20,
    ):
        super().__init__(default_lock_timeout_ms, default_acquire_timeout_ms)
        self.redis = redis_client
        self.retry_interval_ms = retry_interval_ms
        self._process_tag = uuid4().hex[:12]
        self._compare_and_delete = None

    def _script(self):
        if self._compare_and_delete is None:
            self._compare_and_delete = self.redis.register_script(self.COMPARE_AND_DELETE)
        return self._compare_and_delete

    async def acquire(
        self,
        lock_type: LockType,
        resource_id: int | str,
        lock_timeout_ms: int | None = None,
        acquire_timeout_ms: int | None = None,
    ) -> LockInfo:
        """
        Poll ``SET NX`` every ``retry_interval_ms`` until the key is ours.

        Raises:
            LockAcquisitionError: another holder kept the key past
                ``acquire_timeout_ms``
        """
        key = make_lock_key(lock_type, resource_id)
        ttl_ms = lock_timeout_ms or self.default_lock_timeout_ms
        wait_ms = acquire_timeout_ms or self.default_acquire_timeout_ms
        token = f"{self._process_tag}:{uuid4().hex}"
        deadline = time.monotonic() + wait_ms / 1000

        while not await self.redis.set(key, token, nx=True, px=ttl_ms):
            if time.monotonic() >= deadline:
                raise LockAcquisitionError(f"{key} still held by another owner after {wait_ms}ms")
            await asyncio.sleep(self.retry_interval_ms / 1000)

        now = time.time()
        return LockInfo(
            lock_key=key,
            owner_id=token,
            acquired_at=now,
            expires_at=now + ttl_ms / 1000,
            lock_type=lock_type,
        )

    async def release(self, lock_info: LockInfo) -> bool:
        """Delete the key if ``lock_info`` still owns it."""
        deleted = await self._script()(keys=[lock_info.lock_key], args=[lock_info.owner_id])
        if deleted != 1:
            logger.warning(f"{lock_info.lock_key} expired or changed owner before release")
        return deleted == 1

    async def close(self) -> None:
        await self.redis.aclose()


def create_lock_manager(
    redis_url: str | None,
    lock_timeout_ms: int,
    acquire_timeout_ms: int,
) -> LockManager:
    """Redis-backed locks when ``redis_url`` is configured, in-process otherwise."""
    if redis_url:
        client = redis.from_url(redis_url, decode_responses=True)
        logger.info("Using Redis record locks")
        return RedisLockManager(client, lock_timeout_ms, acquire_timeout_ms)
    return LocalLockManager(lock_timeout_ms, acquire_timeout_ms)
