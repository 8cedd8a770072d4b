"""In-memory registry of per-client token buckets with idle eviction."""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from admission.bucket import TokenBucket

CLEANUP_INTERVAL_SECONDS = 300  # 5 minutes
DEFAULT_IDLE_TTL_SECONDS = 600  # 10 minutes

logger = structlog.get_logger()


class BucketRegistry:
    """Owns the client key -> bucket mapping.

    Buckets are created lazily, exactly once per key, and live until the
    idle sweep removes them or the process exits. State is ephemeral: a
    restart gives every client a full bucket.
    Call start_cleanup() on app startup and stop_cleanup() on shutdown.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._cleanup_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def get(self, key: str) -> TokenBucket | None:
        return self._buckets.get(key)

    def get_or_create(self, key: str, factory: Callable[[], TokenBucket]) -> TokenBucket:
        """Return the bucket for ``key``, creating it with ``factory`` on first use.

        Concurrent first calls for the same key all receive the same instance;
        the factory runs once, under the registry lock.
        """
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = factory()
                self._buckets[key] = bucket
            return bucket

    def evict_idle(self, max_idle_seconds: float) -> int:
        """Remove buckets idle longer than ``max_idle_seconds``. Return count of removed buckets."""
        now = time.monotonic()
        with self._lock:
            stale = [key for key, bucket in self._buckets.items() if bucket.idle_seconds(now) > max_idle_seconds]
            for key in stale:
                del self._buckets[key]
        if stale:
            logger.info("evicted idle rate limit buckets", count=len(stale), remaining=len(self._buckets))
        return len(stale)

    def start_cleanup(
        self,
        interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
        max_idle_seconds: float = DEFAULT_IDLE_TTL_SECONDS,
    ) -> None:
        """Start the periodic idle-eviction background task."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(interval_seconds, max_idle_seconds))

    async def stop_cleanup(self) -> None:
        """Stop the periodic idle-eviction background task."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

    async def _cleanup_loop(self, interval_seconds: float, max_idle_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.evict_idle(max_idle_seconds)
