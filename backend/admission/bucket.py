"""Token bucket rate limiter for per-client request admission."""

import threading
import time
from typing import Self

SECONDS_PER_MINUTE = 60.0


class TokenBucket:
    """Rate limiter using the token bucket algorithm.

    Tokens are added continuously at a constant rate up to a maximum capacity.
    Each try_consume() call removes ``cost`` tokens; returns False when not
    enough tokens are left (caller should reject). A new bucket starts full.

    All public methods are thread-safe. Refill and consume happen under one
    per-bucket lock, so concurrent callers on the same bucket never observe a
    half-applied update.
    """

    def __init__(self, rate: float, capacity: int) -> None:
        if capacity <= 0:
            msg = f"Bucket capacity must be positive, got {capacity}"
            raise ValueError(msg)
        if rate <= 0:
            msg = f"Bucket refill rate must be positive, got {rate}"
            raise ValueError(msg)
        self._rate = rate
        self._capacity = capacity
        self._tokens = float(capacity)
        self._last_refill = time.monotonic()
        self._last_access = self._last_refill
        self._lock = threading.Lock()

    @classmethod
    def per_minute(cls, requests_per_minute: int) -> Self:
        """Bucket holding ``requests_per_minute`` tokens, greedily refilled once per minute."""
        return cls(rate=requests_per_minute / SECONDS_PER_MINUTE, capacity=requests_per_minute)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def rate(self) -> float:
        """Refill rate in tokens per second."""
        return self._rate

    def _refill(self) -> float:
        # Caller must hold self._lock.
        now = time.monotonic()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self._capacity), self._tokens + elapsed * self._rate)
        self._last_refill = now
        self._last_access = now
        return now

    def try_consume(self, cost: float = 1.0) -> bool:
        """Try to consume ``cost`` tokens. Returns True if allowed, False if rate-limited."""
        with self._lock:
            self._refill()
            if self._tokens >= cost:
                self._tokens -= cost
                return True
            return False

    def available_tokens(self) -> float:
        """Current token level, refilled up to now."""
        with self._lock:
            self._refill()
            return self._tokens

    def seconds_until_available(self, cost: float = 1.0) -> float:
        """Seconds until ``cost`` tokens can be consumed; 0.0 if they already can."""
        with self._lock:
            self._refill()
            missing = cost - self._tokens
        if missing <= 0:
            return 0.0
        return missing / self._rate

    def idle_seconds(self, now: float | None = None) -> float:
        """Seconds since the bucket was last consumed from or read."""
        if now is None:
            now = time.monotonic()
        with self._lock:
            return max(0.0, now - self._last_access)
