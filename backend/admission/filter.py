"""Per-request admission decisions backed by per-client token buckets."""

from __future__ import annotations

import functools
import math
from typing import TYPE_CHECKING

import structlog

from admission.bucket import SECONDS_PER_MINUTE, TokenBucket
from admission.client_key import resolve_client_key
from admission.types import Admit, Reject

if TYPE_CHECKING:
    from collections.abc import Iterable

    from admission.registry import BucketRegistry
    from admission.types import Decision, RequestInfo

DEFAULT_REQUESTS_PER_MINUTE = 30
DEFAULT_RETRY_AFTER_SECONDS = 60
DEFAULT_PROTECTED_PREFIXES = ("/api/",)

logger = structlog.get_logger()


class AdmissionFilter:
    """Decide admit/reject for inbound requests.

    Each client key gets its own bucket of ``requests_per_minute`` tokens,
    refilled greedily over one minute. Paths outside ``protected_prefixes``
    are never metered.

    With ``adaptive_retry_after`` the rejection hint is the time until the
    next token instead of the fixed ``retry_after_seconds``.
    """

    def __init__(
        self,
        registry: BucketRegistry,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        *,
        protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES,
        retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
        adaptive_retry_after: bool = False,
    ) -> None:
        if requests_per_minute <= 0:
            msg = f"requests_per_minute must be positive, got {requests_per_minute}"
            raise ValueError(msg)
        if retry_after_seconds <= 0:
            msg = f"retry_after_seconds must be positive, got {retry_after_seconds}"
            raise ValueError(msg)
        self._registry = registry
        self._requests_per_minute = requests_per_minute
        self._protected_prefixes = tuple(protected_prefixes)
        self._retry_after_seconds = retry_after_seconds
        self._adaptive_retry_after = adaptive_retry_after
        self._bucket_factory = functools.partial(TokenBucket.per_minute, requests_per_minute)
        logger.info(
            "rate limiter initialised",
            requests_per_minute=requests_per_minute,
            protected_prefixes=list(self._protected_prefixes),
        )

    @property
    def requests_per_minute(self) -> int:
        return self._requests_per_minute

    @property
    def registry(self) -> BucketRegistry:
        return self._registry

    def should_bypass(self, path: str) -> bool:
        """Only API endpoints are rate limited; docs, health and static assets are not."""
        return not path.startswith(self._protected_prefixes)

    def decide(self, request: RequestInfo) -> Decision:
        client_key = resolve_client_key(request)
        bucket = self._registry.get_or_create(client_key, self._bucket_factory)

        if bucket.try_consume():
            remaining = math.floor(bucket.available_tokens())
            return Admit(limit=self._requests_per_minute, remaining=remaining)

        retry_after = self._retry_after(bucket)
        logger.warning(
            "rate limit exceeded",
            client_key=client_key,
            path=request.path,
            retry_after_seconds=retry_after,
        )
        return Reject(retry_after_seconds=retry_after)

    def _retry_after(self, bucket: TokenBucket) -> int:
        if not self._adaptive_retry_after:
            return self._retry_after_seconds
        wait = math.ceil(bucket.seconds_until_available())
        return min(max(1, wait), math.ceil(SECONDS_PER_MINUTE))
