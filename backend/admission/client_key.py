"""Client identity used to partition rate limit state."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admission.types import RequestInfo

UNKNOWN_CLIENT = "unknown"


def resolve_client_key(request: RequestInfo) -> str:
    """Resolve the real client IP, accounting for reverse proxies.

    X-Forwarded-For may hold a comma-separated chain; the first entry is the
    originating client. A missing, blank or empty-first-entry header falls back
    to the transport peer address.
    """
    forwarded = request.forwarded_for
    if forwarded and forwarded.strip():
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
    if request.peer_address:
        return request.peer_address
    return UNKNOWN_CLIENT
