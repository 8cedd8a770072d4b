from dataclasses import dataclass


@dataclass(frozen=True)
class RequestInfo:
    """Transport-independent view of an inbound request, enough to key and meter it."""

    path: str
    forwarded_for: str | None = None
    peer_address: str | None = None


@dataclass(frozen=True)
class Admit:
    """Request may proceed. Both fields are exposed to the client as response headers."""

    limit: int
    remaining: int


@dataclass(frozen=True)
class Reject:
    retry_after_seconds: int


Decision = Admit | Reject
