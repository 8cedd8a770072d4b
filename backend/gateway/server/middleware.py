"""ASGI middleware enforcing per-client request rate limits."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from starlette.datastructures import Headers
from starlette.responses import JSONResponse

from admission.types import Reject, RequestInfo

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from admission.filter import AdmissionFilter

LIMIT_HEADER = "x-rate-limit-limit"
REMAINING_HEADER = "x-rate-limit-remaining"
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."


def request_info_from_scope(scope: Scope) -> RequestInfo:
    headers = Headers(scope=scope)
    client = scope.get("client")
    return RequestInfo(
        path=scope["path"],
        forwarded_for=headers.get("x-forwarded-for"),
        peer_address=client[0] if client else None,
    )


class RateLimitMiddleware:
    """Meter every HTTP request on a protected path against the caller's bucket.

    Admitted requests reach the app and carry X-Rate-Limit-Limit and
    X-Rate-Limit-Remaining on the response. Rejected requests get a 429 with
    Retry-After and never reach the app. Unprotected paths and non-HTTP
    scopes (WebSocket, lifespan) pass through untouched.
    """

    def __init__(self, app: ASGIApp, *, admission_filter: AdmissionFilter) -> None:
        self.app = app
        self._filter = admission_filter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._filter.should_bypass(scope["path"]):
            await self.app(scope, receive, send)
            return

        decision = self._filter.decide(request_info_from_scope(scope))

        if isinstance(decision, Reject):
            response = JSONResponse(
                {"message": RATE_LIMITED_MESSAGE},
                status_code=HTTPStatus.TOO_MANY_REQUESTS,
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )
            await response(scope, receive, send)
            return

        extra_headers = [
            (LIMIT_HEADER.encode(), str(decision.limit).encode()),
            (REMAINING_HEADER.encode(), str(decision.remaining).encode()),
        ]

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend(extra_headers)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
