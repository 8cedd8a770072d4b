from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import BaseRoute, Route

from admission.filter import AdmissionFilter
from admission.registry import BucketRegistry
from gateway.server.middleware import RateLimitMiddleware
from gateway.server.settings import RateLimitSettings
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from starlette.requests import Request


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def status(request: Request) -> JSONResponse:
    settings: RateLimitSettings = request.app.state.settings
    registry: BucketRegistry = request.app.state.registry
    return JSONResponse(
        {
            "status": "ok",
            "requests_per_minute": settings.requests_per_minute,
            "protected_prefixes": settings.protected_prefixes,
            "tracked_clients": len(registry),
        },
    )


def create_app(
    settings: RateLimitSettings | None = None,
    registry: BucketRegistry | None = None,
    routes: Sequence[BaseRoute] = (),
) -> Starlette:
    """Build the application with rate limiting in front of ``routes``.

    The registry is created here unless injected, and lives for the app's
    lifetime. Its idle sweep runs between startup and shutdown.
    """
    if settings is None:  # pragma: no cover
        settings = RateLimitSettings()
    if registry is None:
        registry = BucketRegistry()

    admission_filter = AdmissionFilter(
        registry,
        settings.requests_per_minute,
        protected_prefixes=settings.protected_prefixes,
        retry_after_seconds=settings.retry_after_seconds,
        adaptive_retry_after=settings.adaptive_retry_after,
    )

    all_routes: list[BaseRoute] = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/api/status", status, methods=["GET"], name="status"),
        *routes,
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        registry.start_cleanup(
            interval_seconds=settings.cleanup_interval_seconds,
            max_idle_seconds=settings.idle_ttl_seconds,
        )
        yield
        await registry.stop_cleanup()

    app = Starlette(routes=all_routes, lifespan=lifespan)
    # CORS is outermost: 429 responses carry CORS headers too.
    app.add_middleware(RateLimitMiddleware, admission_filter=admission_filter)  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        expose_headers=["X-Rate-Limit-Limit", "X-Rate-Limit-Remaining", "Retry-After"],
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.admission_filter = admission_filter

    logger.info("rate limited gateway ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory gateway.server.app:get_app."""
    settings = RateLimitSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
