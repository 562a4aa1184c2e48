import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from folioguard.app.api import csrf_router, generate_router, portfolio_router, resume_router
from folioguard.app.api.resume import MULTIPART_OVERHEAD_BYTES
from folioguard.app.core.config import GuardrailConfig, settings
from folioguard.app.core.http_client import init_http_client
from folioguard.app.core.logging import get_logger, setup_logging, shutdown_logging
from folioguard.app.core.security import TokenSigner, get_token_signer
from folioguard.app.exceptions import (
    GENERIC_ERROR_MESSAGE,
    VALIDATION_ERROR_MESSAGE,
    FolioGuardException,
    get_safe_error_message,
)
from folioguard.app.middleware.rate_limit import get_rate_limiter, run_periodic_sweep
from folioguard.app.middleware.request_id import RequestIdMiddleware, get_request_id
from folioguard.app.middleware.request_size import RequestSizeLimitMiddleware
from folioguard.app.middleware.security_headers import SecurityHeadersMiddleware
from folioguard.app.services.guardrail import RequestGuardrail
from folioguard.app.services.security_events import LoggingSecurityEventSink


def create_guardrail() -> RequestGuardrail:
    """Build the guardrail from settings and the process-wide rate limiter.

    The signing secret is the resolved one, so it is never empty.
    """
    return RequestGuardrail(
        config=GuardrailConfig.from_settings(settings, hmac_secret=get_token_signer().secret),
        rate_limiter=get_rate_limiter(),
        event_sink=LoggingSecurityEventSink(),
    )


def create_app(guardrail: Optional[RequestGuardrail] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        guardrail: Guardrail to serve with (built from settings if omitted).
            Its config.hmac_secret signs the CSRF cookies.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Application lifespan context manager.

        Starts the shared HTTP client and the rate limit sweep on startup;
        stops them and flushes the security log on shutdown.
        """
        async with init_http_client() as http_client:
            limiter = app.state.guardrail.rate_limiter
            sweep_task = asyncio.create_task(
                run_periodic_sweep(limiter, settings.rate_limit_sweep_interval_seconds),
                name="rate-limit-sweep",
            )

            logger.info(
                "Application startup complete",
                extra={
                    "redis_enabled": settings.redis_enabled,
                    "mock_provider": settings.mock_provider,
                    "debug_mode": settings.debug,
                },
            )

            try:
                yield {"http_client": http_client}
            finally:
                sweep_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweep_task
                await limiter.close()

        logger.info("Application shutdown complete")
        shutdown_logging()

    app = FastAPI(
        title="FolioGuard",
        description="Request guardrails for an AI portfolio builder",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.guardrail = guardrail or create_guardrail()
    app.state.token_signer = TokenSigner(app.state.guardrail.config.hmac_secret)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-CSRF-Token", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
        max_age=600,
    )

    app.add_middleware(
        RequestSizeLimitMiddleware,
        max_body_size=settings.max_payload_bytes,
        path_limits={
            "/api/parse-resume": (
                settings.max_file_size_mb * 1024 * 1024 + MULTIPART_OVERHEAD_BYTES
            ),
        },
    )

    app.add_middleware(SecurityHeadersMiddleware)

    # Request ID middleware (outermost - runs first)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(csrf_router)
    app.include_router(generate_router)
    app.include_router(resume_router)
    app.include_router(portfolio_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Liveness check."""
        return {
            "status": "ok",
            "components": {
                "rate_limit_store": "redis" if settings.redis_enabled else "memory",
                "provider": "mock" if settings.mock_provider else "openrouter",
            },
        }

    @app.exception_handler(FolioGuardException)
    async def folioguard_exception_handler(
        request: Request, exc: FolioGuardException
    ) -> JSONResponse:
        """Map application exceptions to their status code.

        Server-side failures (5xx) get a generic message; the detail only
        goes to the log.
        """
        message = exc.message
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": get_request_id(request), "path": request.url.path},
            )
            message = GENERIC_ERROR_MESSAGE
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error_code, "message": message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """FastAPI parameter validation errors, without pydantic internals."""
        return JSONResponse(
            status_code=400,
            content={"error": "malformed", "message": VALIDATION_ERROR_MESSAGE},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback, even in debug mode. Full details are
        logged server-side.
        """
        request_id = get_request_id(request)
        message = get_safe_error_message(exc)

        content = {
            "error": "internal_error",
            "message": message,
            "request_id": request_id,
        }
        if settings.debug:
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
