"""
api/main.py -- FastAPI application entry point for Gatehouse.

Exposes the authentication flows over HTTP. All flow logic lives in
auth/; this module wires stores, mailer and AuthService together and maps
AuthError onto HTTP responses.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack:
  1. log_requests       -- method, path, status, latency per request
  2. SlowAPIMiddleware  -- enforces per-route request limits from api.limiter

Lifespan handles startup (stores, mailer, AuthService, purge task) and
shutdown (cancel purge task, close DB connections) symmetrically.

Error mapping:
  AuthError of a client kind     -> 400
  AuthError of kind authentication -> 401
  any other AuthError            -> 500
The body is always the ErrorResponse envelope with the AuthError's
user-facing message. The underlying cause and context are logged, never
returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.dependencies import client_context
from auth.keystore import TemporaryKeyStore
from auth.mailer import LoggingMailer, SmtpMailer
from auth.service import build_auth_service
from auth.store import UserStore
from core.config import Settings, get_settings
from core.errors import AuthError, ErrorKind

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatehouse.api")

PURGE_INTERVAL_SECONDS = 15 * 60


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired codes, reset tokens and sessions every 15 minutes.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(PURGE_INTERVAL_SECONDS)
        keys = app.state.key_store.purge_expired()
        sessions = app.state.user_store.purge_expired_sessions()
        if keys or sessions:
            logger.info("Purged %d expired keys and %d expired sessions", keys, sessions)


def build_mailer(settings: Settings, users: UserStore) -> LoggingMailer | SmtpMailer:
    """SMTP when SMTP_HOST is set, otherwise log-only delivery."""
    if not settings.smtp_host:
        logger.warning("SMTP_HOST not set -- emails are logged, not delivered")
        return LoggingMailer()

    def resolve(user_id: str) -> str:
        user = users.get_by_id(user_id)
        return user.email if user else ""

    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.email_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        resolve_recipient=resolve,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Stores first -- the mailer resolves recipients through the user store.
      2. AuthService -- build() fails fast on an invalid configuration, before
         any request arrives.
      3. Purge task last -- references both stores.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("Gatehouse API starting up")

    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url, session_seconds=settings.session_expire_seconds)
    app.state.key_store = TemporaryKeyStore(settings.database_url)
    app.state.mailer = build_mailer(settings, app.state.user_store)
    app.state.auth_service = build_auth_service(
        settings,
        app.state.user_store,
        app.state.key_store,
        app.state.mailer,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.key_store.close()
    app.state.user_store.close()
    logger.info("Gatehouse API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatehouse API",
    description="Password and passwordless authentication: login, registration, password restore.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def auth_error_status(exc: AuthError) -> int:
    if exc.is_client_error:
        return 400
    if exc.kind is ErrorKind.AUTHENTICATION:
        return 401
    return 500


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Log the full error, return only its user-facing message."""
    status_code = auth_error_status(exc)
    ctx = client_context(request)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "%s %s failed: kind=%s code=%s internal=%r",
        request.method,
        request.url.path,
        exc.kind.value,
        exc.code.value,
        exc.internal,
        extra={
            "error_code": exc.code.value,
            "kind": exc.kind.value,
            "ip": ctx.ip,
            "user_agent": ctx.user_agent,
            "endpoint": request.url.path,
            **{f"ctx_{key}": value for key, value in exc.context.items()},
        },
        exc_info=exc.internal if status_code >= 500 and exc.internal else None,
    )
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code.value, message=exc.message)).model_dump(),
    )
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a request limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit applied -- health checks from load balancers and monitoring
# systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
