"""
api/main.py -- FastAPI application entry point for the scholarship portal.

Exposes registration, verification, login, profile, applications and admin
endpoints over HTTP. All state lives in one PortalServices object created by
the lifespan and stored on app.state.services.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan connects PortalServices on startup and closes it on shutdown. If
connecting fails the app still starts: every route that needs services answers
503 until a restart succeeds, and /api/v1/health reports the failure.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.applications import router as applications_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.students import router as students_router
from container import PortalServices
from core.config import get_settings
from core.errors import PortalError

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("scholarship.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Connect PortalServices on startup, close it on shutdown.

    A failed connect is logged, not raised. app.state.services stays in place
    with connected=False so get_services() answers 503 instead of the process
    crash-looping while Firebase credentials or the database are being fixed.
    """
    logger.info("Scholarship portal API starting up")
    services = PortalServices()
    try:
        services.connect()
    except Exception:
        logger.exception("Service startup failed; API will answer 503 until restarted")
    app.state.services = services

    yield

    services.close()
    logger.info("Scholarship portal API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Scholarship Portal API",
    description="Student registration, email verification, login, and scholarship applications.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Admin-Key"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Only method, path, status and latency are logged; bodies never are
# (they carry passwords and verification codes).
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
app.include_router(students_router, prefix="/api/v1", tags=["Students"])
app.include_router(applications_router, prefix="/api/v1", tags=["Applications"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
# Web router (verify-link landing page) is mounted by asgi.py, not here.
# api/ and web/ are independent layers -- only the top-level asgi.py imports both.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope:
#   {"success": false, "message": ..., "error": {"code", "message", "detail"}, ...extra}
# so clients can parse errors uniformly and route on error.code.
# ---------------------------------------------------------------------------


def error_response(status_code: int, code: str, message: str, detail: str | None = None, **extra) -> JSONResponse:
    body = ErrorResponse(message=message, error=ErrorDetail(code=code, message=message, detail=detail)).model_dump()
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Map the domain error taxonomy to HTTP. Status and code come from the exception class."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.code, exc.message, **exc.extra)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = error_response(429, "rate_limited", "Too many requests. Please slow down.", detail=str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with structured error when request body or query params fail validation."""
    return error_response(400, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route dependencies raise HTTPException with detail={"code", "message"}.
    When detail is already a structured dict, use its code and message rather
    than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return error_response(
            exc.status_code,
            exc.detail.get("code", f"http_{exc.status_code}"),
            exc.detail.get("message", ""),
        )
    return error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit applied -- health checks must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and per-component status."""
    services = getattr(request.app.state, "services", None)
    components = {"app": "ok", "services": "disconnected", "database": "unavailable"}
    if services is not None and services.connected:
        components["services"] = "connected"
        try:
            components["database"] = "ok" if services.users.ping() else "error"
        except Exception:
            logger.exception("Health check database ping failed")
            components["database"] = "error"
    healthy = components["services"] == "connected" and components["database"] == "ok"
    return HealthResponse(status="healthy" if healthy else "degraded", version=API_VERSION, components=components)
