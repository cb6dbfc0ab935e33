"""
api/main.py -- FastAPI application entry point.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter
  2. log_requests      -- method, path, status, latency, client

Lifespan builds the process-wide collaborators once at startup and stores them
on app.state:
  app.state.store     -- CredentialStore
  app.state.tokens    -- TokenService
  app.state.media     -- LocalMediaStore
  app.state.sessions  -- SessionController
  app.state.auth_guard -- AuthGuard

Error translation happens in exactly one place: the exception handlers at the
bottom of this module. Every error response uses the ErrorResponse envelope.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.dependencies import AuthGuard
from auth.results import FailureError
from auth.session import SessionController
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.config import get_settings
from media.store import LocalMediaStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("userauth.api")


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            status_code=status_code,
            error=ErrorDetail(code=code, message=message, detail=detail),
        ).model_dump(by_alias=True),
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth collaborators on startup, dispose the store on shutdown.

    Settings are read once here; nothing re-reads the environment afterwards.
    """
    settings = get_settings()
    logger.info("User auth API starting up")
    app.state.store = CredentialStore(settings.database_url)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.media = LocalMediaStore(settings.media_root, settings.media_base_url)
    app.state.sessions = SessionController(app.state.store, app.state.tokens, app.state.media)
    app.state.auth_guard = AuthGuard(app.state.store, app.state.tokens)
    logger.info("Credential store initialized (%d users)", app.state.store.count_users())

    yield

    app.state.store.close()
    logger.info("User auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="User Auth API",
    description="Registration, login, and rotating refresh-token sessions.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(FailureError)
async def failure_handler(request: Request, exc: FailureError) -> JSONResponse:
    """Render a SessionController / AuthGuard Failure.

    The Failure message was written for clients; it never contains tokens,
    passwords, or store error text.
    """
    failure = exc.failure
    resp = _error(failure.kind.status_code, failure.code, failure.message)
    if failure.kind.status_code == 401:
        resp.headers["Cache-Control"] = "no-store"
    return resp


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", detail=str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing input is a 400, same as controller-level validation failures."""
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
    return _error(400, "validation_error", "Request validation failed.", detail=fields or None)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
