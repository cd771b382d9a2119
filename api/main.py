"""
api/main.py -- FastAPI application entry point for Stockkeeper.

Install deps:  pip install -e .
Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost; Starlette runs the last one added first):
  1. log_requests       -- one access-log line per request
  2. SlowAPIMiddleware  -- enforces rate limits from api.limiter
  3. CORSMiddleware     -- permissive CORS (any origin) for the browser client

Lifespan opens the stores and builds the auth services on startup, and
closes the stores on shutdown. Services live on app.state and are injected
into handlers from there; nothing is module-global except the app itself.

Error contract: every error body is {"error": <message>, "code": <kind>}.
Handler-raised RequestRejected errors (validation, not found, conflict) keep
their message; anything unexpected becomes a generic 500 and is logged with
its traceback server-side only.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.dashboard import router as dashboard_router
from api.routes.v1.products import router as products_router
from api.routes.v1.users import router as users_router
from auth.errors import ErrorKind, RequestRejected
from auth.login import LoginProcess
from auth.rotation import PasswordRotation
from auth.store import AccountStore
from auth.tokens import CredentialVault, TokenCodec
from core.config import get_settings
from inventory.store import InventoryStore

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("stockkeeper.api")


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(app: FastAPI, account_store: AccountStore, inventory: InventoryStore, secret_key: str) -> None:
    """Build the auth services around the given stores and publish them on app.state.

    Shared by the real lifespan and the test lifespan so both wire the exact
    same object graph.
    """
    vault = CredentialVault()
    codec = TokenCodec(secret_key)
    app.state.account_store = account_store
    app.state.inventory = inventory
    app.state.vault = vault
    app.state.token_codec = codec
    app.state.login_process = LoginProcess(account_store, vault, codec)
    app.state.password_rotation = PasswordRotation(account_store, vault)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    get_settings() raises here if SECRET_KEY is missing or too short, so a
    misconfigured server fails at startup instead of on the first login.
    """
    settings = get_settings()
    if settings.debug:
        logging.getLogger("stockkeeper").setLevel(logging.DEBUG)
    limiter.enabled = settings.rate_limit_enabled

    logger.info("Stockkeeper API starting up")
    account_store = AccountStore(settings.database_url)
    inventory = InventoryStore(settings.database_url)
    attach_services(app, account_store, inventory, settings.secret_key)
    logger.info("Stores opened and auth services initialized (rate_limit=%s)", settings.rate_limit_enabled)

    yield

    account_store.close()
    inventory.close()
    logger.info("Stockkeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Stockkeeper API",
    description="Inventory management with role-based access control.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# CORS is deliberately open to every origin: the browser client is served
# from arbitrary hosts and authenticates with a bearer header, not cookies.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
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
app.include_router(products_router, prefix="/api/v1", tags=["Products"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message, code=code).model_dump())


@app.exception_handler(RequestRejected)
async def rejected_handler(request: Request, exc: RequestRejected) -> JSONResponse:
    """Render a gate or handler Rejection with its own status and message."""
    rejection = exc.rejection
    if rejection.status_code in (401, 403):
        logger.info("%s %s rejected: %s", request.method, request.url.path, rejection.kind.value)
    return JSONResponse(status_code=rejection.status_code, content=rejection.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when a path or query parameter fails validation (e.g. a non-numeric id)."""
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    message = f"Invalid value for: {', '.join(fields)}." if fields else "Request validation failed."
    return _error(400, ErrorKind.VALIDATION.value, message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured error for framework-level HTTP errors (unknown route, wrong method)."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the server log only, never
    to the response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, ErrorKind.INTERNAL.value, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Public and not rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
