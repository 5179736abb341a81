"""
api/main.py -- FastAPI application entry point for the NTC bus API.

Run with:  uvicorn asgi:app --reload

Middleware stack (registration order; Starlette runs the last one added first):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the stores and the auth gateway from Settings on startup and
closes them on shutdown. A background task purges expired sessions.

Error envelope: every non-2xx response body is {"error": "<message>"}.
Validation failures add a "detail" list with pydantic's error entries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.roles import commuter_router, operator_router
from auth.errors import AuthError
from auth.gateway import AuthGateway
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings
from fleet.store import FleetStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ntcbus.api")

# Read once at import: the middleware stack below needs hosts and origins
# before lifespan runs.
settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Delete expired session rows every interval seconds.

    record_session() already prunes per user on login; this catches users who
    never log in again. CancelledError from task.cancel() during shutdown
    propagates out of asyncio.sleep and ends the loop.
    """
    while True:
        await asyncio.sleep(interval)
        removed = await asyncio.to_thread(app.state.user_store.purge_expired_sessions)
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_gateway(store: UserStore, cfg: Settings) -> AuthGateway:
    """Assemble the auth gateway from settings."""
    return AuthGateway(
        store,
        PasswordHasher(rounds=cfg.bcrypt_rounds),
        TokenIssuer(cfg.secret_key, algorithm=cfg.jwt_algorithm, ttl_seconds=cfg.token_expire_seconds),
        enforce_sessions=cfg.enforce_session_registry,
        max_sessions=cfg.max_sessions_per_user,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and close them on shutdown.

    The gateway depends on the user store, and the purge task on both, so the
    order below is fixed.
    """
    logger.info("NTC bus API starting up (environment=%s)", settings.environment)
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url, timeout=settings.database_timeout_seconds)
    app.state.fleet = FleetStore(settings.database_url, timeout=settings.database_timeout_seconds)
    app.state.auth = build_gateway(app.state.user_store, settings)
    logger.info(
        "Auth initialized (session_registry=%s, max_sessions=%d)",
        settings.enforce_session_registry,
        settings.max_sessions_per_user,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.fleet.close()
    app.state.user_store.close()
    logger.info("NTC bus API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="NTC Bus API",
    description="Authentication, role-based access and fleet management for the NTC bus booking platform.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
app.include_router(operator_router, prefix="/api/v1", tags=["Operator"])
app.include_router(commuter_router, prefix="/api/v1", tags=["Commuter"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, detail: list | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, detail=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map gateway errors to their HTTP status with the bare message."""
    if exc.status_code >= 500:
        logger.error("Auth failure on %s %s: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # jsonable_encoder: pydantic error entries may carry non-JSON ctx values.
    return _error(422, "Request validation failed.", jsonable_encoder(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Registered on Starlette's base class so router 404/405 share the envelope."""
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Storage failures (locked database, lost connection) surface as 500."""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _error(500, "Server error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Server error")


# ---------------------------------------------------------------------------
# Health endpoint -- not rate limited, no auth.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Report liveness plus a database round-trip check.

    Always 200: a degraded database is reported in the body so load
    balancers keep routing to instances that can still answer.
    """
    components = {"app": "ok"}
    try:
        request.app.state.user_store.ping()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable")
        components["database"] = "unavailable"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
