"""
api/main.py -- FastAPI application entry point for Mosifra.

Run with:      uvicorn asgi:app --reload

Startup is fail-fast. Settings are validated once at import (missing
JWT_SECRET or REDIS_URL aborts the process), and the lifespan refuses to
start serving if redis does not answer a PING. Everything built here is
handed to the rest of the app through app.state -- no module reads the
signing secret or store URLs on its own.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (redis, user database, codec, guard, service) and
shutdown (close DB engine and redis client) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.courses import router as courses_router
from api.routes.v1.users import router as users_router
from auth.errors import InfrastructureFailure, SessionNotFound, Unauthenticated, Unauthorized, ValidationFailure
from auth.guard import AuthGuard
from auth.service import AdminCredentials, AuthService
from auth.sessions import RedisSessionStore, connect_redis
from auth.tokens import TokenCodec
from auth.twofactor import LogCodeSender, RedisTwoFactorStore
from core.config import get_settings
from users.store import UserRepository

VERSION = "0.1.0"

# Single configuration validation point for the whole process.
_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("mosifra.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every long-lived component and attach it to app.state.

    Startup order matters:
      1. Redis first -- unreachable session store is fatal; nothing else is
         worth opening if it fails.
      2. User database second.
      3. Codec, guard and service last -- they only wire the above together.
    """
    logger.info("Mosifra API starting up")
    try:
        redis_client = connect_redis(_settings.redis_url)
    except InfrastructureFailure:
        logger.critical("Session store unreachable at startup -- refusing to start")
        raise
    sessions = RedisSessionStore(redis_client)
    challenges = RedisTwoFactorStore(redis_client, _settings.twofa_code_ttl_seconds)
    logger.info("Session store connected")

    users = UserRepository(_settings.database_url)
    logger.info("User database initialized")

    codec = TokenCodec(_settings.jwt_secret)
    app.state.sessions = sessions
    app.state.users = users
    app.state.auth_guard = AuthGuard(codec, sessions, users)
    app.state.auth_service = AuthService(
        users=users,
        sessions=sessions,
        challenges=challenges,
        codec=codec,
        sender=LogCodeSender(),
        admin=AdminCredentials(
            login=_settings.admin_login,
            password_hash=_settings.admin_password_hash,
            mail=_settings.admin_mail,
        ),
    )

    yield

    # Shutdown
    users.close()
    redis_client.close()
    logger.info("Mosifra API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Mosifra API",
    description="Internship management backend: authentication, sessions and role-scoped access.",
    version=VERSION,
    debug=_settings.debug,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
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
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(courses_router, prefix="/api/v1", tags=["Courses"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
#
# Unauthenticated and Unauthorized never expose their reason to the caller --
# it is logged at INFO for operators and dropped from the body.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated) -> JSONResponse:
    logger.info("Unauthenticated %s %s: %s", request.method, request.url.path, exc.reason)
    response = _error(401, "unauthenticated", "Authentication required.")
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound) -> JSONResponse:
    logger.info("Unauthenticated %s %s: %s", request.method, request.url.path, exc)
    response = _error(401, "unauthenticated", "Authentication required.")
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    logger.info("Unauthorized %s %s: %s", request.method, request.url.path, exc.reason)
    return _error(403, "forbidden", "Access denied.")


@app.exception_handler(InfrastructureFailure)
async def infrastructure_failure_handler(request: Request, exc: InfrastructureFailure) -> JSONResponse:
    """Log the cause with full detail, return an opaque 503."""
    logger.error("Infrastructure failure on %s %s: %s", request.method, request.url.path, exc)
    return _error(503, "service_unavailable", "A backing service is unavailable. Try again later.")


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    return _error(400, "validation_error", str(exc))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
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
#
# No auth and no rate limit -- load balancers must always reach it. Each
# backing store is probed once; a failing probe degrades the status without
# failing the request.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and the state of each backing store."""
    components = {"app": "ok"}
    probes = (
        ("database", request.app.state.users.ping),
        ("session_store", request.app.state.sessions.ping),
    )
    for name, probe in probes:
        try:
            probe()
            components[name] = "ok"
        except InfrastructureFailure as exc:
            logger.error("Health probe %s failed: %s", name, exc)
            components[name] = "error"
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=VERSION, components=components)
