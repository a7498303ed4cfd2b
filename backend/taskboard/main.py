"""
TaskBoard Backend - FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan handler verifies Postgres and Redis on startup and
       releases both on shutdown.
Who:   uvicorn (`uvicorn taskboard.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │  Req ID      │→│ RateLim  │→│  Logging        │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │ /auth/*      │ │ /users/* │ │ GET /health     │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ Validation→400 │ Auth→401 │ NotFound→404      │  │
    │  │ Conflict→409 │ RateLimit→429 │ Storage→500    │  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Warn about unsafe production settings
    3. Ping Postgres and Redis (tenacity backoff); log and continue on failure
    Shutdown:
    1. Close the Redis connection pool
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from taskboard import __version__
from taskboard.config import settings
from taskboard.database import dispose_engine, ping_database
from taskboard.exceptions import (
    ConflictError,
    HashingError,
    NotFoundError,
    RateLimitExceededError,
    SessionNotFoundError,
    StorageUnavailableError,
    TaskBoardError,
    UnauthorizedError,
    ValidationError,
    WrongLoginOrPasswordError,
)
from taskboard.middleware.logging import RequestLoggingMiddleware
from taskboard.middleware.rate_limit import RateLimitMiddleware
from taskboard.middleware.request_id import RequestIDMiddleware, request_id_var
from taskboard.routes import auth, health, users
from taskboard.routes.auth import clear_session_cookie
from taskboard.session_storage import close_redis, ping_redis

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("TaskBoard Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.warning("Configuration warning: %s", str(e))

    # The process still starts when a store is down; /health reports it
    try:
        await ping_database()
    except Exception as e:
        logger.error("Postgres unreachable after retries: %s", str(e))
    try:
        await ping_redis()
    except Exception as e:
        logger.error("Redis unreachable after retries: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("TaskBoard Backend shutting down...")
    await close_redis()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

    Starlette picks the handler of the closest class in the exception's MRO,
    so WrongLoginOrPasswordError and SessionNotFoundError are matched before
    their more general parents.

        ValidationError            → 400
        WrongLoginOrPasswordError  → 401 invalid_credentials
        UnauthorizedError          → 401, cookie cleared
        SessionNotFoundError       → 401, cookie cleared
        NotFoundError              → 404
        ConflictError              → 409
        RateLimitExceededError     → 429
        HashingError               → 500
        StorageUnavailableError    → 500
        TaskBoardError / Exception → 500

    Response bodies never carry driver errors, hashes or tokens; `context`
    is only logged.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(WrongLoginOrPasswordError)
    async def handle_invalid_credentials(request: Request, exc: WrongLoginOrPasswordError):
        return _error_response(401, "invalid_credentials", exc.message)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        response = _error_response(401, "unauthorized", exc.message)
        clear_session_cookie(response)
        return response

    @app.exception_handler(SessionNotFoundError)
    async def handle_session_not_found(request: Request, exc: SessionNotFoundError):
        response = _error_response(401, "unauthorized", "Session expired or revoked")
        clear_session_cookie(response)
        return response

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        response = _error_response(
            429, "rate_limit_exceeded", exc.message, details={"retry_after": exc.retry_after}
        )
        response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.exception_handler(HashingError)
    async def handle_hashing_error(request: Request, exc: HashingError):
        rid = request_id_var.get("")
        logger.error("[%s] Hashing error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(StorageUnavailableError)
    async def handle_storage_error(request: Request, exc: StorageUnavailableError):
        rid = request_id_var.get("")
        logger.error(
            "[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context
        )
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(TaskBoardError)
    async def handle_app_error(request: Request, exc: TaskBoardError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="TaskBoard API",
        description="Task board backend: accounts, sessions and user profiles.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.auth_rate_limit_requests,
        window=settings.auth_rate_limit_window,
    )
    # Outermost: every response, 429 included, carries X-Request-ID
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(health.router)

    return app


app = create_app()
