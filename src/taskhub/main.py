"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis pool, database engine).
Middleware, CORS, routers and the error translator are all registered here.

Error translation is centralized: handlers and services raise
taskhub.errors.ApiError subclasses (or let validation fail) and the
exception handlers below turn every failure into the same envelope:
{"success": false, "message": "..."}.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskhub import __version__
from taskhub.api import api_router
from taskhub.api.health import router as health_router
from taskhub.config import settings
from taskhub.errors import ApiError, error_response
from taskhub.services.upload_service import UPLOAD_URL_PREFIX

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "taskhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from taskhub.redis_pool import close_redis, init_redis
    try:
        await init_redis()
        logger.info("taskhub.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional; without it rate limiting is skipped
        logger.warning("taskhub.redis_unavailable", error=str(e))

    yield

    logger.info("taskhub.shutdown")
    await close_redis()

    from taskhub.db.engine import engine
    await engine.dispose()


# ─── Error translation ───────────────────────────────────


def format_validation_errors(errors: list[dict]) -> str:
    """Join pydantic errors into one readable line, e.g.
    "title: String should have at least 3 characters, priority: ..."
    """
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = err.get("msg", "Invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return ", ".join(parts) or "Invalid input"


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.message, exc.headers)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(400, format_validation_errors(exc.errors()))


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", error=str(exc))
    return error_response(500, "Internal server error")


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="taskhub",
        description="Task management API with JWT auth and a read-only admin view",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: Security → RequestId → RateLimit → CORS → handler
    # RequestId turns unhandled errors into the 500 envelope, so even those
    # responses get the request id and security headers.

    from taskhub.middleware.rate_limit import RateLimitMiddleware
    from taskhub.middleware.request_id import RequestIdMiddleware
    from taskhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
        trust_forwarded=settings.rate_limit_trust_forwarded,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    # ── Error translation ─────────────────────────────────────
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # ── Routes ────────────────────────────────────────────────
    app.include_router(health_router, tags=["health"])
    app.include_router(api_router)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        UPLOAD_URL_PREFIX, StaticFiles(directory=upload_dir), name="uploads"
    )

    return app


# Default app instance (used by uvicorn: taskhub.main:app)
app = create_app()
