# shrnq/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.sessions import SessionMiddleware

from shrnq.api.routers.links import redirect_router
from shrnq.api.routers.links import router as links_router
from shrnq.api.routers.login import router as login_router
from shrnq.api.routers.seo import router as seo_router
from shrnq.api.routers.theme import router as theme_router
from shrnq.core.config import Settings, get_settings
from shrnq.core.log_utils import sanitize_for_log
from shrnq.core.rate_limit import limiter
from shrnq.core.request_context import RequestContextMiddleware, get_request_id
from shrnq.core.security import Honeypot
from shrnq.db.kv import create_redis
from shrnq.db.session import lifespan_db_manager
from shrnq.exceptions import SecurityCheckError

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# --- Lifespan Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting up %s v%s...", settings.APP_NAME, settings.APP_VERSION)
    logger.info("Environment: %s", settings.ENVIRONMENT)

    await lifespan_db_manager(app, "startup")
    logger.info("LIFESPAN_HOOK: Database resources initialized.")

    redis = create_redis(str(settings.REDIS_URL))
    try:
        await redis.ping()
        logger.info("LIFESPAN_HOOK: Redis connection verified.")
    except RedisError as e:
        # Not fatal: shorten/redirect requests answer 500 until Redis is back.
        logger.error("LIFESPAN_HOOK: Redis is unreachable at startup: %s", e)
    app.state.redis = redis

    yield

    logger.info("Shutting down %s...", settings.APP_NAME)
    await redis.aclose()
    app.state.redis = None
    await lifespan_db_manager(app, "shutdown")
    logger.info("LIFESPAN_HOOK: Database resources disposed.")


# --- Exception Handlers ---
async def security_check_exception_handler(request: Request, exc: SecurityCheckError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_details = exc.errors()
    logger.warning(
        "Request validation error: %s %s - Errors: %s",
        request.method,
        sanitize_for_log(request.url.path),
        sanitize_for_log(error_details, max_length=1024),
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "status": "error",
            "error": "Invalid submission",
            "detail": jsonable_encoder(error_details),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception during request %s: %s %s",
        get_request_id(),
        request.method,
        sanitize_for_log(request.url.path),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "error": "Unknown Error"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Settings come from the environment when not given."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=settings.APP_DESCRIPTION,
        lifespan=lifespan,
        debug=settings.DEBUG,
    )
    app.state.settings = settings
    app.state.honeypot = Honeypot(
        settings.HONEYPOT_SECRET, min_submit_seconds=settings.HONEYPOT_MIN_SUBMIT_SECONDS
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        same_site="lax",
        https_only=settings.COOKIE_SECURE,
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(SecurityCheckError, security_check_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        tags=["System Health"],
        summary="Basic System Liveness Check",
        status_code=status.HTTP_200_OK,
        include_in_schema=False,
    )
    async def health_check_basic_system():
        return {"status": "healthy"}

    app.include_router(seo_router)
    app.include_router(theme_router)
    app.include_router(login_router)
    app.include_router(links_router)
    # Must stay last: it matches every remaining GET path.
    app.include_router(redirect_router)

    return app


# --- Main entry point for Uvicorn direct run ---
if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "shrnq.main:create_app",
        factory=True,
        host=_settings.SERVER_HOST,
        port=_settings.SERVER_PORT,
        reload=_settings.DEBUG,
        log_level=_settings.LOG_LEVEL.lower(),
    )
