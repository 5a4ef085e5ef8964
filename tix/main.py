import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, cast

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pythonjsonlogger.json import JsonFormatter
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from tix.core.database_manager import db_manager
from tix.core.errors import EXCEPTION_HANDLERS, NotFound
from tix.core.settings import get_settings
from tix.middleware.monitoring import (
    MonitoringMiddleware,
    get_health_status,
    get_prometheus_metrics,
)
from tix.middleware.rate_limiting import limiter, rate_limit_exceeded_handler
from tix.utils.cache import close_redis, init_redis

from .api.api import api_router
from .api.openapi_tags import security_schemes, tags_metadata

settings = get_settings()

# Configure structured logging
log_handler = logging.StreamHandler()
formatter = JsonFormatter(
    """
    {
        "level": "%(levelname)s",
        "time": "%(asctime)s",
        "message": "%(message)s",
        "loggerName": "%(name)s",
        "processName": "%(processName)s",
        "fileName": "%(filename)s",
        "lineNumber": "%(lineno)d"
    }
    """
)
log_handler.setFormatter(formatter)
logging.basicConfig(handlers=[log_handler], level=settings.monitoring.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Starting %s %s (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT
    )

    if settings.scalability.CACHE_ENABLED:
        await init_redis(settings.redis.redis_url)
        logger.info("Redis connection initialized")

    if not settings.is_production:
        await db_manager.create_all()
        logger.info("Database tables ensured")

    db_health = await db_manager.health_check()
    if db_health.get("status") == "healthy":
        logger.info("Database connection verified")
    else:
        logger.warning("Database health check failed: %s", db_health.get("message"))

    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.PROJECT_NAME)
        await close_redis()
        await db_manager.close()


app = FastAPI(
    title="Tix - Event Ticketing Platform",
    description="""
    **Tix** lets organizers publish events with priced ticket tiers and lets
    attendees discover events, book tickets and pay for them.

    * **Catalog**: draft, publish and cancel events; manage ticket tiers
    * **Bookings**: capacity is held at reservation time and converted on payment
    * **Payments**: Stripe payment intents, client confirmation and webhooks
    * **Tickets**: printable PDF with a QR code for check-in
    * **Dashboards**: organizer and admin totals

    All routes live under `/api`. Authenticate with
    `Authorization: Bearer <token>` or the session cookie set at login.
    """,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    exception_handlers=EXCEPTION_HANDLERS,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(MonitoringMiddleware)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.security.SESSION_SECRET_KEY,
    session_cookie=settings.security.SESSION_COOKIE_NAME,
    max_age=settings.security.SESSION_MAX_AGE_SECONDS,
    same_site=settings.security.SESSION_COOKIE_SAMESITE,
    https_only=settings.security.SESSION_COOKIE_SECURE,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


def custom_openapi() -> Dict[str, Any]:
    """OpenAPI schema with the bearer security scheme attached"""
    if app.openapi_schema:
        return cast(Dict[str, Any], app.openapi_schema)

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=tags_metadata,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = security_schemes
    for path_item in openapi_schema["paths"].values():
        for method_item in path_item.values():
            if isinstance(method_item, dict) and "tags" in method_item:
                if not any(tag in ["Health", "Monitoring"] for tag in method_item["tags"]):
                    method_item["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return cast(Dict[str, Any], app.openapi_schema)


app.openapi = custom_openapi  # type: ignore[method-assign]


@app.get("/health", tags=["Health"], summary="Health Check")  # type: ignore[misc]
async def health_check() -> Dict[str, Any]:
    """Status of the database and cache."""
    return await get_health_status()


@app.get("/metrics", tags=["Monitoring"], summary="Prometheus Metrics")  # type: ignore[misc]
async def metrics() -> PlainTextResponse:
    if not settings.monitoring.ENABLE_PROMETHEUS:
        raise NotFound("Metrics endpoint is disabled")

    metrics_data = await get_prometheus_metrics()
    return PlainTextResponse(
        content=metrics_data, media_type="text/plain; version=0.0.4; charset=utf-8"
    )
