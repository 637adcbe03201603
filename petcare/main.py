"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from petcare.api.v1.router import api_router
from petcare.config import settings
from petcare.core.exceptions import AppException, ConfigurationError
from petcare.core.redis_client import CacheManager, create_redis_client
from petcare.database import Database
from petcare.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from petcare.middleware.logging import LoggingMiddleware, configure_logging
from petcare.services.payment_service import PaymentReconciler

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database and cache, builds the payment reconciler, and closes
    everything on shutdown. A missing payment secret aborts startup.
    """
    logger.info("application_startup", environment=settings.environment)

    cache: CacheManager | None = None
    if settings.cache_enabled:
        cache = CacheManager(create_redis_client(settings))
        if cache.ping():
            logger.info("redis_connected")
        else:
            logger.warning("redis_unavailable", note="Continuing without a warm cache")

    try:
        reconciler = PaymentReconciler(settings.razorpay_key_secret, cache)
    except ConfigurationError as e:
        logger.error("payment_reconciler_unconfigured", error=str(e))
        raise

    database = Database(
        settings.async_database_url,
        echo=settings.debug,
        application_name=settings.app_name,
    )
    database.connect()
    if await database.check_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    app.state.db = database
    app.state.cache = cache
    app.state.payment_reconciler = reconciler

    yield

    logger.info("application_shutdown")

    await database.dispose()
    logger.info("database_connections_closed")

    if cache is not None:
        cache.close()
        logger.info("redis_connection_closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Appointment booking and payment reconciliation for the pet-care portal",
    # Interactive docs are not served in production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)

app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

app.include_router(api_router, prefix=settings.api_v1_prefix)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "petcare.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
