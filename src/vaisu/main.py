"""
FastAPI application entry point.

Builds the Vaisu API:
- logging through loguru (`LogConfig`)
- middleware: request logging, slow request detection, CORS for the frontend
- JSON error handlers (`{"error": ...}` bodies)
- routers: health, auth, documents, billing, Stripe webhooks
- lifespan: storage initialization and shutdown, periodic rate limit cleanup

Usage:
    uvicorn vaisu.main:app --host 0.0.0.0 --port 3001 --reload
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from vaisu.api import (
    auth_router,
    billing_router,
    documents_router,
    health_router,
    webhooks_router,
)
from vaisu.api.rate_limit import cleanup_rate_limits
from vaisu.core.config import settings
from vaisu.core.exceptions import register_exception_handlers
from vaisu.core.logging import LogConfig, get_logger
from vaisu.core.middleware import PerformanceMiddleware, RequestLoggingMiddleware
from vaisu.storage import close_kv_store, get_object_store, init_kv_store

log_config = LogConfig(
    level=settings.log_level,
    log_to_console=settings.log_to_console,
    log_to_file=settings.log_to_file,
    log_file_path=settings.log_file_path,
    rotation=settings.log_rotation,
    retention=settings.log_retention,
    colorize_file=settings.log_colorize_file,
)
log_config.setup()

logger = get_logger()


async def _rate_limit_cleanup_loop(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        cleanup_rate_limits()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: validate storage settings, open the key-value store and the
    object store, start the rate limit cleanup task. Shutdown reverses it.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}, debug: {settings.debug}")
    logger.info(f"Server: {settings.host}:{settings.port}")

    missing = settings.validate_storage_config()
    if missing:
        logger.warning(f"Storage configuration incomplete: {', '.join(missing)}")

    await init_kv_store()
    object_store = get_object_store()
    await object_store.initialize()

    cleanup_task = asyncio.create_task(
        _rate_limit_cleanup_loop(settings.rate_limit_window_seconds)
    )

    yield

    cleanup_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await cleanup_task

    await object_store.close()
    await close_kv_store()
    logger.info(f"Shutting down {settings.app_name}")


def create_app() -> FastAPI:
    """
    Build and configure the application.

    Middleware added last wraps outermost: CORS, then slow request
    detection, then request logging.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(auth_router)
    app.include_router(documents_router)
    app.include_router(billing_router)

    return app


app = create_app()
