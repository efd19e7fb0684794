"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.api.metrics_routes import router as metrics_router
from src.api.middleware import setup_middleware
from src.db.connection import db
from src.exceptions import WellnessHubError
from src.gamification.events import log_notifier
from src.observability.metrics import errors_total, init_metrics
from src.observability.sentry_config import init_sentry, shutdown_sentry
from src.services.container import init_container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    init_sentry()
    init_metrics()
    await db.init_pool()
    logger.info("Database pool initialized")
    init_container(db, notifier=log_notifier)

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    await db.close_pool()
    logger.info("Database pool closed")
    shutdown_sentry()


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="WellnessHub Gamification API",
        description="Points, levels, streaks, achievements and challenges",
        version="1.0.0",
        lifespan=lifespan
    )

    setup_middleware(app)

    app.include_router(router)
    app.include_router(metrics_router)

    @app.exception_handler(WellnessHubError)
    async def wellnesshub_exception_handler(request: Request, exc: WellnessHubError):
        # Already logged when raised
        if exc.status_code >= 500:
            errors_total.labels(error_type=type(exc).__name__, component="gamification").inc()
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        errors_total.labels(error_type=type(exc).__name__, component="api").inc()
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    logger.info("FastAPI application created")

    return app
