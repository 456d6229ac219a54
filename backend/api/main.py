"""
BedHeat Backend API - Main Entry Point

FastAPI application exposing the temperature reconciliation cron trigger,
with an optional in-process scheduler for deployments without an external
periodic caller.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import redis.asyncio as redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from backend.api.dependencies import build_coordinator, close_device_client, set_shared_redis
from backend.api.middleware import _VERSION, CronSecretMiddleware
from backend.api.routes import CRON_PATH, api_router
from backend.config import get_settings
from backend.models.database import close_db, init_db
from backend.services.run_lock import init_redis

# Configure logging
settings_instance = get_settings()
logging.basicConfig(
    level=logging.DEBUG if settings_instance.debug else settings_instance.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


# ============================================================================
# Application State
# ============================================================================


class AppState:
    """Centralized application state container."""

    def __init__(self) -> None:
        self.redis_client: redis.Redis | None = None
        self.scheduler: AsyncIOScheduler | None = None
        self.startup_time: datetime | None = None
        self.is_healthy: bool = False


app_state = AppState()


# ============================================================================
# Background Tasks
# ============================================================================


async def run_temperature_adjustment() -> None:
    """Scheduled reconciliation pass (same as the cron endpoint, live mode)."""
    try:
        report = await build_coordinator().run()
        logger.info(
            "Scheduled temperature adjustment: %d users, %d failed%s",
            len(report.outcomes),
            report.users_failed,
            " (skipped, run in progress)" if report.skipped else "",
        )
    except Exception as e:
        logger.error(f"Scheduled temperature adjustment failed: {e}", exc_info=True)


def init_scheduler() -> AsyncIOScheduler:
    """Initialize the background task scheduler."""
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )

    scheduler.add_job(
        run_temperature_adjustment,
        IntervalTrigger(minutes=settings_instance.run_interval_minutes),
        id="temperature_adjustment",
        name="Temperature Adjustment",
        replace_existing=True,
    )

    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager for startup and shutdown.
    """
    logger.info("Starting BedHeat API...")

    try:
        db_url = settings_instance.database_url
        # Mask password in log output
        masked = db_url
        if settings_instance.db_password:
            masked = db_url.replace(settings_instance.db_password, "***")
        logger.info("Connecting to database: %s", masked)
        await init_db()

        logger.info("Connecting to Redis...")
        app_state.redis_client = await init_redis(str(settings_instance.redis_url))
        set_shared_redis(app_state.redis_client)

        if settings_instance.enable_internal_scheduler:
            logger.info(
                "Starting internal scheduler (every %d minutes)...",
                settings_instance.run_interval_minutes,
            )
            app_state.scheduler = init_scheduler()
            app_state.scheduler.start()

        app_state.startup_time = datetime.now(UTC)
        app_state.is_healthy = True
        logger.info("BedHeat API startup complete")

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        app_state.is_healthy = False
        raise

    yield

    # Shutdown
    logger.info("Shutting down BedHeat API...")
    app_state.is_healthy = False

    if app_state.scheduler:
        logger.info("Stopping background scheduler...")
        app_state.scheduler.shutdown(wait=True)

    await close_device_client()

    if app_state.redis_client:
        logger.info("Closing Redis connection...")
        await app_state.redis_client.aclose()
        set_shared_redis(None)

    logger.info("Closing database connections...")
    await close_db()

    logger.info("BedHeat API shutdown complete")


# ============================================================================
# FastAPI Application
# ============================================================================

settings = settings_instance

app = FastAPI(
    title="BedHeat API",
    description="Schedule-driven heating control for connected beds.",
    version=_VERSION,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(CronSecretMiddleware, secret=settings.cron_secret, protected_prefix=CRON_PATH)


@app.middleware("http")
async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Log all requests with timing and correlation IDs."""
    import time

    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    request.state.request_id = request_id

    try:
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            f"{request.method} {request.url.path} "
            f"status={response.status_code} "
            f"duration={process_time:.4f}s"
        )

        return response
    except Exception as e:
        logger.error(f"Request failed: {e}", exc_info=True)
        raise


# ============================================================================
# Route Registration
# ============================================================================

app.include_router(api_router)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/health/ready", tags=["Health"], response_model=None)
async def readiness_check() -> Response:
    """Readiness probe."""
    if not app_state.is_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready"},
        )
    return JSONResponse(content={"status": "ready"})


# ============================================================================
# Exception Handlers
# ============================================================================


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": 500,
                "message": "An internal error occurred" if not settings.debug else str(exc),
                "request_id": getattr(request.state, "request_id", None),
            },
        },
    )


# ============================================================================
# CLI Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.api.main:app",
        host=settings.host,
        port=settings.port,
        loop="asyncio",
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
