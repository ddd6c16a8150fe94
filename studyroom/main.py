from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from studyroom.core.limits import limiter, rate_limit_handler
from studyroom.core.init_db import init_database
from studyroom.core.error_handlers import setup_exception_handlers
from studyroom.core.database import db_manager
from studyroom.core.middleware import setup_middleware
from studyroom.core.scheduler import create_scheduler
from studyroom.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from studyroom.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CIVIL_TIMEZONE,
    CORS_ORIGINS,
    DEBUG,
    LOG_LEVEL,
    LOG_FORMAT,
    SCHEDULER_ENABLED,
)

from studyroom.attendance.routers import check_in
from studyroom.attendance.routers import pins
from studyroom.attendance.routers import check_links
from studyroom.attendance.routers import records
from studyroom.attendance.routers import timetables
from studyroom.attendance.routers import seat_assignments
from studyroom.attendance.routers import jobs

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""

    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")
    scheduler = None

    try:
        validate_config()
        logger.info("Configuration validated")

        await db_manager.check_connection()
        logger.info("Database connection established")

        await init_database()
        logger.info("Database initialized")

        if SCHEDULER_ENABLED:
            scheduler = create_scheduler(CIVIL_TIMEZONE)
            scheduler.start()
            logger.info("Attendance job scheduler started")

        log_business_event(
            "application_started",
            "system",
            0,
            {
                "version": APP_VERSION,
                "environment": "development" if DEBUG else "production",
                "scheduler": SCHEDULER_ENABLED,
            },
        )

        logger.info("Application startup completed")

    except Exception as e:
        logger.error(f"Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("Shutting down application...")

    try:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Attendance job scheduler stopped")
        await db_manager.close_connections()
        logger.info("Database connections closed")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}")

    logger.info("Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Study room attendance lifecycle service",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 2.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(check_in.router, prefix="/api/v1")
app.include_router(pins.router, prefix="/api/v1")
app.include_router(check_links.router, prefix="/api/v1")
app.include_router(records.router, prefix="/api/v1")
app.include_router(timetables.router, prefix="/api/v1")
app.include_router(seat_assignments.router, prefix="/api/v1")
app.include_router(jobs.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
async def health():
    return {
        "status": "ok",
        "version": APP_VERSION,
        "timezone": CIVIL_TIMEZONE,
        "tracked_errors": error_tracker.get_stats()["total_errors"],
    }
