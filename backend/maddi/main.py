"""
Maddi Booking API - Main Application Entry Point

Server-side core of the Maddi billboard marketplace:
- Availability calendars derived from bookings and blocked dates
- Booking lifecycle with concurrency-safe approval (optimistic locking)
- Daily campaign lifecycle job (start milestones, auto-complete)
- Admin invitation workflow
- Post-commit notifications, email and live availability change feed
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from maddi.api.middleware import RequestLoggingMiddleware
from maddi.api.router import api_router
from maddi.core import dates
from maddi.core.config import get_settings
from maddi.core.logging import get_logger, setup_logging
from maddi.core.metrics import metrics_endpoint
from maddi.db.session import async_session_maker, engine
from maddi.infrastructure.redis_client import close_redis, get_redis
from maddi.services.cache_service import get_cache_stats
from maddi.services.change_feed_factory import get_change_feed

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.TIMEZONE,
        change_feed=type(get_change_feed()).__name__,
    )

    if await get_redis():
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Calendars are served uncached")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Billboard booking and availability API with concurrency-safe approvals",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(api_router)


async def _database_status() -> str:
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("health_database_failed", error=str(e))
        return "error"
    return "connected"


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus the state of the database, cache and change feed."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "today": dates.today().isoformat(),
        "database": await _database_status(),
        "cache": await get_cache_stats(),
        "change_feed": settings.CHANGE_FEED_BACKEND,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "api": "/api/v1",
    }
