"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI

from showtally.api.routes import admin, health, showtimes
from showtally.config import settings
from showtally.database import engine
from showtally.tasks.summary_audit import run_summary_audit

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: configure and start the scheduler
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_summary_audit,
        trigger=CronTrigger(hour=settings.summary_audit_hour, minute=0),
        id="daily_summary_audit",
        name="Daily summary consistency audit",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started: summary audit registered daily at {settings.summary_audit_hour:02d}:00")

    yield

    # Shutdown: stop the scheduler and release pooled connections
    scheduler.shutdown(wait=False)
    await engine.dispose()
    logger.info("Scheduler shut down")


# Create FastAPI app
app = FastAPI(
    title="Showtally API",
    description="Showtime ingestion with per-showing observation counts",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(showtimes.router, prefix="/api", tags=["showtimes"])
app.include_router(admin.router, prefix="/api", tags=["admin"])


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("showtally.main:app", host=settings.api_host, port=settings.api_port)
