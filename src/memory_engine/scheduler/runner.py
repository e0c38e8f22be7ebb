"""Scheduler runner - keeps the semantic index in step with the memory folder."""

import logging
from datetime import datetime, timezone
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from memory_engine.config.settings import settings
from memory_engine.memory.service import MemoryService, get_memory_service
from memory_engine.scheduler.jobs import RESYNC_JOB_ID, run_resync_job, set_scheduler

logger = logging.getLogger(__name__)


def create_scheduler(service: MemoryService, interval_minutes: int) -> AsyncIOScheduler:
    """Create the scheduler with an interval resync and a one-off startup run."""
    if interval_minutes <= 0:
        raise ValueError(f"interval_minutes must be positive, got {interval_minutes}")
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        partial(run_resync_job, service),
        trigger="interval",
        minutes=interval_minutes,
        id=RESYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    # Sync once at startup (also loads the model)
    scheduler.add_job(
        partial(run_resync_job, service),
        trigger="date",
        run_date=datetime.now(timezone.utc),
        id=f"{RESYNC_JOB_ID}_startup",
    )
    set_scheduler(scheduler)
    return scheduler


def start_scheduler(service: MemoryService | None = None, interval_minutes: int | None = None) -> AsyncIOScheduler:
    """Start the scheduler on the running event loop."""
    service = service or get_memory_service()
    interval = interval_minutes or settings.resync_interval_minutes
    scheduler = create_scheduler(service, interval)
    scheduler.start()
    logger.info("Scheduler running. memory_resync every %d min", interval)
    return scheduler
