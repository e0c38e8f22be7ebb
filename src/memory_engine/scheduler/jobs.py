"""Scheduled jobs - incremental resync of the semantic memory index."""

import logging

from memory_engine.memory.service import MemoryService

logger = logging.getLogger(__name__)

RESYNC_JOB_ID = "memory_resync"

_scheduler = None


def set_scheduler(scheduler) -> None:
    """Store scheduler ref for logging next run."""
    global _scheduler
    _scheduler = scheduler


def _log_next_run(job_id: str) -> None:
    if _scheduler:
        job = _scheduler.get_job(job_id)
        # Jobs on a scheduler that has not started have no next_run_time yet
        next_run = getattr(job, "next_run_time", None) if job else None
        if next_run:
            logger.info("Next %s: %s", job_id, next_run.strftime("%Y-%m-%d %H:%M"))


async def run_resync_job(service: MemoryService) -> None:
    """Sync changed memory sources into the vector store."""
    report = await service.resync()
    if report is None:
        logger.warning("Resync job failed, index left as is until next run")
    elif report.changed:
        logger.info(
            "Resync job: %d source(s) re-indexed, %d removed, %d chunk(s) written, %d dropped",
            len(report.indexed),
            len(report.removed),
            report.chunks_written,
            report.dropped_chunks,
        )
    else:
        logger.info("Resync job: %d source(s) checked, nothing changed", report.scanned)
    _log_next_run(RESYNC_JOB_ID)
