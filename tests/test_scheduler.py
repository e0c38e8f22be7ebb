"""Tests for the periodic resync scheduler and job."""

import asyncio
import logging

import pytest

from memory_engine.rag.semantic import SyncReport
from memory_engine.scheduler.jobs import RESYNC_JOB_ID, run_resync_job
from memory_engine.scheduler.runner import create_scheduler


class StubService:
    def __init__(self, report):
        self.report = report
        self.calls = 0

    async def resync(self):
        self.calls += 1
        return self.report


def test_create_scheduler_registers_interval_and_startup_jobs():
    scheduler = create_scheduler(StubService(SyncReport()), interval_minutes=10)
    ids = {job.id for job in scheduler.get_jobs()}
    assert ids == {RESYNC_JOB_ID, f"{RESYNC_JOB_ID}_startup"}


def test_create_scheduler_rejects_bad_interval():
    with pytest.raises(ValueError):
        create_scheduler(StubService(SyncReport()), interval_minutes=0)


def test_resync_job_logs_changes(caplog):
    service = StubService(SyncReport(scanned=2, dirty=["a.md"], indexed=["a.md"], chunks_written=3))
    with caplog.at_level(logging.INFO, logger="memory_engine.scheduler.jobs"):
        asyncio.run(run_resync_job(service))
    assert service.calls == 1
    assert "1 source(s) re-indexed" in caplog.text


def test_resync_job_tolerates_failure(caplog):
    service = StubService(None)
    with caplog.at_level(logging.WARNING, logger="memory_engine.scheduler.jobs"):
        asyncio.run(run_resync_job(service))
    assert "Resync job failed" in caplog.text
