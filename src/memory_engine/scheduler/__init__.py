"""Scheduler – periodic semantic index resync.

Jobs (runner.create_scheduler): memory_resync every resync_interval_minutes, plus one
run at startup. Each run is an incremental sync; failures are logged, never raised.
"""

from memory_engine.scheduler.runner import start_scheduler

__all__ = ["start_scheduler"]
