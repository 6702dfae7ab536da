"""APScheduler: sweep expired cache entries on a fixed interval."""

from __future__ import annotations

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cache import HR_CACHE

logger = logging.getLogger(__name__)

SWEEP_MINUTES = int(os.getenv("HR_HUB_SWEEP_MINUTES", "30"))


def sweep_cache() -> int:
    """Job function: drop every expired entry from the shared cache."""
    removed = HR_CACHE.sweep_expired()
    logger.info("Cache sweep complete: %d expired entries removed", removed)
    return removed


def create_scheduler() -> BackgroundScheduler:
    """Create and configure the scheduler. Call start() on the returned instance."""
    scheduler = BackgroundScheduler(timezone="America/New_York")
    scheduler.add_job(
        sweep_cache,
        trigger=IntervalTrigger(minutes=SWEEP_MINUTES),
        id="cache_sweep",
        replace_existing=True,
    )
    return scheduler
