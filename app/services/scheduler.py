"""Internal task scheduler using APScheduler.

Runs the pipeline's housekeeping within the FastAPI process:
- redispatch of jobs stuck in pending (lost dispatch events)
- purge of expired recommendation cache entries

Uses PostgreSQL advisory locks to prevent duplicate execution when
multiple instances are running.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text

from app.config import settings
from app.core.database import direct_session_maker
from app.services.pipeline import get_pipeline

logger = logging.getLogger(__name__)

# Advisory lock IDs (arbitrary unique integers, one per job)
REDISPATCH_LOCK_ID = 731501
CACHE_PURGE_LOCK_ID = 731502


@asynccontextmanager
async def advisory_lock(lock_id: int) -> AsyncIterator[bool]:
    """
    Acquire a PostgreSQL advisory lock for the duration of the context.

    Advisory locks are session-level, so this uses the direct (non-pooled)
    connection. pg_try_advisory_lock() returns immediately: if another
    instance holds the lock, we skip.
    """
    async with direct_session_maker() as session:
        result = await session.execute(
            text("SELECT pg_try_advisory_lock(:lock_id)"),
            {"lock_id": lock_id},
        )
        acquired = result.scalar()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            await session.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": lock_id},
            )
            await session.commit()


async def run_redispatch() -> dict[str, Any] | None:
    """
    Re-publish stale pending jobs with advisory lock protection.

    Returns a report dict if executed, None if skipped or failed.
    """
    async with advisory_lock(REDISPATCH_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Redispatch: skipped (another instance is running)")
            return None

        try:
            dispatched = await get_pipeline().redispatch_stale()
        except Exception as e:
            logger.exception(f"[scheduler] Redispatch: failed with error: {e}")
            return None

        if dispatched:
            logger.info(f"[scheduler] Redispatch: {dispatched} job(s) dispatched")
        return {"dispatched": dispatched}


async def run_cache_purge() -> dict[str, Any] | None:
    """
    Delete expired recommendation cache entries with advisory lock protection.

    Returns a report dict if executed, None if skipped or failed.
    """
    async with advisory_lock(CACHE_PURGE_LOCK_ID) as acquired:
        if not acquired:
            logger.info("[scheduler] Cache-purge: skipped (another instance is running)")
            return None

        try:
            removed = await get_pipeline().coach.cache.purge_expired()
        except Exception as e:
            logger.exception(f"[scheduler] Cache-purge: failed with error: {e}")
            return None

        logger.info(f"[scheduler] Cache-purge: removed {removed} expired entries")
        return {"removed": removed}


class Scheduler:
    """Manages the APScheduler instance and job registration."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler and register jobs."""
        if not settings.scheduler_enabled:
            logger.info("[scheduler] Disabled via SCHEDULER_ENABLED=false")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            run_redispatch,
            trigger=IntervalTrigger(seconds=settings.redispatch_interval_seconds),
            id="redispatch_pending",
            name="Redispatch Stale Pending Jobs",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._scheduler.add_job(
            run_cache_purge,
            trigger=IntervalTrigger(minutes=settings.cache_purge_interval_minutes),
            id="purge_recommendation_cache",
            name="Purge Expired Recommendation Cache",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._scheduler.start()
        logger.info(
            f"[scheduler] Started with redispatch every "
            f"{settings.redispatch_interval_seconds}s, cache purge every "
            f"{settings.cache_purge_interval_minutes}m"
        )

    def stop(self) -> None:
        """Gracefully shut down the scheduler."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")

    async def trigger_now(self, job_id: str) -> dict[str, Any] | None:
        """
        Manually trigger a job immediately (for testing/debugging).

        Returns the job result or None if job not found.
        """
        if job_id == "redispatch_pending":
            return await run_redispatch()
        if job_id == "purge_recommendation_cache":
            return await run_cache_purge()
        return None


scheduler = Scheduler()
