"""
Process-wide wiring of the generation pipeline and recommendation cache.

One Pipeline is built at startup and shared by route handlers, the
in-process worker pool and the scheduler. Tests build their own from
in-memory parts and install it with set_pipeline().
"""

import logging
from datetime import timedelta

from app.config import Settings, settings
from app.core.database import async_session_maker
from app.models.base import utcnow
from app.services.ai import CoachRecommendationGenerator, ProgramGenerator
from app.services.generation import (
    DatabaseJobStore,
    GenerationWorker,
    Generator,
    JobDispatcher,
    JobStore,
    JobSubmitter,
    build_dispatcher,
)
from app.services.recommendations import (
    CoachRecommendationService,
    DatabaseCacheRepository,
    RecommendationCache,
)

logger = logging.getLogger(__name__)


class Pipeline:
    """Holds the long-lived pipeline components."""

    def __init__(
        self,
        store: JobStore,
        worker: GenerationWorker,
        dispatcher: JobDispatcher,
        coach: CoachRecommendationService,
        stale_pending_after: timedelta = timedelta(seconds=120),
    ):
        self.store = store
        self.worker = worker
        self.dispatcher = dispatcher
        self.submitter = JobSubmitter(store, dispatcher)
        self.coach = coach
        self.stale_pending_after = stale_pending_after

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        program_generator: Generator | None = None,
        coach_generator: Generator | None = None,
    ) -> "Pipeline":
        store = DatabaseJobStore(async_session_maker)
        worker = GenerationWorker(
            store,
            program_generator or ProgramGenerator(),
            timeout_seconds=config.generation_timeout_seconds,
        )
        dispatcher = build_dispatcher(config, worker.process)
        cache = RecommendationCache(
            DatabaseCacheRepository(async_session_maker),
            ttl=timedelta(minutes=config.recommendation_cache_ttl_minutes),
            compute_timeout_seconds=config.recommendation_timeout_seconds,
        )
        coach = CoachRecommendationService(cache, coach_generator or CoachRecommendationGenerator())
        return cls(
            store,
            worker,
            dispatcher,
            coach,
            stale_pending_after=timedelta(seconds=config.stale_pending_seconds),
        )

    async def start(self) -> None:
        await self.dispatcher.start()

    async def stop(self) -> None:
        await self.dispatcher.stop()

    async def redispatch_stale(self, limit: int = 100) -> int:
        """
        Re-publish jobs that have sat in pending too long.

        Covers dispatch events lost to a crash or a failed webhook. The
        in-process dispatcher skips ids still waiting in its queue; any
        other duplicate delivery loses the claim and is a no-op.
        """
        cutoff = utcnow() - self.stale_pending_after
        job_ids = await self.store.list_stale_pending(cutoff, limit=limit)
        dispatched = 0
        for job_id in job_ids:
            try:
                await self.dispatcher.dispatch(job_id)
                dispatched += 1
            except Exception:
                logger.exception(f"Redispatch failed for job {job_id}")
        if job_ids:
            logger.info(f"Redispatched {dispatched}/{len(job_ids)} stale pending job(s)")
        return dispatched


_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    """Return the shared pipeline, building it from settings on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = Pipeline.from_settings(settings)
    return _pipeline


def set_pipeline(pipeline: Pipeline | None) -> None:
    global _pipeline
    _pipeline = pipeline
