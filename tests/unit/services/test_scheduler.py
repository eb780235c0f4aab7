"""Unit tests for scheduled housekeeping jobs."""

import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config.settings import settings
from app.services import scheduler as scheduler_module
from app.services.recommendations import CachedValue
from app.services.scheduler import Scheduler, run_cache_purge, run_redispatch

from tests.helpers.mock_factories import make_mock_session_factory, mock_scalar_result


def _lock(acquired: bool):
    @asynccontextmanager
    async def fake_lock(lock_id):
        yield acquired

    return patch("app.services.scheduler.advisory_lock", fake_lock)


def _use_pipeline(pipeline):
    return patch("app.services.scheduler.get_pipeline", return_value=pipeline)


class TestRunRedispatch:
    @pytest.mark.asyncio
    async def test_reports_dispatched_count(self, pipeline, job_store, dispatcher):
        job = await job_store.create(uuid.uuid4(), {"goal": "strength", "days": 4})
        job.created_at -= timedelta(minutes=10)

        with _lock(True), _use_pipeline(pipeline):
            report = await run_redispatch()

        assert report == {"dispatched": 1}
        assert dispatcher.dispatched == [job.id]

    @pytest.mark.asyncio
    async def test_skipped_when_lock_held(self, pipeline, dispatcher):
        with _lock(False), _use_pipeline(pipeline):
            assert await run_redispatch() is None

    @pytest.mark.asyncio
    async def test_errors_are_contained(self):
        broken = MagicMock()
        broken.redispatch_stale = AsyncMock(side_effect=RuntimeError("db down"))

        with _lock(True), _use_pipeline(broken):
            assert await run_redispatch() is None


class TestRunCachePurge:
    @pytest.mark.asyncio
    async def test_removes_expired_entries(self, pipeline, cache_repository, clock):
        owner = uuid.uuid4()
        for minutes, key in ((-5, "old"), (5, "fresh")):
            cache_repository.entries[(key, owner)] = CachedValue(
                key=key,
                owner_id=owner,
                value={"headline": key},
                created_at=clock(),
                expires_at=clock() + timedelta(minutes=minutes),
                input_fingerprint=None,
            )

        with _lock(True), _use_pipeline(pipeline):
            report = await run_cache_purge()

        assert report == {"removed": 1}
        assert list(cache_repository.entries) == [("fresh", owner)]

    @pytest.mark.asyncio
    async def test_skipped_when_lock_held(self, pipeline):
        with _lock(False), _use_pipeline(pipeline):
            assert await run_cache_purge() is None


class TestAdvisoryLock:
    @pytest.mark.asyncio
    async def test_unlocks_after_use(self):
        db = AsyncMock()
        db.execute.return_value = mock_scalar_result(True)

        with patch.object(scheduler_module, "direct_session_maker", make_mock_session_factory(db)):
            async with scheduler_module.advisory_lock(42) as acquired:
                assert acquired is True

        statements = [str(call.args[0]) for call in db.execute.call_args_list]
        assert "pg_try_advisory_lock" in statements[0]
        assert "pg_advisory_unlock" in statements[1]
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_acquired_does_not_unlock(self):
        db = AsyncMock()
        db.execute.return_value = mock_scalar_result(False)

        with patch.object(scheduler_module, "direct_session_maker", make_mock_session_factory(db)):
            async with scheduler_module.advisory_lock(42) as acquired:
                assert acquired is False

        assert db.execute.await_count == 1


class TestScheduler:
    @pytest.mark.asyncio
    async def test_registers_housekeeping_jobs(self, monkeypatch):
        monkeypatch.setattr(settings, "scheduler_enabled", True)
        sched = Scheduler()

        sched.start()
        try:
            assert sched.running
            job_ids = {job.id for job in sched._scheduler.get_jobs()}
            assert job_ids == {"redispatch_pending", "purge_recommendation_cache"}
        finally:
            sched.stop()

        assert not sched.running

    def test_disabled_by_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "scheduler_enabled", False)
        sched = Scheduler()

        sched.start()

        assert not sched.running

    @pytest.mark.asyncio
    async def test_trigger_now(self, pipeline):
        with _lock(True), _use_pipeline(pipeline):
            assert await Scheduler().trigger_now("redispatch_pending") == {"dispatched": 0}
            assert await Scheduler().trigger_now("purge_recommendation_cache") == {"removed": 0}
            assert await Scheduler().trigger_now("unknown") is None
