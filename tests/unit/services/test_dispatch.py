"""Unit tests for job dispatchers."""

import asyncio
import json
import uuid
from unittest.mock import patch

import httpx
import pytest

from app.config import Settings
from app.services.generation.dispatch import (
    InProcessDispatcher,
    WebhookDispatcher,
    build_dispatcher,
)


class TestInProcessDispatcher:
    @pytest.mark.asyncio
    async def test_handles_dispatched_jobs(self):
        handled: list[uuid.UUID] = []

        async def handler(job_id):
            handled.append(job_id)

        dispatcher = InProcessDispatcher(handler, concurrency=2)
        await dispatcher.start()
        ids = [uuid.uuid4() for _ in range(5)]
        for job_id in ids:
            await dispatcher.dispatch(job_id)
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

        assert sorted(handled) == sorted(ids)

    @pytest.mark.asyncio
    async def test_dispatch_does_not_wait_for_handler(self):
        release = asyncio.Event()

        async def handler(job_id):
            await release.wait()

        dispatcher = InProcessDispatcher(handler, concurrency=1)
        await dispatcher.start()

        await asyncio.wait_for(dispatcher.dispatch(uuid.uuid4()), timeout=0.1)

        release.set()
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_handler_crash_does_not_kill_worker(self):
        handled: list[uuid.UUID] = []
        bad, good = uuid.uuid4(), uuid.uuid4()

        async def handler(job_id):
            if job_id == bad:
                raise RuntimeError("handler bug")
            handled.append(job_id)

        dispatcher = InProcessDispatcher(handler, concurrency=1)
        await dispatcher.start()
        await dispatcher.dispatch(bad)
        await dispatcher.dispatch(good)
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

        assert handled == [good]

    @pytest.mark.asyncio
    async def test_jobs_queued_before_start_are_handled(self):
        handled: list[uuid.UUID] = []

        async def handler(job_id):
            handled.append(job_id)

        dispatcher = InProcessDispatcher(handler)
        job_id = uuid.uuid4()
        await dispatcher.dispatch(job_id)
        await dispatcher.start()
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

        assert handled == [job_id]

    @pytest.mark.asyncio
    async def test_duplicate_dispatch_while_queued_is_skipped(self):
        handled: list[uuid.UUID] = []

        async def handler(job_id):
            handled.append(job_id)

        dispatcher = InProcessDispatcher(handler)
        job_id = uuid.uuid4()
        for _ in range(3):
            await dispatcher.dispatch(job_id)
        await dispatcher.start()
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

        assert handled == [job_id]

    @pytest.mark.asyncio
    async def test_job_can_be_dispatched_again_once_taken(self):
        handled: list[uuid.UUID] = []

        async def handler(job_id):
            handled.append(job_id)

        dispatcher = InProcessDispatcher(handler, concurrency=1)
        await dispatcher.start()
        job_id = uuid.uuid4()
        await dispatcher.dispatch(job_id)
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.dispatch(job_id)
        await asyncio.wait_for(dispatcher.join(), timeout=1)
        await dispatcher.stop()

        assert handled == [job_id, job_id]

    @pytest.mark.asyncio
    async def test_start_stop_lifecycle(self):
        async def handler(job_id):
            return None

        dispatcher = InProcessDispatcher(handler, concurrency=3)
        assert not dispatcher.running
        await dispatcher.start()
        await dispatcher.start()
        assert dispatcher.running
        await dispatcher.stop()
        assert not dispatcher.running

    def test_concurrency_must_be_positive(self):
        async def handler(job_id):
            return None

        with pytest.raises(ValueError):
            InProcessDispatcher(handler, concurrency=0)


def _patched_client(handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch("app.services.generation.dispatch.httpx.AsyncClient", side_effect=factory)


class TestWebhookDispatcher:
    @pytest.mark.asyncio
    async def test_posts_job_with_secret(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json={"accepted": True})

        job_id = uuid.uuid4()
        dispatcher = WebhookDispatcher(
            "https://worker.internal/api/v1/internal/jobs/{job_id}/process", "s3cret"
        )
        with _patched_client(handler):
            await dispatcher.dispatch(job_id)

        assert len(requests) == 1
        assert str(requests[0].url) == (
            f"https://worker.internal/api/v1/internal/jobs/{job_id}/process"
        )
        assert requests[0].headers["X-Cron-Secret"] == "s3cret"
        assert json.loads(requests[0].content) == {"job_id": str(job_id)}

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        dispatcher = WebhookDispatcher("https://worker.internal/{job_id}", "s3cret")
        with _patched_client(handler), pytest.raises(httpx.HTTPStatusError):
            await dispatcher.dispatch(uuid.uuid4())


class TestBuildDispatcher:
    async def _noop(self, job_id):
        return None

    def test_in_process_by_default(self):
        dispatcher = build_dispatcher(Settings(worker_concurrency=4), self._noop)
        assert isinstance(dispatcher, InProcessDispatcher)

    def test_webhook_when_configured(self):
        config = Settings(
            job_dispatch_mode="webhook",
            worker_dispatch_url="https://worker.internal/{job_id}",
            cron_secret="s3cret",
        )
        assert isinstance(build_dispatcher(config, self._noop), WebhookDispatcher)

    def test_webhook_without_url_falls_back(self):
        config = Settings(job_dispatch_mode="webhook", worker_dispatch_url="")
        assert isinstance(build_dispatcher(config, self._noop), InProcessDispatcher)
