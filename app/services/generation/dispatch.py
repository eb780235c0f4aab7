"""Job dispatch: the event that starts background processing.

Creating a job publishes its id to a dispatcher; a worker consumes it. The
store never calls the worker itself. Delivery is at-least-once: a lost
event leaves the job pending and the scheduler's sweep dispatches it again,
and the worker's claim step makes duplicate deliveries harmless.
"""

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

JobHandler = Callable[[uuid.UUID], Awaitable[Any]]


class JobDispatcher(Protocol):
    """Delivers job-created events to a worker."""

    async def dispatch(self, job_id: uuid.UUID) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class InProcessDispatcher:
    """Queue-backed worker pool running inside the API process."""

    def __init__(self, handler: JobHandler, concurrency: int = 2):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._handler = handler
        self._concurrency = concurrency
        self._queue: asyncio.Queue[uuid.UUID] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        # Ids waiting in the queue; a job is only queued once at a time
        self._queued: set[uuid.UUID] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def dispatch(self, job_id: uuid.UUID) -> None:
        if job_id in self._queued:
            logger.debug(f"Job {job_id} already queued, skipping")
            return
        self._queued.add(job_id)
        await self._queue.put(job_id)
        logger.debug(f"Dispatched job {job_id} (queue size {self._queue.qsize()})")

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run(n), name=f"generation-worker-{n}")
            for n in range(self._concurrency)
        ]
        logger.info(f"Started {self._concurrency} generation worker(s)")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info("Stopped generation workers")

    async def join(self) -> None:
        """Wait until every dispatched job has been handled."""
        await self._queue.join()

    async def _run(self, worker_number: int) -> None:
        while True:
            job_id = await self._queue.get()
            self._queued.discard(job_id)
            try:
                await self._handler(job_id)
            except Exception:
                logger.exception(f"Worker {worker_number} crashed handling job {job_id}")
            finally:
                self._queue.task_done()


class WebhookDispatcher:
    """Hands each job to an external worker deployment over HTTP.

    The target is the internal process endpoint of a worker instance,
    authenticated with the shared cron secret.
    """

    def __init__(self, url: str, secret: str, timeout: float = 10.0):
        self._url = url
        self._secret = secret
        self._timeout = timeout

    async def dispatch(self, job_id: uuid.UUID) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                self._url.format(job_id=job_id),
                json={"job_id": str(job_id)},
                headers={"X-Cron-Secret": self._secret},
            )
            response.raise_for_status()
        logger.info(f"Dispatched job {job_id} to external worker")

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


def build_dispatcher(settings: Settings, handler: JobHandler) -> JobDispatcher:
    """Pick the dispatcher configured by job_dispatch_mode."""
    if settings.webhook_dispatch_enabled:
        return WebhookDispatcher(settings.worker_dispatch_url, settings.cron_secret)
    if settings.job_dispatch_mode == "webhook":
        logger.warning("job_dispatch_mode=webhook without worker_dispatch_url; using in-process")
    return InProcessDispatcher(handler, concurrency=settings.worker_concurrency)
