"""
Caller-side polling for generation jobs.

The poller reads a job's status through a StatusReader until the job is
terminal, the maximum wait elapses, or the caller cancels. Reading goes
through a plain callable so a push/subscription source can replace the
database read without touching the loop or its outcomes.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.config import settings
from app.models.generation_job import JobStatus
from app.services.generation.job_store import (
    JobErrorView,
    JobStatusView,
    JobStore,
    read_job_status,
)

logger = logging.getLogger(__name__)

StatusReader = Callable[[uuid.UUID], Awaitable[JobStatusView]]
StatusCallback = Callable[[JobStatus], Awaitable[None] | None]

# Path a job takes before reaching a terminal state
_LIFECYCLE = (JobStatus.PENDING, JobStatus.PROCESSING)


class PollOutcome(str, Enum):
    """How a wait ended. TIMEOUT means "still running", never "failed"."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class PollOptions:
    interval_seconds: float = field(default_factory=lambda: settings.job_poll_interval_seconds)
    max_wait_seconds: float = field(default_factory=lambda: settings.job_poll_max_wait_seconds)
    cancel_event: asyncio.Event | None = None

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.max_wait_seconds < 0:
            raise ValueError("max_wait_seconds must not be negative")


@dataclass
class PollResult:
    job_id: uuid.UUID
    outcome: PollOutcome
    status: JobStatus | None
    result: dict[str, Any] | None = None
    error: JobErrorView | None = None
    observed: list[JobStatus] = field(default_factory=list)
    reads: int = 0
    elapsed_seconds: float = 0.0


def store_status_reader(store: JobStore, owner_id: uuid.UUID) -> StatusReader:
    """StatusReader that reads the job store with ownership checks."""

    async def read(job_id: uuid.UUID) -> JobStatusView:
        return await read_job_status(store, job_id, owner_id)

    return read


class JobPoller:
    """Waits for a job to reach a terminal status. Never writes to the job."""

    def __init__(self, reader: StatusReader, on_status: StatusCallback | None = None):
        self._reader = reader
        self._on_status = on_status

    async def wait_for(self, job_id: uuid.UUID, options: PollOptions | None = None) -> PollResult:
        """
        Poll until completed, failed, timed out or cancelled.

        Read errors (not found, forbidden) propagate to the caller. Cancelling
        the task running this coroutine raises CancelledError between reads.
        """
        options = options or PollOptions()
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + options.max_wait_seconds
        poll = PollResult(job_id=job_id, outcome=PollOutcome.TIMEOUT, status=None)

        while True:
            if options.cancel_event is not None and options.cancel_event.is_set():
                return self._finish(poll, PollOutcome.CANCELLED, started, loop)

            view = await self._reader(job_id)
            poll.reads += 1
            await self._observe(poll, view.status)

            if poll.status == JobStatus.COMPLETED:
                poll.result = view.result
                return self._finish(poll, PollOutcome.COMPLETED, started, loop)
            if poll.status == JobStatus.FAILED:
                poll.error = view.error
                return self._finish(poll, PollOutcome.FAILED, started, loop)

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"Stopped waiting for job {job_id}: still {poll.status.value}")
                return self._finish(poll, PollOutcome.TIMEOUT, started, loop)

            if await self._sleep(min(options.interval_seconds, remaining), options.cancel_event):
                return self._finish(poll, PollOutcome.CANCELLED, started, loop)

    async def _observe(self, poll: PollResult, status: JobStatus) -> None:
        """Record a read, keeping the observed history monotonic."""
        current = poll.status
        if current is not None and status.rank < current.rank:
            logger.warning(
                f"Ignoring status regression for job {poll.job_id}: "
                f"{current.value} -> {status.value}"
            )
            return
        if current == status:
            return

        # A job cannot reach a later state without passing the earlier ones,
        # so statuses skipped between two reads are filled in.
        for step in _LIFECYCLE:
            if step.rank >= status.rank:
                break
            if current is None or step.rank > current.rank:
                await self._record(poll, step)
        await self._record(poll, status)

    async def _record(self, poll: PollResult, status: JobStatus) -> None:
        poll.observed.append(status)
        poll.status = status
        if self._on_status is not None:
            maybe_awaitable = self._on_status(status)
            if maybe_awaitable is not None:
                await maybe_awaitable

    @staticmethod
    async def _sleep(seconds: float, cancel_event: asyncio.Event | None) -> bool:
        """Suspend between reads. Returns True if the caller cancelled meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    @staticmethod
    def _finish(
        poll: PollResult,
        outcome: PollOutcome,
        started: float,
        loop: asyncio.AbstractEventLoop,
    ) -> PollResult:
        poll.outcome = outcome
        poll.elapsed_seconds = loop.time() - started
        return poll
