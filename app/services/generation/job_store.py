"""
Database-backed job store for training program generation.

The store owns its sessions (one short transaction per call) so it can be
shared by request handlers, the in-process worker pool and the scheduler.

Only the worker calls claim/complete/fail; the submitter only calls create.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationError, NotFoundError
from app.domain.generation_job_operations import generation_job_ops
from app.models.generation_job import GenerationJob, JobStatus, JobType

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class JobStore(Protocol):
    """Persistence contract for generation jobs."""

    async def create(
        self,
        owner_id: uuid.UUID,
        input_snapshot: dict[str, Any],
        job_type: JobType = JobType.TRAINING_PROGRAM,
    ) -> GenerationJob: ...

    async def get(self, job_id: uuid.UUID) -> GenerationJob | None: ...

    async def claim(self, job_id: uuid.UUID) -> GenerationJob | None: ...

    async def complete(self, job_id: uuid.UUID, result: dict[str, Any]) -> bool: ...

    async def fail(self, job_id: uuid.UUID, code: str, message: str) -> bool: ...

    async def list_stale_pending(
        self, created_before: datetime, limit: int = 100
    ) -> list[uuid.UUID]: ...


class DatabaseJobStore:
    """JobStore backed by the generation_jobs table."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def create(
        self,
        owner_id: uuid.UUID,
        input_snapshot: dict[str, Any],
        job_type: JobType = JobType.TRAINING_PROGRAM,
    ) -> GenerationJob:
        async with self._session_factory() as db:
            job = await generation_job_ops.create_job(
                db, user_id=owner_id, input_snapshot=input_snapshot, job_type=job_type
            )
            await db.commit()

        logger.info(f"Created generation job: {job.id}")
        return job

    async def get(self, job_id: uuid.UUID) -> GenerationJob | None:
        async with self._session_factory() as db:
            return await generation_job_ops.get(db, job_id)

    async def claim(self, job_id: uuid.UUID) -> GenerationJob | None:
        async with self._session_factory() as db:
            job = await generation_job_ops.transition(
                db, job_id, JobStatus.PENDING, JobStatus.PROCESSING
            )
            await db.commit()

        if job is not None:
            logger.info(f"Job {job_id} claimed for processing")
        return job

    async def complete(self, job_id: uuid.UUID, result: dict[str, Any]) -> bool:
        async with self._session_factory() as db:
            job = await generation_job_ops.transition(
                db, job_id, JobStatus.PROCESSING, JobStatus.COMPLETED, result=result
            )
            await db.commit()

        if job is None:
            logger.warning(f"Job {job_id} was not processing; completion dropped")
            return False
        logger.info(f"Job {job_id} completed")
        return True

    async def fail(self, job_id: uuid.UUID, code: str, message: str) -> bool:
        async with self._session_factory() as db:
            job = await generation_job_ops.transition(
                db,
                job_id,
                JobStatus.PROCESSING,
                JobStatus.FAILED,
                error_code=code,
                error_message=message,
            )
            await db.commit()

        if job is None:
            logger.warning(f"Job {job_id} was not processing; failure dropped")
            return False
        logger.error(f"Job {job_id} failed: [{code}] {message}")
        return True

    async def list_stale_pending(
        self, created_before: datetime, limit: int = 100
    ) -> list[uuid.UUID]:
        async with self._session_factory() as db:
            return await generation_job_ops.list_stale_pending(
                db, created_before=created_before, limit=limit
            )


@dataclass(frozen=True)
class JobErrorView:
    code: str
    message: str


@dataclass(frozen=True)
class JobStatusView:
    """What a caller may see of a job: status plus terminal payload."""

    job_id: uuid.UUID
    status: JobStatus
    result: dict[str, Any] | None
    error: JobErrorView | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: GenerationJob) -> "JobStatusView":
        status = JobStatus(job.status)
        error = None
        if status == JobStatus.FAILED:
            error = JobErrorView(
                code=job.error_code or "generation_failed",
                message=job.error_message or "Generation failed. Please try again.",
            )
        return cls(
            job_id=job.id,
            status=status,
            result=job.result if status == JobStatus.COMPLETED else None,
            error=error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


async def read_job_status(
    store: JobStore, job_id: uuid.UUID, owner_id: uuid.UUID
) -> JobStatusView:
    """
    Read a job's status on behalf of a principal.

    Raises:
        NotFoundError: If the job does not exist
        AuthorizationError: If the job belongs to someone else
    """
    job = await store.get(job_id)
    if job is None:
        raise NotFoundError("Job")
    if job.user_id != owner_id:
        raise AuthorizationError("Not authorized to access this job")
    return JobStatusView.from_job(job)


def sanitize_error(error: str) -> str:
    """
    Sanitize error message for user display.

    Converts technical provider errors into user-friendly messages.
    """
    error_lower = error.lower()

    if "ratelimit" in error_lower or "rate limit" in error_lower:
        return "Service is busy. Please try again in a few minutes."
    if "timeout" in error_lower or "timed out" in error_lower:
        return "Generation timed out. Please try again."
    if "apierror" in error_lower or "api error" in error_lower or "provider" in error_lower:
        return "Failed to generate program. Please try again."
    if "anthropic" in error_lower:
        return "Failed to generate program. Please try again."

    # If error is already short and clean, return it
    if error and len(error) < 100 and not any(char in error for char in ["<", ">", "{", "}"]):
        return error

    return "An unexpected error occurred. Please try again."
