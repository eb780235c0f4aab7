"""Domain operations for generation jobs.

Every status change is a single conditional UPDATE keyed on the expected
current status, so concurrent writers cannot move a job backwards or write
two terminal states.
"""

import copy
import uuid as uuid_pkg
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.base_operations import BaseOperations
from app.models.base import utcnow
from app.models.generation_job import GenerationJob, JobStatus, JobType, can_transition


class GenerationJobOperations(BaseOperations[GenerationJob]):
    """Operations for generation jobs."""

    def __init__(self) -> None:
        super().__init__(GenerationJob)

    async def create_job(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        input_snapshot: dict[str, Any],
        job_type: JobType = JobType.TRAINING_PROGRAM,
    ) -> GenerationJob:
        """Insert a pending job with a private copy of the input."""
        job = GenerationJob(
            user_id=user_id,
            job_type=job_type.value,
            status=JobStatus.PENDING.value,
            input_snapshot=copy.deepcopy(input_snapshot),
        )
        db.add(job)
        await db.flush()
        await db.refresh(job)
        return job

    async def transition(
        self,
        db: AsyncSession,
        job_id: uuid_pkg.UUID,
        from_status: JobStatus,
        to_status: JobStatus,
        **values: Any,
    ) -> GenerationJob | None:
        """
        Move a job along one state-machine edge.

        The UPDATE only matches while the row is still in from_status, so a
        lost race returns None instead of overwriting another writer.

        Raises:
            ValueError: If the edge is not part of the state machine
        """
        if not can_transition(from_status, to_status):
            raise ValueError(f"Illegal job transition {from_status.value} -> {to_status.value}")

        stmt = (
            update(GenerationJob)
            .where(GenerationJob.id == job_id)  # type: ignore[arg-type]
            .where(GenerationJob.status == from_status.value)  # type: ignore[arg-type]
            .values(status=to_status.value, updated_at=utcnow(), **values)
            .returning(GenerationJob)
        )
        result = await db.execute(stmt)
        job = result.scalar_one_or_none()
        await db.flush()
        return job

    async def list_stale_pending(
        self,
        db: AsyncSession,
        created_before: datetime,
        limit: int = 100,
    ) -> list[uuid_pkg.UUID]:
        """Return ids of pending jobs created before the cutoff, oldest first."""
        statement = (
            select(GenerationJob.id)
            .where(GenerationJob.status == JobStatus.PENDING.value)  # type: ignore[arg-type]
            .where(GenerationJob.created_at < created_before)  # type: ignore[arg-type]
            .order_by(GenerationJob.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


generation_job_ops = GenerationJobOperations()
