"""GenerationJob model and its status state machine.

A job tracks one training-program generation request from submission to a
single terminal outcome. Rows are created by the submitter (pending) and
mutated only by the generation worker.
"""

import uuid as uuid_pkg
from enum import Enum
from typing import Any

from sqlalchemy import Column, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, UUIDMixin


class JobStatus(str, Enum):
    """Status of a generation job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        """Position along the lifecycle; terminal states share the last rank."""
        return _STATUS_RANK[self]


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# The only edges a job may take. No edge leaves a terminal state.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


def can_transition(current: JobStatus | str, target: JobStatus | str) -> bool:
    """Check whether a status edge is allowed by the state machine."""
    return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]


class JobType(str, Enum):
    """Kind of generation a job performs."""

    TRAINING_PROGRAM = "training_program"


class GenerationJob(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """Persistent record of one long-running generation request."""

    __tablename__ = "generation_jobs"
    __table_args__ = (
        Index("ix_generation_jobs_user_created", "user_id", "created_at"),
        Index("ix_generation_jobs_status_created", "status", "created_at"),
    )

    # Requesting principal (Supabase auth user id)
    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)

    job_type: str = Field(
        default=JobType.TRAINING_PROGRAM.value,
        max_length=40,
        nullable=False,
    )
    status: str = Field(
        default=JobStatus.PENDING.value,
        max_length=20,
        nullable=False,
    )

    # Fully-resolved request captured at submission; never updated
    input_snapshot: dict[str, Any] = Field(
        sa_column=Column(JSONB, nullable=False),
    )

    # Terminal payloads (exactly one is set, only once terminal)
    result: dict[str, Any] | None = Field(default=None, sa_column=Column(JSONB))
    error_code: str | None = Field(default=None, max_length=50)
    error_message: str | None = Field(default=None, max_length=2000)
