"""Training program generation endpoints.

Generation is asynchronous: POST /generate returns a job id immediately and
the program is produced by a background worker. Clients either poll
GET /jobs/{job_id} or long-poll GET /jobs/{job_id}/wait.
"""

import logging
import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, Body, Query, status

from app.api.deps import CurrentUser, PipelineDep, RlsSession
from app.api.errors import to_http_exception
from app.config import settings
from app.core.exceptions import PipelineError
from app.core.rate_limit import GENERATION_LIMIT, rate_limiter
from app.domain.generation_job_operations import generation_job_ops
from app.models.generation_job import JobStatus
from app.schemas.programs import (
    JobCreatedResponse,
    JobErrorSchema,
    JobStatusResponse,
    JobWaitResponse,
)
from app.services.generation import (
    JobPoller,
    JobStatusView,
    PollOptions,
    read_job_status,
    store_status_reader,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/programs", tags=["programs"])


def _status_response(view: JobStatusView) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=str(view.job_id),
        status=view.status.value,
        result=view.result,
        error=JobErrorSchema(code=view.error.code, message=view.error.message)
        if view.error
        else None,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


@router.post(
    "/generate",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_program(
    current_user: CurrentUser,
    pipeline: PipelineDep,
    payload: dict[str, Any] = Body(...),
) -> JobCreatedResponse:
    """
    Start generating a training program.

    The request is validated and stored as a pending job; generation runs
    in the background. Invalid requests return 422 with field-level errors
    and create nothing.
    """
    try:
        snapshot = pipeline.submitter.validate(payload)
    except PipelineError as e:
        raise to_http_exception(e) from None

    rate_limiter.check_rate_limit(current_user.id, "program_generate", GENERATION_LIMIT)

    job_id = await pipeline.submitter.submit(current_user.id, snapshot)
    logger.info(f"User {current_user.id} submitted generation job {job_id}")
    return JobCreatedResponse(job_id=str(job_id), status=JobStatus.PENDING.value)


@router.get("/jobs", response_model=list[JobStatusResponse])
async def list_jobs(
    db: RlsSession,
    current_user: CurrentUser,
    limit: int = Query(default=20, ge=1, le=100),
) -> list[JobStatusResponse]:
    """List the caller's most recent generation jobs, newest first."""
    jobs = await generation_job_ops.get_multi_by_user(db, user_id=current_user.id, limit=limit)
    return [_status_response(JobStatusView.from_job(job)) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job(
    job_id: uuid_pkg.UUID,
    current_user: CurrentUser,
    pipeline: PipelineDep,
) -> JobStatusResponse:
    """Get a job's status, with its program once completed or its error once failed."""
    try:
        view = await read_job_status(pipeline.store, job_id, current_user.id)
    except PipelineError as e:
        raise to_http_exception(e) from None
    return _status_response(view)


@router.get("/jobs/{job_id}/wait", response_model=JobWaitResponse)
async def wait_for_job(
    job_id: uuid_pkg.UUID,
    current_user: CurrentUser,
    pipeline: PipelineDep,
    max_wait: float = Query(
        default=settings.job_wait_endpoint_max_seconds,
        ge=0,
        le=settings.job_wait_endpoint_max_seconds,
    ),
    interval: float = Query(default=settings.job_poll_interval_seconds, gt=0, le=30),
) -> JobWaitResponse:
    """
    Long-poll a job until it finishes or max_wait elapses.

    outcome "timeout" means the job is still running; call again to keep
    waiting. It is never a failure.
    """
    poller = JobPoller(store_status_reader(pipeline.store, current_user.id))
    try:
        poll = await poller.wait_for(
            job_id, PollOptions(interval_seconds=interval, max_wait_seconds=max_wait)
        )
    except PipelineError as e:
        raise to_http_exception(e) from None

    return JobWaitResponse(
        job_id=str(job_id),
        outcome=poll.outcome.value,
        status=poll.status.value if poll.status else None,
        result=poll.result,
        error=JobErrorSchema(code=poll.error.code, message=poll.error.message)
        if poll.error
        else None,
        waited_seconds=round(poll.elapsed_seconds, 3),
    )
