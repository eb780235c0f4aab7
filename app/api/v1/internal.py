"""Internal API endpoints, protected by shared secret, not user auth.

These endpoints are called by the webhook dispatcher and external
schedulers, not by human users. They bypass Supabase JWT auth and instead
validate a shared secret via the X-Cron-Secret header.
"""

import logging
import uuid as uuid_pkg
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, status

from app.api.deps import PipelineDep
from app.config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/jobs/{job_id}/process", status_code=status.HTTP_202_ACCEPTED)
async def process_job(
    job_id: uuid_pkg.UUID,
    background_tasks: BackgroundTasks,
    pipeline: PipelineDep,
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Accept one job for the generation worker.

    Target of the webhook dispatcher. Responds as soon as the work is
    scheduled, so the dispatcher (and the submit that triggered it) never
    waits on generation. Safe to call more than once for the same job:
    only the first run finds it pending, later runs are no-ops.
    """
    _verify_cron_secret(x_cron_secret)

    background_tasks.add_task(pipeline.worker.process, job_id)
    logger.info(f"Job {job_id} accepted for background processing")
    return {"job_id": str(job_id), "accepted": True}


@router.post("/jobs/redispatch")
async def redispatch_stale_jobs(
    pipeline: PipelineDep,
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Re-publish jobs stuck in pending.

    Protected by X-Cron-Secret header. Same sweep the in-process scheduler
    runs, for deployments where the scheduler is disabled.
    """
    _verify_cron_secret(x_cron_secret)

    dispatched = await pipeline.redispatch_stale()
    return {"dispatched": dispatched}
