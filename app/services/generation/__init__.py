"""
Training program generation pipeline.

- JobSubmitter: validates a request and writes a pending job
- JobDispatcher: delivers job-created events to a worker (in-process or webhook)
- GenerationWorker: claims one job and records exactly one terminal outcome
- JobPoller: waits on a job's status until it is terminal, times out or is cancelled
"""

from app.services.generation.dispatch import (
    InProcessDispatcher,
    JobDispatcher,
    WebhookDispatcher,
    build_dispatcher,
)
from app.services.generation.job_store import (
    DatabaseJobStore,
    JobErrorView,
    JobStatusView,
    JobStore,
    read_job_status,
    sanitize_error,
)
from app.services.generation.poller import (
    JobPoller,
    PollOptions,
    PollOutcome,
    PollResult,
    StatusReader,
    store_status_reader,
)
from app.services.generation.submitter import JobSubmitter, field_errors_from_pydantic
from app.services.generation.worker import GenerationWorker, Generator

__all__ = [
    # Store
    "DatabaseJobStore",
    "JobErrorView",
    "JobStatusView",
    "JobStore",
    "read_job_status",
    "sanitize_error",
    # Submission
    "JobSubmitter",
    "field_errors_from_pydantic",
    # Dispatch
    "InProcessDispatcher",
    "JobDispatcher",
    "WebhookDispatcher",
    "build_dispatcher",
    # Worker
    "GenerationWorker",
    "Generator",
    # Polling
    "JobPoller",
    "PollOptions",
    "PollOutcome",
    "PollResult",
    "StatusReader",
    "store_status_reader",
]
