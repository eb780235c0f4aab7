"""Job submission: validate, persist a pending job, publish the dispatch event."""

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import FieldError, RequestValidationError
from app.models.generation_job import JobType
from app.schemas.programs import ProgramGenerationRequest
from app.services.generation.dispatch import JobDispatcher
from app.services.generation.job_store import JobStore

logger = logging.getLogger(__name__)


def field_errors_from_pydantic(exc: PydanticValidationError) -> list[FieldError]:
    """Flatten a pydantic error into field-level errors ("equipment.0", "goal", ...)."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "request"
        errors.append(FieldError(field=loc, message=err["msg"], code=err["type"]))
    return errors


class JobSubmitter:
    """
    Accepts generation requests.

    submit() returns as soon as the pending row is written; it never waits
    on the generator. Writing the row is the only state change it makes.
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: JobDispatcher,
        request_model: type[BaseModel] = ProgramGenerationRequest,
        job_type: JobType = JobType.TRAINING_PROGRAM,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.request_model = request_model
        self.job_type = job_type

    def validate(self, payload: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        """
        Validate a request and return its JSON-ready snapshot.

        Raises:
            RequestValidationError: With one FieldError per problem
        """
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        if not isinstance(payload, Mapping):
            raise RequestValidationError(
                [FieldError(field="request", message="Request must be an object", code="type")]
            )

        try:
            request = self.request_model.model_validate(dict(payload))
        except PydanticValidationError as e:
            raise RequestValidationError(field_errors_from_pydantic(e)) from None

        return request.model_dump(mode="json")

    async def submit(self, owner_id: uuid.UUID, payload: Mapping[str, Any] | BaseModel) -> uuid.UUID:
        """
        Create a pending job for a validated request.

        Raises:
            RequestValidationError: If the request is malformed (nothing is written)
        """
        snapshot = self.validate(payload)
        job = await self.store.create(owner_id, snapshot, job_type=self.job_type)

        try:
            await self.dispatcher.dispatch(job.id)
        except Exception:
            # The row exists, so the stale-pending sweep will pick it up
            logger.exception(f"Dispatch failed for job {job.id}; left pending for redispatch")

        return job.id
