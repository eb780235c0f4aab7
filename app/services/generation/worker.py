"""Background worker that turns one pending job into one terminal outcome."""

import asyncio
import copy
import logging
import uuid
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from app.core.exceptions import GenerationError
from app.models.generation_job import JobStatus
from app.schemas.programs import TrainingProgram
from app.services.generation.job_store import JobStore, sanitize_error

logger = logging.getLogger(__name__)


class Generator(Protocol):
    """Anything that maps an input snapshot to a structured result."""

    async def generate(self, input_data: dict[str, Any]) -> dict[str, Any]: ...


class GenerationWorker:
    """
    Processes a single job per call.

    Contract:
    - pending -> processing happens before any generation work, and only if
      this worker wins the claim
    - the call always ends with exactly one terminal write for a claimed job,
      whether the generator succeeds, raises, times out or returns junk
    """

    def __init__(
        self,
        store: JobStore,
        generator: Generator,
        timeout_seconds: float,
        result_schema: type[BaseModel] | None = TrainingProgram,
    ):
        self.store = store
        self.generator = generator
        self.timeout_seconds = timeout_seconds
        self.result_schema = result_schema

    async def process(self, job_id: uuid.UUID) -> JobStatus | None:
        """
        Run generation for one job.

        Returns:
            The terminal status written, or None if the job was not claimed
            (unknown id, or already picked up by another delivery)
        """
        job = await self.store.claim(job_id)
        if job is None:
            logger.info(f"Job {job_id} skipped: not pending")
            return None

        try:
            async with asyncio.timeout(self.timeout_seconds):
                raw = await self.generator.generate(copy.deepcopy(job.input_snapshot))
            result = self._validate(raw)
        except TimeoutError:
            return await self._fail(
                job_id, "generation_timeout", "Generation timed out. Please try again."
            )
        except GenerationError as e:
            return await self._fail(job_id, e.code, sanitize_error(e.message))
        except ValidationError as e:
            logger.warning(f"Job {job_id} produced an invalid program: {e.error_count()} error(s)")
            return await self._fail(
                job_id, "invalid_output", "Generated program was incomplete. Please try again."
            )
        except asyncio.CancelledError:
            await self._fail(job_id, "worker_interrupted", "Generation was interrupted.")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error generating job {job_id}")
            return await self._fail(job_id, "generation_failed", sanitize_error(str(e)))

        await self.store.complete(job_id, result)
        return JobStatus.COMPLETED

    def _validate(self, raw: Any) -> dict[str, Any]:
        if raw is None:
            raise GenerationError("Generator returned no result", code="invalid_output")
        if self.result_schema is None:
            if not isinstance(raw, dict):
                raise GenerationError("Generator returned a non-object", code="invalid_output")
            return raw
        return self.result_schema.model_validate(raw).model_dump(mode="json")

    async def _fail(self, job_id: uuid.UUID, code: str, message: str) -> JobStatus:
        await self.store.fail(job_id, code, message)
        return JobStatus.FAILED
