"""Exceptions for the generation pipeline and recommendation cache.

These are transport-agnostic: route handlers translate them into
HTTPException responses with a {"code", "message"} detail.
"""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation problem."""

    field: str
    message: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class PipelineError(Exception):
    """Base error carrying a stable, machine-readable code."""

    code: str = "pipeline_error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class RequestValidationError(PipelineError):
    """Raised when a submission is malformed. No job is created."""

    code = "validation_error"

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        fields = ", ".join(e.field for e in errors) or "request"
        super().__init__(f"Invalid generation request: {fields}")


class GenerationError(PipelineError):
    """The generator failed or returned unusable output."""

    code = "generation_failed"


class GenerationTimeoutError(GenerationError):
    """The generator did not answer within its time limit."""

    code = "generation_timeout"


class AuthorizationError(PipelineError):
    """Raised when a principal reads a job or cache entry it does not own."""

    code = "forbidden"

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(message)


class NotFoundError(PipelineError):
    """Raised when a requested resource is not found."""

    code = "not_found"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")
