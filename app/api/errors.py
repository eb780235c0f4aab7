"""Translation of pipeline exceptions into HTTP responses."""

from fastapi import HTTPException, status

from app.core.exceptions import (
    AuthorizationError,
    GenerationError,
    GenerationTimeoutError,
    NotFoundError,
    PipelineError,
    RequestValidationError,
)


def to_http_exception(exc: PipelineError) -> HTTPException:
    """Map a pipeline error onto a status code with a {"code", "message"} detail."""
    if isinstance(exc, RequestValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "VALIDATION_ERROR",
                "message": exc.message,
                "errors": [e.to_dict() for e in exc.errors],
            },
        )

    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, AuthorizationError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, GenerationTimeoutError):
        status_code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, GenerationError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
    )
