"""Pydantic schemas for API request/response validation."""

from app.schemas.coach import (
    CacheInvalidationResponse,
    CoachContext,
    CoachRecommendation,
    CoachRecommendationResponse,
)
from app.schemas.programs import (
    Equipment,
    ExperienceLevel,
    JobCreatedResponse,
    JobErrorSchema,
    JobStatusResponse,
    JobWaitResponse,
    ProgramExercise,
    ProgramGenerationRequest,
    TrainingDay,
    TrainingGoal,
    TrainingProgram,
)

__all__ = [
    "CacheInvalidationResponse",
    "CoachContext",
    "CoachRecommendation",
    "CoachRecommendationResponse",
    "Equipment",
    "ExperienceLevel",
    "JobCreatedResponse",
    "JobErrorSchema",
    "JobStatusResponse",
    "JobWaitResponse",
    "ProgramExercise",
    "ProgramGenerationRequest",
    "TrainingDay",
    "TrainingGoal",
    "TrainingProgram",
]
