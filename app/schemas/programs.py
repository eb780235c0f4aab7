"""Pydantic schemas for training program generation endpoints."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TrainingGoal(str, Enum):
    """Primary training goal chosen during onboarding."""

    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    ENDURANCE = "endurance"
    WEIGHT_LOSS = "weight_loss"
    GENERAL_FITNESS = "general_fitness"
    POWER = "power"
    RECOMPOSITION = "recomposition"
    BODYWEIGHT = "bodyweight"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Equipment(str, Enum):
    FULL_GYM = "full_gym"
    DUMBBELLS = "dumbbells"
    KETTLEBELLS = "kettlebells"
    RESISTANCE_BANDS = "resistance_bands"
    BODYWEIGHT = "bodyweight"
    CARDIO_MACHINES = "cardio_machines"


class ProgramGenerationRequest(BaseModel):
    """Request body for POST /programs/generate.

    The validated dump of this model becomes the job's input snapshot.
    """

    model_config = ConfigDict(extra="forbid")

    goal: TrainingGoal
    days: int = Field(ge=2, le=7, description="Training days per week")
    session_minutes: int | None = Field(default=None, ge=20, le=180)
    experience_level: ExperienceLevel | None = None
    equipment: list[Equipment] = Field(default_factory=list)
    weight_unit: Literal["kg", "lbs"] = "kg"
    sport_details: str | None = Field(default=None, max_length=500)
    exercise_preferences: str | None = Field(default=None, max_length=1000)
    injuries: str | None = Field(default=None, max_length=1000)
    # Strength baseline (in weight_unit)
    squat_1rm: float | None = Field(default=None, gt=0)
    bench_1rm: float | None = Field(default=None, gt=0)
    deadlift_1rm: float | None = Field(default=None, gt=0)
    overhead_press_1rm: float | None = Field(default=None, gt=0)
    strength_assessment: Literal["actual_1rm", "estimated_1rm", "unsure"] | None = None
    is_free_trial: bool = False


# =============================================================================
# Generator output
# =============================================================================


class ProgramExercise(BaseModel):
    name: str = Field(min_length=1)
    sets: int = Field(ge=1, le=20)
    reps: str = Field(min_length=1)  # "5", "8-12", "AMRAP"
    rest_seconds: int | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    notes: str | None = None


class TrainingDay(BaseModel):
    day: str = Field(min_length=1)
    focus: str = Field(min_length=1)
    exercises: list[ProgramExercise] = Field(min_length=1)


class TrainingProgram(BaseModel):
    """Validated structure of a generated program.

    A generator result that does not fit this shape fails the job.
    """

    program_name: str = Field(min_length=1)
    duration_weeks: int = Field(ge=1, le=52)
    weekly_schedule: list[TrainingDay] = Field(min_length=1)
    progression: str | None = None
    coach_notes: str | None = None


# =============================================================================
# Responses
# =============================================================================


class JobCreatedResponse(BaseModel):
    """Response for POST /programs/generate."""

    job_id: str
    status: str  # always "pending"


class JobErrorSchema(BaseModel):
    code: str
    message: str


class JobStatusResponse(BaseModel):
    """Response for GET /programs/jobs/{job_id}."""

    job_id: str
    status: str  # "pending", "processing", "completed", "failed"
    result: dict[str, Any] | None = None
    error: JobErrorSchema | None = None
    created_at: datetime
    updated_at: datetime


class JobWaitResponse(BaseModel):
    """Response for GET /programs/jobs/{job_id}/wait."""

    job_id: str
    outcome: str  # "completed", "failed", "timeout"
    status: str | None = None
    result: dict[str, Any] | None = None
    error: JobErrorSchema | None = None
    waited_seconds: float
