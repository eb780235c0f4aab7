"""Pydantic schemas for AI coach recommendation endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CoachContext(BaseModel):
    """Request context that determines a coach recommendation.

    Every field takes part in the cache key; unset optional fields are
    keyed as null, so omitting a field and sending null are equivalent.
    """

    model_config = ConfigDict(extra="forbid")

    fitness_goal: str | None = Field(default=None, max_length=100)
    experience_level: str | None = Field(default=None, max_length=50)
    workout_sessions: int = Field(default=0, ge=0)
    run_sessions: int = Field(default=0, ge=0)
    workout_days_this_week: int = Field(default=0, ge=0, le=7)
    workout_days_last_week: int = Field(default=0, ge=0, le=7)
    avg_workout_minutes: float | None = Field(default=None, ge=0)
    focus_muscle_groups: list[str] = Field(default_factory=list, max_length=20)

    # Week-over-week changes (this week minus last week); negative when down
    workout_sessions_change: int | None = None
    run_sessions_change: int | None = None
    avg_workout_duration_change: float | None = None


class CoachRecommendation(BaseModel):
    """Validated structure of a generated recommendation."""

    headline: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    action_items: list[str] = Field(default_factory=list)
    focus_area: str | None = None


class CoachRecommendationResponse(BaseModel):
    """Response for POST /coach/recommendation."""

    recommendation: dict[str, Any]
    cached: bool
    cache_key: str


class CacheInvalidationResponse(BaseModel):
    removed: int
