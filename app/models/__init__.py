from app.models.generation_job import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    GenerationJob,
    JobStatus,
    JobType,
    can_transition,
)
from app.models.recommendation_cache import RecommendationCacheEntry

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "GenerationJob",
    "JobStatus",
    "JobType",
    "can_transition",
    "RecommendationCacheEntry",
]
