# Services package

from app.services.generation import (
    GenerationWorker,
    JobPoller,
    JobSubmitter,
)
from app.services.recommendations import (
    CoachRecommendationService,
    RecommendationCache,
)

__all__ = [
    # Job pipeline
    "GenerationWorker",
    "JobPoller",
    "JobSubmitter",
    # Recommendation cache
    "CoachRecommendationService",
    "RecommendationCache",
]
