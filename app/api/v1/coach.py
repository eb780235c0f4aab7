"""AI coach recommendation endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Body

from app.api.deps import CurrentUser, PipelineDep
from app.api.errors import to_http_exception
from app.core.exceptions import PipelineError
from app.core.rate_limit import RECOMMENDATION_LIMIT, rate_limiter
from app.schemas.coach import CacheInvalidationResponse, CoachRecommendationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coach", tags=["coach"])


@router.post("/recommendation", response_model=CoachRecommendationResponse)
async def get_recommendation(
    current_user: CurrentUser,
    pipeline: PipelineDep,
    context: dict[str, Any] = Body(...),
) -> CoachRecommendationResponse:
    """
    Get a recommendation for the caller's training context.

    Identical contexts within the cache TTL (and the same calendar month)
    are served from cache without calling the model.
    """
    rate_limiter.check_rate_limit(current_user.id, "coach_recommendation", RECOMMENDATION_LIMIT)

    try:
        result = await pipeline.coach.get_recommendation(current_user.id, context)
    except PipelineError as e:
        if e.code != "validation_error":
            logger.warning(f"Recommendation for user {current_user.id} failed: [{e.code}]")
        raise to_http_exception(e) from None

    return CoachRecommendationResponse(
        recommendation=result.recommendation,
        cached=result.cached,
        cache_key=result.cache_key,
    )


@router.delete("/recommendation/cache", response_model=CacheInvalidationResponse)
async def invalidate_recommendations(
    current_user: CurrentUser,
    pipeline: PipelineDep,
) -> CacheInvalidationResponse:
    """Drop the caller's cached recommendations so the next request regenerates."""
    removed = await pipeline.coach.invalidate(current_user.id)
    return CacheInvalidationResponse(removed=removed)
