"""Coach recommendations served through the recommendation cache."""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import RequestValidationError
from app.models.base import utcnow
from app.schemas.coach import CoachContext
from app.services.generation.submitter import field_errors_from_pydantic
from app.services.generation.worker import Generator
from app.services.recommendations.cache_key import derive_key, fingerprint
from app.services.recommendations.cache_store import Clock, RecommendationCache

logger = logging.getLogger(__name__)

COACH_NAMESPACE = "coach"

# Every declared context field takes part in the key, plus the calendar
# period so recommendations roll over at the start of each month.
COACH_KEY_FIELDS = (*CoachContext.model_fields.keys(), "period")


@dataclass(frozen=True)
class RecommendationResult:
    recommendation: dict[str, Any]
    cached: bool
    cache_key: str
    expires_at: datetime


def calendar_period(now: datetime) -> str:
    """YYYY-MM bucket used to expire recommendations monthly."""
    return now.strftime("%Y-%m")


class CoachRecommendationService:
    """Validates a coach context, derives its key and reads through the cache."""

    def __init__(
        self,
        cache: RecommendationCache,
        generator: Generator,
        clock: Clock = utcnow,
    ):
        self.cache = cache
        self.generator = generator
        self._clock = clock

    def build_context(self, context: Mapping[str, Any] | CoachContext) -> dict[str, Any]:
        """
        Validate a context and add its calendar period.

        Raises:
            RequestValidationError: With one FieldError per problem
        """
        if not isinstance(context, CoachContext):
            try:
                context = CoachContext.model_validate(dict(context))
            except PydanticValidationError as e:
                raise RequestValidationError(field_errors_from_pydantic(e)) from None

        data = context.model_dump(mode="json")
        data["period"] = calendar_period(self._clock())
        return data

    async def get_recommendation(
        self,
        owner_id: uuid.UUID,
        context: Mapping[str, Any] | CoachContext,
    ) -> RecommendationResult:
        data = self.build_context(context)
        key = derive_key(owner_id, data, fields=COACH_KEY_FIELDS, namespace=COACH_NAMESPACE)

        async def compute() -> dict[str, Any] | None:
            return await self.generator.generate(data)

        lookup = await self.cache.get_or_compute(
            key,
            owner_id,
            compute,
            fingerprint=fingerprint(data, COACH_KEY_FIELDS),
        )
        return RecommendationResult(
            recommendation=lookup.value,
            cached=lookup.cached,
            cache_key=key,
            expires_at=lookup.expires_at,
        )

    async def invalidate(self, owner_id: uuid.UUID) -> int:
        return await self.cache.invalidate(owner_id)
