"""
Recommendation cache.

- cache_key: deterministic content addresses for (owner, context)
- RecommendationCache: read-through, TTL-bounded store with no-write-on-failure
- CoachRecommendationService: coach context -> cached Claude recommendation
"""

from app.services.recommendations.cache_key import (
    canonicalize,
    derive_key,
    fingerprint,
    owner_from_key,
)
from app.services.recommendations.cache_store import (
    CachedValue,
    CacheEntryRepository,
    CacheLookup,
    DatabaseCacheRepository,
    RecommendationCache,
)
from app.services.recommendations.service import (
    COACH_KEY_FIELDS,
    CoachRecommendationService,
    RecommendationResult,
    calendar_period,
)

__all__ = [
    "canonicalize",
    "derive_key",
    "fingerprint",
    "owner_from_key",
    "CachedValue",
    "CacheEntryRepository",
    "CacheLookup",
    "DatabaseCacheRepository",
    "RecommendationCache",
    "COACH_KEY_FIELDS",
    "CoachRecommendationService",
    "RecommendationResult",
    "calendar_period",
]
