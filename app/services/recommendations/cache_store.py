"""
Read-through cache for expensive recommendation generation.

get_or_compute() serves an unexpired entry when one exists and otherwise
runs the compute function under a timeout, writing the result back with a
fresh expiry. A failed, timed-out or empty compute writes nothing, so the
next request retries cleanly instead of reading a cached failure.

Concurrent misses for the same key are not de-duplicated: each caller may
compute, and the last successful upsert wins.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import AuthorizationError, GenerationError, GenerationTimeoutError
from app.domain.recommendation_cache_operations import recommendation_cache_ops
from app.models.base import utcnow
from app.services.recommendations.cache_key import owner_from_key

logger = logging.getLogger(__name__)

ComputeFn = Callable[[], Awaitable[dict[str, Any] | None]]
SessionFactory = Callable[[], AsyncSession]
Clock = Callable[[], datetime]


@dataclass(frozen=True)
class CachedValue:
    """A value read from the cache (or just computed) with its expiry."""

    key: str
    owner_id: uuid.UUID
    value: dict[str, Any]
    created_at: datetime
    expires_at: datetime
    input_fingerprint: str | None = None


@dataclass(frozen=True)
class CacheLookup:
    value: dict[str, Any]
    cached: bool
    expires_at: datetime


class CacheEntryRepository(Protocol):
    """Storage for cache entries, addressed by (key, owner)."""

    async def get(self, key: str, owner_id: uuid.UUID) -> CachedValue | None: ...

    async def upsert(self, entry: CachedValue) -> None: ...

    async def delete_for_owner(self, owner_id: uuid.UUID) -> int: ...

    async def delete_expired(self, now: datetime) -> int: ...


class DatabaseCacheRepository:
    """CacheEntryRepository over the recommendation_cache table."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def get(self, key: str, owner_id: uuid.UUID) -> CachedValue | None:
        async with self._session_factory() as db:
            row = await recommendation_cache_ops.get_entry(db, key, owner_id)
        if row is None:
            return None
        return CachedValue(
            key=row.cache_key,
            owner_id=row.user_id,
            value=row.value,
            created_at=row.created_at,
            expires_at=row.expires_at,
            input_fingerprint=row.input_fingerprint,
        )

    async def upsert(self, entry: CachedValue) -> None:
        async with self._session_factory() as db:
            await recommendation_cache_ops.upsert_entry(
                db,
                cache_key=entry.key,
                user_id=entry.owner_id,
                value=entry.value,
                input_fingerprint=entry.input_fingerprint,
                created_at=entry.created_at,
                expires_at=entry.expires_at,
            )
            await db.commit()

    async def delete_for_owner(self, owner_id: uuid.UUID) -> int:
        async with self._session_factory() as db:
            removed = await recommendation_cache_ops.delete_for_user(db, owner_id)
            await db.commit()
        return removed

    async def delete_expired(self, now: datetime) -> int:
        async with self._session_factory() as db:
            removed = await recommendation_cache_ops.delete_expired(db, now)
            await db.commit()
        return removed


class RecommendationCache:
    """Content-addressed, per-owner, TTL-bounded cache."""

    def __init__(
        self,
        repository: CacheEntryRepository,
        ttl: timedelta | None = None,
        compute_timeout_seconds: float | None = None,
        clock: Clock = utcnow,
    ):
        self.repository = repository
        self.ttl = (
            ttl if ttl is not None else timedelta(minutes=settings.recommendation_cache_ttl_minutes)
        )
        self.compute_timeout_seconds = (
            compute_timeout_seconds
            if compute_timeout_seconds is not None
            else settings.recommendation_timeout_seconds
        )
        self._clock = clock

    async def get_or_compute(
        self,
        key: str,
        owner_id: uuid.UUID,
        compute_fn: ComputeFn,
        *,
        fingerprint: str | None = None,
    ) -> CacheLookup:
        """
        Return the cached value for (key, owner) or compute and store it.

        Raises:
            AuthorizationError: If the key belongs to a different owner
            GenerationTimeoutError: If compute_fn exceeds the timeout
            GenerationError: If compute_fn returns nothing
            Exception: Whatever compute_fn raised, unchanged
        """
        if owner_from_key(key) != str(owner_id):
            raise AuthorizationError("Cache key does not belong to this user")

        entry = await self.repository.get(key, owner_id)
        if entry is not None and self._clock() < entry.expires_at:
            logger.debug(f"Cache hit: {key}")
            return CacheLookup(value=entry.value, cached=True, expires_at=entry.expires_at)

        logger.info(f"Cache {'expired' if entry else 'miss'}: {key}")

        try:
            async with asyncio.timeout(self.compute_timeout_seconds):
                value = await compute_fn()
        except TimeoutError:
            logger.warning(
                f"Recommendation compute timed out after {self.compute_timeout_seconds}s: {key}"
            )
            raise GenerationTimeoutError("Recommendation took too long. Please try again.") from None

        if value is None:
            raise GenerationError("No recommendation was produced", code="empty_result")

        # Expiry is measured from the write, not from when the request started
        now = self._clock()
        expires_at = now + self.ttl
        await self.repository.upsert(
            CachedValue(
                key=key,
                owner_id=owner_id,
                value=value,
                created_at=now,
                expires_at=expires_at,
                input_fingerprint=fingerprint,
            )
        )
        return CacheLookup(value=value, cached=False, expires_at=expires_at)

    async def invalidate(self, owner_id: uuid.UUID) -> int:
        """Drop all of an owner's entries so the next request recomputes."""
        removed = await self.repository.delete_for_owner(owner_id)
        logger.info(f"Invalidated {removed} cache entries for user {owner_id}")
        return removed

    async def purge_expired(self) -> int:
        """Delete entries past their expiry. Used by the scheduler."""
        return await self.repository.delete_expired(self._clock())
