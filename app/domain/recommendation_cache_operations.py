"""Domain operations for the recommendation cache."""

import uuid as uuid_pkg
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.recommendation_cache import RecommendationCacheEntry


class RecommendationCacheOperations:
    """
    Operations for the recommendation cache.

    Note: This doesn't extend BaseOperations because entries are addressed
    by (cache_key, user_id) rather than by id.
    """

    def __init__(self) -> None:
        self.model = RecommendationCacheEntry

    async def get_entry(
        self,
        db: AsyncSession,
        cache_key: str,
        user_id: uuid_pkg.UUID,
    ) -> RecommendationCacheEntry | None:
        """Fetch the entry for a key and user, expired or not."""
        statement = select(RecommendationCacheEntry).where(
            RecommendationCacheEntry.cache_key == cache_key,  # type: ignore[arg-type]
            RecommendationCacheEntry.user_id == user_id,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def upsert_entry(
        self,
        db: AsyncSession,
        *,
        cache_key: str,
        user_id: uuid_pkg.UUID,
        value: dict[str, Any],
        input_fingerprint: str | None,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """
        Insert or replace an entry in one statement.

        All columns are written together, so readers never see a mix of an
        old value and a new expiry.
        """
        stmt = insert(self.model).values(
            cache_key=cache_key,
            user_id=user_id,
            value=value,
            input_fingerprint=input_fingerprint,
            created_at=created_at,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key", "user_id"],
            set_={
                "value": stmt.excluded.value,
                "input_fingerprint": stmt.excluded.input_fingerprint,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        await db.execute(stmt)
        await db.flush()

    async def delete_for_user(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> int:
        """Drop every entry belonging to a user. Returns rows removed."""
        result = await db.execute(
            delete(RecommendationCacheEntry).where(
                RecommendationCacheEntry.user_id == user_id  # type: ignore[arg-type]
            )
        )
        return cast(CursorResult[tuple[()]], result).rowcount

    async def delete_expired(self, db: AsyncSession, now: datetime) -> int:
        """Remove entries whose expiry has passed. Returns rows removed."""
        result = await db.execute(
            delete(RecommendationCacheEntry).where(
                RecommendationCacheEntry.expires_at <= now  # type: ignore[arg-type]
            )
        )
        return cast(CursorResult[tuple[()]], result).rowcount


recommendation_cache_ops = RecommendationCacheOperations()
