"""Recommendation cache model for memoized AI coach output."""

import uuid as uuid_pkg
from datetime import datetime
from typing import Any

from sqlalchemy import Column, DateTime, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from app.models.base import utcnow


class RecommendationCacheEntry(SQLModel, table=True):
    """
    Cached coach recommendation, scoped per user.

    Lookup is by (cache_key, user_id). The key is a content address of the
    normalized request context, so identical contexts share an entry while
    different users never do. Writes are upserts; the newest write wins.
    """

    __tablename__ = "recommendation_cache"
    __table_args__ = (
        Index(
            "ix_recommendation_cache_key_user",
            "cache_key",
            "user_id",
            unique=True,
        ),
        Index("ix_recommendation_cache_user_expires", "user_id", "expires_at"),
        Index("ix_recommendation_cache_fingerprint", "input_fingerprint"),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )

    cache_key: str = Field(
        max_length=255,
        nullable=False,
        description="Content address: <namespace>:u<user_id>:d<sha256>",
    )
    user_id: uuid_pkg.UUID = Field(nullable=False)

    value: dict[str, Any] = Field(sa_column=Column(JSONB, nullable=False))

    # Canonical input that produced cache_key, for debugging and cache-busting
    input_fingerprint: str | None = Field(default=None, sa_column=Column(Text))

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    expires_at: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
