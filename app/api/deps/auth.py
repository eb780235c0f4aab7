"""JWT validation and principal dependencies.

This module provides:
- JWT validation against Supabase JWKS
- The authenticated Principal (the token's subject)
- RLS-aware database session dependency
"""

import logging
import time
import uuid as uuid_pkg
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.backends import ECKey
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.rls import set_rls_user_context

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for JWKS with TTL to handle key rotation
_jwks_cache: dict[str, Any] = {}
_jwks_cache_timestamp: float = 0.0
_JWKS_CACHE_TTL_SECONDS: float = 3600.0  # 1 hour


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. Jobs and cache entries are owned by its id."""

    id: uuid_pkg.UUID
    email: str | None = None
    role: str = "authenticated"


async def _fetch_jwks() -> dict[str, Any]:
    """Fetch JWKS from Supabase and update the cache."""
    global _jwks_cache_timestamp
    async with httpx.AsyncClient() as client:
        response = await client.get(settings.supabase_jwks_url)
        response.raise_for_status()
        jwks = response.json()
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
        _jwks_cache_timestamp = time.monotonic()
        return jwks


async def get_jwks(force_refresh: bool = False) -> dict[str, Any]:
    """Fetch and cache JWKS from Supabase with a 1-hour TTL."""
    cache_age = time.monotonic() - _jwks_cache_timestamp
    if _jwks_cache and not force_refresh and cache_age < _JWKS_CACHE_TTL_SECONDS:
        return _jwks_cache

    return await _fetch_jwks()


def get_signing_key(jwks: dict[str, Any], token: str) -> ECKey:
    """Get the signing key from JWKS that matches the token's kid."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return ECKey(key, algorithm="ES256")

    raise ValueError("Unable to find matching key in JWKS")


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """
    Build a Principal from verified token claims.

    Raises:
        ValueError: If the subject is missing or not a UUID
    """
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return Principal(
        id=uuid_pkg.UUID(subject),
        email=payload.get("email"),
        role=payload.get("role", "authenticated"),
    )


async def _decode(token: str, force_refresh: bool = False) -> Principal:
    jwks = await get_jwks(force_refresh=force_refresh)
    signing_key = get_signing_key(jwks, token)
    payload = jwt.decode(
        token,
        signing_key,
        algorithms=["ES256"],
        audience="authenticated",
    )
    return principal_from_claims(payload)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """Validate the Supabase JWT and return the calling principal."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    token = credentials.credentials

    try:
        return await _decode(token)
    except (JWTError, ValueError) as first_error:
        # Key rotation may have occurred: force a JWKS refresh and retry once
        try:
            logger.info("JWT validation failed with cached JWKS, forcing refresh")
            return await _decode(token, force_refresh=True)
        except (JWTError, ValueError, httpx.HTTPError):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            ) from first_error
    except httpx.HTTPError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[Principal, Depends(get_current_user)]


async def get_db_with_rls(
    db: DbSession,
    current_user: CurrentUser,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session with RLS user context automatically set.

    The RLS context uses SET LOCAL, which is transaction-scoped and
    automatically cleared when the transaction ends. This works correctly
    with connection poolers like PgBouncer.
    """
    await set_rls_user_context(db, current_user.id)
    yield db


RlsSession = Annotated[AsyncSession, Depends(get_db_with_rls)]
