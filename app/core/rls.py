"""Row-Level Security (RLS) context management.

generation_jobs and recommendation_cache carry per-user RLS policies that
read app.current_user_id. Request-scoped sessions set it with SET LOCAL so
the setting is transaction-scoped and safe behind PgBouncer.

Background workers use the service connection, which bypasses RLS.
"""

from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


async def set_rls_user_context(session: AsyncSession, user_id: UUID) -> None:
    """
    Set the current user context for RLS policies.

    The setting is automatically reset when the transaction ends.
    """
    await session.execute(
        text("SET LOCAL app.current_user_id = :user_id"),
        {"user_id": str(user_id)},
    )
