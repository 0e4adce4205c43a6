import datetime
import hashlib
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.entities.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


def hash_token(value: str) -> str:
    """SHA-256 hex digest used as the stored lookup key."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    """Persistence for refresh tokens, keyed by the hash of their value.

    Methods flush but never commit; the calling service owns the transaction
    so that rotation (delete old + insert new) commits atomically.
    """

    async def create(
        self,
        session: AsyncSession,
        value: str,
        user_id: int,
        expires_at: datetime.datetime,
    ) -> RefreshToken:
        row = RefreshToken(
            token_hash=hash_token(value), user_id=user_id, expires_at=expires_at
        )
        session.add(row)
        await session.flush()
        return row

    async def get(self, session: AsyncSession, value: str) -> RefreshToken | None:
        result = await session.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_token(value))
        )
        return result.scalar_one_or_none()

    async def exists(self, session: AsyncSession, value: str) -> bool:
        result = await session.execute(
            select(RefreshToken.id).where(RefreshToken.token_hash == hash_token(value))
        )
        return result.first() is not None

    async def delete(self, session: AsyncSession, value: str) -> bool:
        """Conditional single-statement delete.

        Returns True only for the caller whose statement removed the row, so of
        two racing deletes of the same value exactly one sees True. A matching
        row already loaded in the session is dropped from its identity map.
        """
        result = await session.execute(
            delete(RefreshToken)
            .where(RefreshToken.token_hash == hash_token(value))
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    async def delete_all_for_user(self, session: AsyncSession, user_id: int) -> int:
        result = await session.execute(
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    async def purge_expired(
        self, session: AsyncSession, now: datetime.datetime
    ) -> int:
        result = await session.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
