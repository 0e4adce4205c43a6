import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.auth_core import Clock
from src.base.utils.time_utils import utcnow
from src.domain.repositories.refresh_token_store import RefreshTokenStore
from src.domain.services.security_monitor import (
    SecurityEvent,
    SecurityEventHook,
    SecurityEventType,
    ignore_event,
)

logger = logging.getLogger(__name__)


class RevocationService:
    """Ends sessions by deleting refresh tokens.

    Already-issued access tokens stay valid until their own expiry.
    """

    def __init__(
        self,
        store: RefreshTokenStore,
        on_event: SecurityEventHook = ignore_event,
        clock: Clock = utcnow,
    ):
        self._store = store
        self._on_event = on_event
        self._clock = clock

    async def logout(self, session: AsyncSession, value: str) -> None:
        """Delete one refresh token. Unknown values are not an error.

        Known and unknown tokens take the same path (one conditional delete
        and one commit) and produce the same result.
        """
        await self._store.delete(session, value)
        await session.commit()
        await self._on_event(SecurityEvent(type=SecurityEventType.LOGOUT))

    async def revoke_all(self, session: AsyncSession, user_id: int) -> int:
        count = await self._store.delete_all_for_user(session, user_id)
        await session.commit()
        logger.info("Revoked %s refresh token(s) for user_id=%s", count, user_id)
        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.TOKENS_REVOKED,
                user_id=user_id,
                reason=f"count={count}",
            )
        )
        return count

    async def purge_expired(self, session: AsyncSession) -> int:
        count = await self._store.purge_expired(session, self._clock())
        await session.commit()
        logger.info("Purged %s expired refresh token(s)", count)
        return count
