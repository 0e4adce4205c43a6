import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.auth_core import Clock, SignedToken
from src.base.config.settings import AuthSettings
from src.base.utils.time_utils import as_utc, utcnow
from src.domain.auth.failures import RefreshFailure
from src.domain.models.entities.user import User
from src.domain.repositories.refresh_token_store import RefreshTokenStore
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.security_monitor import (
    SecurityEvent,
    SecurityEventHook,
    SecurityEventType,
    ignore_event,
)
from src.domain.services.token_issuer import OpaqueToken, TokenIssuer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    user: User
    access: SignedToken
    refresh: OpaqueToken
    rotated: bool


class RefreshService:
    """Exchanges a refresh token for a new access token.

    Without rotation the presented refresh token is returned unchanged and
    stays usable until it expires or is revoked. With rotation the old row is
    removed by a conditional delete and its replacement is inserted in the
    same transaction, so of two concurrent refreshes of one token only the
    caller whose delete removed the row gets a new token.
    """

    def __init__(
        self,
        settings: AuthSettings,
        store: RefreshTokenStore,
        users: UserRepository,
        issuer: TokenIssuer,
        on_event: SecurityEventHook = ignore_event,
        clock: Clock = utcnow,
    ):
        self._settings = settings
        self._store = store
        self._users = users
        self._issuer = issuer
        self._on_event = on_event
        self._clock = clock

    async def refresh(
        self, session: AsyncSession, value: str
    ) -> RefreshResult | RefreshFailure:
        row = await self._store.get(session, value)
        if row is None:
            return await self._reject(RefreshFailure.INVALID_REFRESH_TOKEN)

        user_id = row.user_id
        expires_at = as_utc(row.expires_at)

        if expires_at <= self._clock():
            await self._store.delete(session, value)
            await session.commit()
            logger.info("Removed expired refresh token for user_id=%s", user_id)
            return await self._reject(RefreshFailure.EXPIRED_REFRESH_TOKEN, user_id)

        user = await self._users.get(session, user_id)
        if user is None:
            await self._store.delete(session, value)
            await session.commit()
            logger.warning("Removed orphaned refresh token for user_id=%s", user_id)
            return await self._reject(RefreshFailure.USER_NOT_FOUND, user_id)

        access = self._issuer.issue_access_token(user.id)

        if not self._settings.refresh_rotation:
            await self._on_event(
                SecurityEvent(type=SecurityEventType.TOKEN_REFRESH, user_id=user.id)
            )
            return RefreshResult(
                user=user,
                access=access,
                refresh=OpaqueToken(value=value, expires_at=expires_at),
                rotated=False,
            )

        if not await self._store.delete(session, value):
            # Lost the race against a concurrent refresh or logout.
            await session.rollback()
            return await self._reject(RefreshFailure.INVALID_REFRESH_TOKEN, user_id)

        replacement = await self._issuer.issue_refresh_token(
            session, user.id, commit=False
        )
        await session.commit()
        logger.info("Rotated refresh token for user_id=%s", user.id)

        await self._on_event(
            SecurityEvent(type=SecurityEventType.TOKEN_REFRESH, user_id=user.id)
        )
        return RefreshResult(user=user, access=access, refresh=replacement, rotated=True)

    async def _reject(
        self, failure: RefreshFailure, user_id: int | None = None
    ) -> RefreshFailure:
        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.REFRESH_REJECTED,
                user_id=user_id,
                reason=failure.value,
            )
        )
        return failure
