import datetime
import logging
import secrets
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.auth_core import Clock, SignedToken, encode_access_token
from src.base.config.settings import AuthSettings
from src.base.utils.time_utils import utcnow
from src.domain.repositories.refresh_token_store import RefreshTokenStore

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 5


@dataclass(frozen=True)
class OpaqueToken:
    value: str
    expires_at: datetime.datetime


@dataclass(frozen=True)
class TokenPair:
    access: SignedToken
    refresh: OpaqueToken


class TokenIssuer:
    """Mints RS256 access tokens and persisted opaque refresh tokens."""

    def __init__(
        self,
        settings: AuthSettings,
        private_pem: str | None,
        store: RefreshTokenStore,
        clock: Clock = utcnow,
    ):
        self._settings = settings
        self._private_pem = private_pem
        self._store = store
        self._clock = clock

    @property
    def can_sign(self) -> bool:
        return self._private_pem is not None

    def issue_access_token(self, user_id: int) -> SignedToken:
        if self._private_pem is None:
            raise RuntimeError("No JWT signing key configured; cannot issue tokens")
        return encode_access_token(
            user_id, self._settings, self._private_pem, self._clock()
        )

    def _new_refresh_value(self) -> str:
        # token_hex(n) carries 8*n bits of entropy.
        return secrets.token_hex(self._settings.refresh_token_bytes)

    async def issue_refresh_token(
        self, session: AsyncSession, user_id: int, commit: bool = True
    ) -> OpaqueToken:
        """Generate, persist and return a refresh token for ``user_id``.

        With ``commit=False`` the row is only flushed, leaving the caller to
        commit it together with other changes in the same transaction.
        """
        expires_at = self._clock() + datetime.timedelta(
            seconds=self._settings.refresh_token_ttl
        )
        for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
            value = self._new_refresh_value()
            if await self._store.exists(session, value):
                logger.warning("Refresh token collision on attempt %s", attempt)
                continue
            await self._store.create(session, value, user_id, expires_at)
            if commit:
                await session.commit()
            logger.info("Issued refresh token for user_id=%s", user_id)
            return OpaqueToken(value=value, expires_at=expires_at)

        raise RuntimeError("Could not generate a unique refresh token")

    async def issue_pair(self, session: AsyncSession, user_id: int) -> TokenPair:
        access = self.issue_access_token(user_id)
        refresh = await self.issue_refresh_token(session, user_id)
        return TokenPair(access=access, refresh=refresh)
