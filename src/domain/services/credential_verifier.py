import logging

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from src.base.auth.passwords import PasswordHasher
from src.domain.auth.failures import CredentialFailure
from src.domain.models.entities.user import User
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.security_monitor import (
    SecurityEvent,
    SecurityEventHook,
    SecurityEventType,
    ignore_event,
)

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Checks an email/password pair against the stored bcrypt hash.

    Unknown emails and wrong passwords produce the same failure and cost one
    bcrypt verification each, so neither the response nor its latency reveals
    whether an account exists.
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        on_event: SecurityEventHook = ignore_event,
    ):
        self._users = users
        self._hasher = hasher
        self._on_event = on_event

    async def verify(
        self, session: AsyncSession, email: str, password: str
    ) -> User | CredentialFailure:
        user = await self._users.get_by_email(session, email)

        if user is None:
            await run_in_threadpool(self._hasher.dummy_verify)
            return await self._fail(CredentialFailure.INVALID_CREDENTIALS, email)

        if user.password_hash is None:
            await run_in_threadpool(self._hasher.dummy_verify)
            return await self._fail(CredentialFailure.NO_PASSWORD, email, user.id)

        matches = await run_in_threadpool(
            self._hasher.verify, password, user.password_hash
        )
        if not matches:
            return await self._fail(
                CredentialFailure.INVALID_CREDENTIALS, email, user.id
            )

        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.LOGIN_SUCCESS, user_id=user.id, email=user.email
            )
        )
        return user

    async def _fail(
        self,
        failure: CredentialFailure,
        email: str,
        user_id: int | None = None,
    ) -> CredentialFailure:
        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.LOGIN_FAILURE,
                user_id=user_id,
                email=email,
                reason=failure.value,
            )
        )
        return failure
