import logging

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from src.base.auth.passwords import PasswordHasher
from src.base.config.settings import AuthSettings
from src.base.models.role import Role
from src.domain.auth.failures import PasswordChangeFailure, RegistrationFailure
from src.domain.auth.validation import password_policy_errors
from src.domain.models.entities.user import User
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.auth_service import PolicyViolation
from src.domain.services.revocation_service import RevocationService

logger = logging.getLogger(__name__)


class UserService:
    def __init__(
        self,
        settings: AuthSettings,
        users: UserRepository,
        hasher: PasswordHasher,
        revocation: RevocationService,
    ):
        self._settings = settings
        self._users = users
        self._hasher = hasher
        self._revocation = revocation

    async def get_user(self, session: AsyncSession, user_id: int) -> User | None:
        return await self._users.get(session, user_id)

    async def update_profile(
        self,
        session: AsyncSession,
        user: User,
        name: str | None = None,
        picture: str | None = None,
    ) -> User:
        """Update display name and/or avatar. ``None`` leaves a field unchanged."""
        if name is not None:
            user.name = name
        if picture is not None:
            user.picture = picture
        await session.commit()
        await session.refresh(user)
        logger.info("Updated profile for user id=%s", user.id)
        return user

    async def change_password(
        self,
        session: AsyncSession,
        user: User,
        current_password: str,
        new_password: str,
    ) -> int | PasswordChangeFailure | PolicyViolation:
        """Replace the password and end every session of the user.

        Returns the number of refresh tokens revoked.
        """
        if user.password_hash is None:
            return PasswordChangeFailure.NO_PASSWORD

        matches = await run_in_threadpool(
            self._hasher.verify, current_password, user.password_hash
        )
        if not matches:
            logger.warning("Password change rejected for user id=%s", user.id)
            return PasswordChangeFailure.INVALID_PASSWORD

        errors = password_policy_errors(
            new_password, self._settings.password_min_length
        )
        if errors:
            return PolicyViolation(RegistrationFailure.WEAK_PASSWORD, errors)

        user.password_hash = await run_in_threadpool(self._hasher.hash, new_password)
        await session.commit()
        logger.info("Changed password for user id=%s", user.id)
        return await self._revocation.revoke_all(session, user.id)

    async def set_admin(
        self, session: AsyncSession, email: str, admin: bool
    ) -> User | None:
        """Grant or withdraw ROLE_ADMIN. Returns None if no user has ``email``."""
        user = await self._users.get_by_email(session, email)
        if user is None:
            return None

        roles = [r for r in user.role_labels if r != Role.ADMIN.value]
        if admin:
            roles.append(Role.ADMIN.value)
        # Reassign so the JSON column is flagged as modified.
        user.roles = roles
        await session.commit()
        await session.refresh(user)
        logger.info("Set admin=%s for user id=%s", admin, user.id)
        return user
