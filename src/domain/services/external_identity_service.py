import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.auth.failures import RegistrationFailure
from src.domain.models.entities.user import User
from src.domain.repositories.user_repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalProfile:
    """A profile the external identity provider has already verified."""

    subject: str
    email: str
    name: str | None = None
    picture: str | None = None


class ExternalIdentityProvisioner:
    """Maps a verified external profile onto a local user account.

    - email unknown: create an external-only account (no password)
    - email known, no external id: link the account to this subject
    - email known, same subject: refresh name/picture
    - email known, different subject: conflict
    """

    def __init__(self, users: UserRepository):
        self._users = users

    async def provision(
        self, session: AsyncSession, profile: ExternalProfile
    ) -> User | RegistrationFailure:
        user = await self._users.get_by_email(session, profile.email)
        if user is None:
            # The subject may already be linked under an older email address.
            user = await self._users.get_by_external_id(session, profile.subject)

        if user is None:
            user = User(
                email=normalize_email(profile.email),
                password_hash=None,
                external_id=profile.subject,
                name=profile.name,
                picture=profile.picture,
            )
            await self._users.add(session, user)
            await session.commit()
            logger.info("Created external-only user id=%s", user.id)
            return user

        if user.external_id is None:
            user.external_id = profile.subject
            logger.info("Linked external identity to user id=%s", user.id)
        elif user.external_id != profile.subject:
            logger.warning(
                "External identity conflict for user id=%s", user.id
            )
            return RegistrationFailure.IDENTITY_CONFLICT

        self._sync_profile(user, profile)
        await session.commit()
        await session.refresh(user)
        return user

    @staticmethod
    def _sync_profile(user: User, profile: ExternalProfile) -> None:
        if profile.name is not None:
            user.name = profile.name
        if profile.picture is not None:
            user.picture = profile.picture
