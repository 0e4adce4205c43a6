import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.models.user import CurrentUser
from src.domain.models.entities.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def to_principal(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        email=user.email,
        name=user.name,
        picture=user.picture,
        roles=user.role_labels,
    )


class UserRepository:
    """Read/write access to user records."""

    async def get(self, session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup."""
        result = await session.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(
        self, session: AsyncSession, external_id: str
    ) -> User | None:
        result = await session.execute(
            select(User).where(User.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def load_principal(
        self, session: AsyncSession, user_id: int
    ) -> CurrentUser | None:
        """Resolve a token subject to a fresh principal (roles re-read each time)."""
        user = await self.get(session, user_id)
        return to_principal(user) if user is not None else None

    async def add(self, session: AsyncSession, user: User) -> User:
        user.email = normalize_email(user.email)
        session.add(user)
        await session.flush()
        return user
