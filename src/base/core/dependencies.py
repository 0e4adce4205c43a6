from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.rbac import get_current_user  # noqa: F401
from src.base.config.settings import AuthSettings
from src.domain.services.auth_service import AuthService
from src.domain.services.chat_service import ChatService
from src.domain.services.refresh_service import RefreshService
from src.domain.services.revocation_service import RevocationService
from src.domain.services.user_service import UserService


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped database session."""
    async with request.app.state.db_session_factory() as session:
        yield session


def get_auth_settings(request: Request) -> AuthSettings:
    return request.app.state.auth_settings


def get_auth_service(request: Request) -> AuthService:
    """Return the singleton AuthService instance from app state."""
    return request.app.state.auth_service


def get_refresh_service(request: Request) -> RefreshService:
    return request.app.state.refresh_service


def get_revocation_service(request: Request) -> RevocationService:
    return request.app.state.revocation_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
