import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.rbac import require_roles
from src.base.core.dependencies import (
    get_current_user,
    get_db_session,
    get_revocation_service,
    get_user_service,
)
from src.base.errors import ApiError
from src.base.models.role import Role
from src.base.models.user import CurrentUser
from src.domain.auth.failures import AccessFailure, RefreshFailure
from src.domain.models.entities.user import User
from src.domain.models.user_schemas import (
    PasswordChange,
    RevokedTokensResponse,
    UserResponse,
    UserUpdate,
)
from src.domain.routes.auth_routes import raise_for
from src.domain.services.revocation_service import RevocationService
from src.domain.services.user_service import UserService

router = APIRouter(tags=["Users"])
logger = logging.getLogger(__name__)


async def _load_self(
    principal: CurrentUser, session: AsyncSession, service: UserService
) -> User:
    user = await service.get_user(session, principal.id)
    if user is None:
        raise ApiError.from_failure(RefreshFailure.USER_NOT_FOUND)
    return user


@router.get("/me", response_model=UserResponse)
async def get_me(
    principal: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    """Profile of the authenticated user."""
    user = await _load_self(principal, session, service)
    return UserResponse.model_validate(user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    body: UserUpdate,
    principal: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    user = await _load_self(principal, session, service)
    user = await service.update_profile(
        session, user, name=body.name, picture=body.picture
    )
    return UserResponse.model_validate(user)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    body: PasswordChange,
    principal: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: UserService = Depends(get_user_service),
):
    """Change the password. Every refresh token of the user is revoked."""
    user = await _load_self(principal, session, service)
    result = await service.change_password(
        session, user, body.current_password, body.new_password
    )
    if not isinstance(result, int):
        raise_for(result)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/admin/users/{user_id}/revoke-tokens", response_model=RevokedTokensResponse
)
async def revoke_user_tokens(
    user_id: int,
    admin: CurrentUser = Depends(require_roles(Role.ADMIN)),
    session: AsyncSession = Depends(get_db_session),
    users: UserService = Depends(get_user_service),
    revocation: RevocationService = Depends(get_revocation_service),
):
    """End every session of a user (global admin only)."""
    if await users.get_user(session, user_id) is None:
        raise ApiError.from_failure(AccessFailure.NOT_FOUND, "User not found")
    count = await revocation.revoke_all(session, user_id)
    logger.warning(
        "Admin id=%s revoked %s token(s) of user id=%s", admin.id, count, user_id
    )
    return RevokedTokensResponse(revoked=count)
