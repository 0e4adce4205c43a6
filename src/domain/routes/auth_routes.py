import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.auth.auth_core import SignedToken
from src.base.config.settings import AuthSettings
from src.base.core.dependencies import (
    get_auth_service,
    get_auth_settings,
    get_db_session,
    get_refresh_service,
    get_revocation_service,
)
from src.base.errors import ApiError, Failure
from src.domain.models.auth_schemas import (
    AuthMethods,
    AuthStatusResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserSummary,
)
from src.domain.models.entities.user import User
from src.domain.services.auth_service import AuthService, PolicyViolation
from src.domain.services.refresh_service import RefreshService
from src.domain.services.revocation_service import RevocationService
from src.domain.services.token_issuer import OpaqueToken

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


def raise_for(result: Failure | PolicyViolation) -> None:
    if isinstance(result, PolicyViolation):
        raise ApiError(
            result.failure.status_code,
            result.failure.error,
            result.failure.message,
            details=result.details or None,
        )
    raise ApiError.from_failure(result)


def token_response(
    user: User,
    access: SignedToken,
    refresh: OpaqueToken,
    settings: AuthSettings,
) -> TokenResponse:
    return TokenResponse(
        access_token=access.value,
        refresh_token=refresh.value,
        expires_in=settings.access_token_ttl,
        user=UserSummary.model_validate(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
    service: AuthService = Depends(get_auth_service),
    settings: AuthSettings = Depends(get_auth_settings),
):
    """Exchange email and password for an access/refresh token pair."""
    result = await service.login(session, body.email, body.password)
    if isinstance(result, (Failure, PolicyViolation)):
        raise_for(result)
    return token_response(
        result.user, result.tokens.access, result.tokens.refresh, settings
    )


@router.post(
    "/register", status_code=status.HTTP_201_CREATED, response_model=TokenResponse
)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_db_session),
    service: AuthService = Depends(get_auth_service),
    settings: AuthSettings = Depends(get_auth_settings),
):
    """Create an account and sign it in."""
    result = await service.register(session, body.email, body.password, body.name)
    if isinstance(result, (Failure, PolicyViolation)):
        raise_for(result)
    return token_response(
        result.user, result.tokens.access, result.tokens.refresh, settings
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    session: AsyncSession = Depends(get_db_session),
    service: RefreshService = Depends(get_refresh_service),
    settings: AuthSettings = Depends(get_auth_settings),
):
    """Get a new access token. The refresh token is replaced only with rotation on."""
    result = await service.refresh(session, body.refresh_token)
    if isinstance(result, Failure):
        raise_for(result)
    return token_response(result.user, result.access, result.refresh, settings)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    body: RefreshRequest,
    session: AsyncSession = Depends(get_db_session),
    service: RevocationService = Depends(get_revocation_service),
):
    """Revoke a refresh token. Always 204, whether or not the token existed."""
    await service.logout(session, body.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(settings: AuthSettings = Depends(get_auth_settings)):
    return AuthStatusResponse(
        auth_methods=AuthMethods(email_password=True, google_sso=settings.sso_enabled),
        api_version=settings.api_version,
    )
