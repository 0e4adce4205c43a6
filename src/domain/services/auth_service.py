import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from src.base.auth.passwords import PasswordHasher
from src.base.config.settings import AuthSettings
from src.domain.auth.failures import CredentialFailure, RegistrationFailure
from src.domain.auth.validation import is_valid_email, password_policy_errors
from src.domain.models.entities.user import User
from src.domain.repositories.user_repository import UserRepository, normalize_email
from src.domain.services.credential_verifier import CredentialVerifier
from src.domain.services.external_identity_service import (
    ExternalIdentityProvisioner,
    ExternalProfile,
)
from src.domain.services.security_monitor import (
    SecurityEvent,
    SecurityEventHook,
    SecurityEventType,
    ignore_event,
)
from src.domain.services.token_issuer import TokenIssuer, TokenPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


@dataclass(frozen=True)
class PolicyViolation:
    """A rejected registration input together with the reasons."""

    failure: RegistrationFailure
    details: list[str]


class AuthService:
    """Login, registration and external sign-in, each ending in a token pair."""

    def __init__(
        self,
        settings: AuthSettings,
        users: UserRepository,
        hasher: PasswordHasher,
        verifier: CredentialVerifier,
        issuer: TokenIssuer,
        provisioner: ExternalIdentityProvisioner,
        on_event: SecurityEventHook = ignore_event,
    ):
        self._settings = settings
        self._users = users
        self._hasher = hasher
        self._verifier = verifier
        self._issuer = issuer
        self._provisioner = provisioner
        self._on_event = on_event

    async def login(
        self, session: AsyncSession, email: str, password: str
    ) -> AuthResult | CredentialFailure | PolicyViolation:
        if not is_valid_email(email):
            return PolicyViolation(RegistrationFailure.INVALID_EMAIL, [])

        result = await self._verifier.verify(session, email, password)
        if isinstance(result, CredentialFailure):
            return result

        tokens = await self._issuer.issue_pair(session, result.id)
        return AuthResult(user=result, tokens=tokens)

    async def register(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        name: str | None = None,
    ) -> AuthResult | RegistrationFailure | PolicyViolation:
        if not is_valid_email(email):
            return PolicyViolation(RegistrationFailure.INVALID_EMAIL, [])

        errors = password_policy_errors(password, self._settings.password_min_length)
        if errors:
            return PolicyViolation(RegistrationFailure.WEAK_PASSWORD, errors)

        if await self._users.get_by_email(session, email) is not None:
            return RegistrationFailure.EMAIL_EXISTS

        password_hash = await run_in_threadpool(self._hasher.hash, password)
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=name or normalize_email(email).split("@")[0],
        )
        try:
            await self._users.add(session, user)
            await session.commit()
        except IntegrityError:
            # Concurrent registration of the same email.
            await session.rollback()
            return RegistrationFailure.EMAIL_EXISTS

        logger.info("Registered user id=%s", user.id)
        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.REGISTRATION, user_id=user.id, email=user.email
            )
        )

        tokens = await self._issuer.issue_pair(session, user.id)
        return AuthResult(user=user, tokens=tokens)

    async def login_external(
        self, session: AsyncSession, profile: ExternalProfile
    ) -> AuthResult | RegistrationFailure:
        """Sign in with a profile already verified by an external identity provider.

        Called by the OAuth callback route once the provider handshake has
        produced a verified profile; the handshake itself lives outside this
        service.
        """
        user = await self._provisioner.provision(session, profile)
        if isinstance(user, RegistrationFailure):
            return user

        await self._on_event(
            SecurityEvent(
                type=SecurityEventType.LOGIN_SUCCESS,
                user_id=user.id,
                email=user.email,
                reason="external",
            )
        )
        tokens = await self._issuer.issue_pair(session, user.id)
        return AuthResult(user=user, tokens=tokens)
