import datetime
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.config.settings import AuthSettings
from src.base.errors import Failure
from src.base.models.user import CurrentUser
from src.base.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

# Signature is checked by jose; every claim is checked here so that the
# failure kinds and the exp boundary are under our control.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_aud": False,
    "verify_iss": False,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_sub": False,
    "verify_jti": False,
    "verify_at_hash": False,
}

Clock = Callable[[], datetime.datetime]
UserLoader = Callable[[AsyncSession, int], Awaitable[CurrentUser | None]]


class TokenFailure(Failure):
    """Why an inbound access token was rejected. All map to HTTP 401."""

    MISSING = ("missing", "missing_token", "JWT Token not found")
    MALFORMED = ("malformed", "invalid_token", "Invalid JWT Token")
    EXPIRED = ("expired", "expired_token", "Expired JWT Token")
    BAD_SIGNATURE = ("bad_signature", "invalid_token", "Invalid JWT Token signature")
    BAD_CLAIMS = ("bad_claims", "invalid_token", "Invalid JWT Token claims")


@dataclass(frozen=True)
class SignedToken:
    value: str
    expires_at: datetime.datetime


def encode_access_token(
    user_id: int,
    settings: AuthSettings,
    private_pem: str,
    now: datetime.datetime,
) -> SignedToken:
    """Sign a minimal-claim access token for ``user_id``.

    Only the subject is identity-bearing; roles and profile fields are
    re-read from the user record on each request.
    """
    issued_at = int(now.timestamp())
    expires_at = issued_at + settings.access_token_ttl
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": expires_at,
        "iss": settings.issuer,
        "aud": settings.audience,
        "jti": secrets.token_hex(16),
    }
    value = jwt.encode(claims, private_pem, algorithm=settings.algorithm)
    return SignedToken(
        value=value,
        expires_at=datetime.datetime.fromtimestamp(expires_at, datetime.UTC),
    )


def _audience_matches(aud: Any, expected: str) -> bool:
    if isinstance(aud, str):
        return aud == expected
    if isinstance(aud, list):
        return expected in aud
    return False


class AccessTokenValidator:
    """Stateless per-request validation of bearer access tokens.

    Order of checks: missing, malformed, signature, expiry, issuer/audience,
    subject resolution. The first failing check decides the failure kind.
    """

    def __init__(
        self,
        settings: AuthSettings,
        public_pem: str,
        user_loader: UserLoader,
        clock: Clock = utcnow,
    ):
        self._settings = settings
        self._public_pem = public_pem
        self._user_loader = user_loader
        self._clock = clock

    def decode(self, token: str | None) -> dict[str, Any] | TokenFailure:
        """Verify structure, signature and claims without touching storage."""
        if not token:
            return TokenFailure.MISSING

        if token.count(".") != 2:
            return TokenFailure.MALFORMED
        try:
            jwt.get_unverified_header(token)
            unverified = jwt.get_unverified_claims(token)
        except JWTError:
            return TokenFailure.MALFORMED
        if not isinstance(unverified, dict):
            return TokenFailure.MALFORMED

        try:
            claims = jwt.decode(
                token,
                self._public_pem,
                algorithms=[self._settings.algorithm],
                options=_DECODE_OPTIONS,
            )
        except JWTError as e:
            logger.warning("JWT signature verification failed: %s", e)
            return TokenFailure.BAD_SIGNATURE

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            return TokenFailure.BAD_CLAIMS
        if exp <= self._clock().timestamp():
            return TokenFailure.EXPIRED

        if claims.get("iss") != self._settings.issuer or not _audience_matches(
            claims.get("aud"), self._settings.audience
        ):
            logger.warning("JWT issuer/audience mismatch")
            return TokenFailure.BAD_CLAIMS

        return claims

    async def validate(
        self, session: AsyncSession, token: str | None
    ) -> CurrentUser | TokenFailure:
        """Validate a token and resolve its subject to the current user record."""
        result = self.decode(token)
        if isinstance(result, TokenFailure):
            return result

        try:
            user_id = int(result.get("sub"))
        except (TypeError, ValueError):
            return TokenFailure.BAD_CLAIMS

        user = await self._user_loader(session, user_id)
        if user is None:
            # Deleted users are indistinguishable from other bad claims.
            logger.warning("JWT subject %s does not resolve to a user", user_id)
            return TokenFailure.BAD_CLAIMS

        return user
