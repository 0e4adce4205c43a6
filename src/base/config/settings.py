import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TOKEN_TTL = 3600
# Short enough to watch a refresh happen while clicking through the UI.
DEVELOPMENT_ACCESS_TOKEN_TTL = 30
DEFAULT_REFRESH_TOKEN_TTL = 2_592_000


class AuthSettings(BaseModel):
    """Settings for token issuance, validation and credential policy."""

    access_token_ttl: int = Field(DEFAULT_ACCESS_TOKEN_TTL, gt=0)
    refresh_token_ttl: int = Field(DEFAULT_REFRESH_TOKEN_TTL, gt=0)
    issuer: str = "chat-api"
    audience: str = "chat-clients"
    algorithm: str = "RS256"
    refresh_rotation: bool = False
    refresh_token_bytes: int = Field(64, ge=16)
    sso_enabled: bool = False
    bcrypt_rounds: int = Field(12, ge=4, le=31)
    password_min_length: int = Field(8, ge=1)
    private_key_path: str | None = None
    public_key_path: str | None = None
    private_key_pem: str | None = None
    passphrase: str | None = None
    api_version: str = "v1"

    model_config = {"frozen": True}


def is_local_development() -> bool:
    """True when ENVIRONMENT is "development" (short access TTL, ephemeral keys)."""
    return os.getenv("ENVIRONMENT", "").lower() == "development"


def is_production() -> bool:
    """True when ENVIRONMENT is "production" (HSTS header on responses)."""
    return os.getenv("ENVIRONMENT", "").lower() == "production"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {value!r}") from None


def load_auth_settings() -> AuthSettings:
    """Build AuthSettings from the environment (and a .env file if present)."""
    load_dotenv()

    default_ttl = (
        DEVELOPMENT_ACCESS_TOKEN_TTL
        if is_local_development()
        else DEFAULT_ACCESS_TOKEN_TTL
    )

    settings = AuthSettings(
        access_token_ttl=_env_int("JWT_TOKEN_TTL", default_ttl),
        refresh_token_ttl=_env_int("JWT_REFRESH_TOKEN_TTL", DEFAULT_REFRESH_TOKEN_TTL),
        issuer=os.getenv("JWT_ISSUER", "chat-api"),
        audience=os.getenv("JWT_AUDIENCE", "chat-clients"),
        refresh_rotation=_env_bool("JWT_REFRESH_ROTATION"),
        sso_enabled=_env_bool("SSO_ENABLED"),
        bcrypt_rounds=_env_int("BCRYPT_ROUNDS", 12),
        password_min_length=_env_int("PASSWORD_MIN_LENGTH", 8),
        private_key_path=os.getenv("JWT_PRIVATE_KEY_PATH"),
        public_key_path=os.getenv("JWT_PUBLIC_KEY_PATH"),
        private_key_pem=os.getenv("JWT_PRIVATE_KEY_PEM"),
        passphrase=os.getenv("JWT_PASSPHRASE"),
    )
    logger.info(
        "Auth settings loaded: access_ttl=%ss refresh_ttl=%ss rotation=%s sso=%s",
        settings.access_token_ttl,
        settings.refresh_token_ttl,
        settings.refresh_rotation,
        settings.sso_enabled,
    )
    return settings
