import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.base.auth.auth_core import AccessTokenValidator
from src.base.auth.keys import KeyPair, load_key_pair
from src.base.auth.passwords import PasswordHasher
from src.base.config.database import close_db, init_db
from src.base.config.redis import close_redis, init_redis
from src.base.config.settings import AuthSettings, load_auth_settings
from src.base.infra.redis_counters import RedisCounters
from src.base.infra.redis_rate_limiter import RedisRateLimiter
from src.domain.repositories.refresh_token_store import RefreshTokenStore
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.auth_service import AuthService
from src.domain.services.chat_service import ChatService
from src.domain.services.credential_verifier import CredentialVerifier
from src.domain.services.external_identity_service import ExternalIdentityProvisioner
from src.domain.services.message_publisher import MessagePublisher
from src.domain.services.refresh_service import RefreshService
from src.domain.services.revocation_service import RevocationService
from src.domain.services.security_monitor import SecurityMonitor
from src.domain.services.token_issuer import TokenIssuer
from src.domain.services.user_service import UserService

logger = logging.getLogger(__name__)


def init_services(
    app: FastAPI,
    settings: AuthSettings,
    keys: KeyPair,
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: Redis | None = None,
    publisher: MessagePublisher | None = None,
) -> None:
    """Wire repositories and services together and store them on app state."""
    users = UserRepository()
    store = RefreshTokenStore()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    monitor = SecurityMonitor(RedisCounters(redis_client))

    issuer = TokenIssuer(settings, keys.private_pem, store)
    verifier = CredentialVerifier(users, hasher, on_event=monitor)
    revocation = RevocationService(store, on_event=monitor)

    app.state.auth_settings = settings
    app.state.db_session_factory = session_factory
    app.state.redis_client = redis_client
    app.state.security_monitor = monitor
    app.state.rate_limiter = RedisRateLimiter(
        redis_client, on_exceeded=monitor.record_rate_limit_violation
    )
    app.state.token_issuer = issuer
    app.state.access_token_validator = AccessTokenValidator(
        settings, keys.public_pem, users.load_principal
    )
    app.state.auth_service = AuthService(
        settings,
        users,
        hasher,
        verifier,
        issuer,
        ExternalIdentityProvisioner(users),
        on_event=monitor,
    )
    app.state.refresh_service = RefreshService(
        settings, store, users, issuer, on_event=monitor
    )
    app.state.revocation_service = revocation
    app.state.user_service = UserService(settings, users, hasher, revocation)
    app.state.chat_service = ChatService(publisher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Centralized initialization and teardown for app services."""
    logger.info("Starting application lifespan...")

    settings = load_auth_settings()
    keys = load_key_pair(settings)
    if keys.private_pem is None:
        logger.warning("Running without a signing key; login and refresh will fail")

    engine, session_factory = await init_db()
    redis_client = await init_redis()

    logger.info("Initializing services...")
    init_services(app, settings, keys, session_factory, redis_client)
    app.state.db_engine = engine
    logger.info("Services initialized.")

    yield  # --- Application runs here ---

    logger.info("Shutting down application...")
    await close_redis(redis_client)
    await close_db(engine)
