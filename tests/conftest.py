from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import src.domain.models.entities  # noqa: F401
from src.app import create_app
from src.base.auth.keys import KeyPair, generate_key_pair
from src.base.auth.passwords import PasswordHasher
from src.base.config.database import Base
from src.base.config.settings import AuthSettings
from src.base.core.lifespan import init_services
from src.base.models.role import Role
from src.domain.models.entities.user import User

TEST_BCRYPT_ROUNDS = 4


class RecordingPublisher:
    """MessagePublisher that keeps what it was given."""

    def __init__(self):
        self.published: list[tuple[str, dict[str, Any]]] = []

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        self.published.append((topic, payload))


async def create_user(
    session: AsyncSession,
    email: str,
    password: str | None = "secret123",
    *,
    name: str | None = None,
    external_id: str | None = None,
    admin: bool = False,
) -> User:
    hasher = PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)
    roles = [Role.USER.value] + ([Role.ADMIN.value] if admin else [])
    user = User(
        email=email.lower(),
        password_hash=hasher.hash(password) if password is not None else None,
        name=name or email.split("@")[0],
        external_id=external_id,
        roles=roles,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://", connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_key_pair() -> KeyPair:
    return generate_key_pair()


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def app(db_session_factory, auth_settings, key_pair, publisher):
    test_app = create_app(use_lifespan=False)
    init_services(
        test_app, auth_settings, key_pair, db_session_factory, publisher=publisher
    )
    return test_app


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


async def login(client: AsyncClient, email: str, password: str = "secret123") -> dict:
    response = await client.post(
        "/auth/login", json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return response.json()


def bearer(tokens: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}
