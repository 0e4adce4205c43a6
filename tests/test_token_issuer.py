import datetime
import hashlib

import pytest
from jose import jwt
from sqlalchemy import select

from src.domain.models.entities.refresh_token import RefreshToken
from src.domain.repositories.refresh_token_store import RefreshTokenStore, hash_token
from src.domain.services.token_issuer import TokenIssuer
from tests.conftest import create_user

NOW = datetime.datetime(2026, 1, 1, tzinfo=datetime.UTC)


@pytest.fixture
def issuer(auth_settings, key_pair):
    return TokenIssuer(
        auth_settings, key_pair.private_pem, RefreshTokenStore(), clock=lambda: NOW
    )


class TestAccessToken:
    def test_verifiable_with_public_key(self, issuer, key_pair, auth_settings):
        token = issuer.issue_access_token(5)
        claims = jwt.decode(
            token.value,
            key_pair.public_pem,
            algorithms=["RS256"],
            audience=auth_settings.audience,
            issuer=auth_settings.issuer,
            options={"verify_exp": False},
        )
        assert claims["sub"] == "5"
        assert token.expires_at == NOW + datetime.timedelta(
            seconds=auth_settings.access_token_ttl
        )

    def test_requires_private_key(self, auth_settings):
        verify_only = TokenIssuer(auth_settings, None, RefreshTokenStore())
        assert verify_only.can_sign is False
        with pytest.raises(RuntimeError):
            verify_only.issue_access_token(5)


class TestRefreshToken:
    async def test_random_and_long_enough(self, db_session, issuer):
        user = await create_user(db_session, "alice@test.com")
        first = await issuer.issue_refresh_token(db_session, user.id)
        second = await issuer.issue_refresh_token(db_session, user.id)
        assert first.value != second.value
        # 64 random bytes, hex encoded
        assert len(first.value) == 128
        int(first.value, 16)

    async def test_expiry_uses_refresh_ttl(self, db_session, issuer, auth_settings):
        user = await create_user(db_session, "alice@test.com")
        token = await issuer.issue_refresh_token(db_session, user.id)
        assert token.expires_at == NOW + datetime.timedelta(
            seconds=auth_settings.refresh_token_ttl
        )

    async def test_persisted_as_hash_only(self, db_session, issuer):
        user = await create_user(db_session, "alice@test.com")
        token = await issuer.issue_refresh_token(db_session, user.id)

        rows = (await db_session.execute(select(RefreshToken))).scalars().all()
        assert len(rows) == 1
        assert rows[0].token_hash == hashlib.sha256(token.value.encode()).hexdigest()
        assert rows[0].token_hash != token.value
        assert rows[0].user_id == user.id

    async def test_retries_on_collision(self, db_session, issuer, monkeypatch):
        user = await create_user(db_session, "alice@test.com")
        existing = await issuer.issue_refresh_token(db_session, user.id)

        values = iter([existing.value, "f" * 128])
        monkeypatch.setattr(issuer, "_new_refresh_value", lambda: next(values))

        token = await issuer.issue_refresh_token(db_session, user.id)
        assert token.value == "f" * 128
        assert await RefreshTokenStore().get(db_session, "f" * 128) is not None

    async def test_gives_up_after_repeated_collisions(
        self, db_session, issuer, monkeypatch
    ):
        user = await create_user(db_session, "alice@test.com")
        existing = await issuer.issue_refresh_token(db_session, user.id)
        monkeypatch.setattr(issuer, "_new_refresh_value", lambda: existing.value)
        with pytest.raises(RuntimeError, match="unique refresh token"):
            await issuer.issue_refresh_token(db_session, user.id)

    async def test_pair(self, db_session, issuer):
        user = await create_user(db_session, "alice@test.com")
        pair = await issuer.issue_pair(db_session, user.id)
        assert jwt.get_unverified_claims(pair.access.value)["sub"] == str(user.id)
        row = await RefreshTokenStore().get(db_session, pair.refresh.value)
        assert row.token_hash == hash_token(pair.refresh.value)
