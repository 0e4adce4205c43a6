from unittest.mock import patch

import pytest

from src.base.auth.passwords import PasswordHasher
from src.domain.auth.failures import CredentialFailure
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.credential_verifier import CredentialVerifier
from src.domain.services.security_monitor import SecurityEventType
from tests.conftest import create_user


@pytest.fixture
def events():
    return []


@pytest.fixture
def verifier(events, hasher):
    async def record(event):
        events.append(event)

    return CredentialVerifier(UserRepository(), hasher, on_event=record)


class TestVerify:
    async def test_valid_credentials(self, db_session, verifier):
        user = await create_user(db_session, "alice@test.com")
        result = await verifier.verify(db_session, "alice@test.com", "secret123")
        assert result.id == user.id

    async def test_email_is_case_insensitive(self, db_session, verifier):
        user = await create_user(db_session, "alice@test.com")
        result = await verifier.verify(db_session, "  Alice@TEST.com ", "secret123")
        assert result.id == user.id

    async def test_wrong_password(self, db_session, verifier):
        await create_user(db_session, "alice@test.com")
        result = await verifier.verify(db_session, "alice@test.com", "wrong-pass")
        assert result is CredentialFailure.INVALID_CREDENTIALS

    async def test_unknown_email_is_indistinguishable(self, db_session, verifier):
        await create_user(db_session, "alice@test.com")
        unknown = await verifier.verify(db_session, "nobody@test.com", "secret123")
        wrong = await verifier.verify(db_session, "alice@test.com", "wrong-pass")
        assert unknown is wrong is CredentialFailure.INVALID_CREDENTIALS

    async def test_unknown_email_still_runs_bcrypt(self, db_session, verifier):
        with patch.object(
            PasswordHasher, "dummy_verify", autospec=True
        ) as dummy_verify:
            await verifier.verify(db_session, "nobody@test.com", "secret123")
        dummy_verify.assert_called_once()

    async def test_external_only_account(self, db_session, verifier):
        await create_user(
            db_session, "google@test.com", password=None, external_id="g-123"
        )
        result = await verifier.verify(db_session, "google@test.com", "secret123")
        assert result is CredentialFailure.NO_PASSWORD
        assert result.status_code == CredentialFailure.INVALID_CREDENTIALS.status_code
        assert result.error == "invalid_credentials"
        assert result.message != CredentialFailure.INVALID_CREDENTIALS.message


class TestEvents:
    async def test_success_event(self, db_session, verifier, events):
        user = await create_user(db_session, "alice@test.com")
        await verifier.verify(db_session, "alice@test.com", "secret123")
        assert [e.type for e in events] == [SecurityEventType.LOGIN_SUCCESS]
        assert events[0].user_id == user.id

    async def test_failure_event_carries_reason(self, db_session, verifier, events):
        await verifier.verify(db_session, "nobody@test.com", "secret123")
        assert events[0].type == SecurityEventType.LOGIN_FAILURE
        assert events[0].email == "nobody@test.com"
        assert events[0].reason == "invalid_credentials"
        assert events[0].user_id is None
