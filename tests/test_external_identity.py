import pytest

from src.domain.auth.failures import CredentialFailure, RegistrationFailure
from src.domain.repositories.user_repository import UserRepository
from src.domain.services.auth_service import AuthResult
from src.domain.services.external_identity_service import (
    ExternalIdentityProvisioner,
    ExternalProfile,
)
from tests.conftest import create_user


@pytest.fixture
def provisioner():
    return ExternalIdentityProvisioner(UserRepository())


class TestProvision:
    async def test_creates_external_only_account(self, provisioner, db_session):
        user = await provisioner.provision(
            db_session,
            ExternalProfile(subject="g-1", email="New@Test.com", name="New"),
        )
        assert user.id is not None
        assert user.email == "new@test.com"
        assert user.external_id == "g-1"
        assert user.has_password is False

    async def test_links_existing_password_account(self, provisioner, db_session):
        existing = await create_user(db_session, "alice@test.com")
        user = await provisioner.provision(
            db_session, ExternalProfile(subject="g-1", email="alice@test.com")
        )
        assert user.id == existing.id
        assert user.external_id == "g-1"
        assert user.has_password is True

    async def test_same_subject_refreshes_profile(self, provisioner, db_session):
        await create_user(
            db_session, "alice@test.com", None, name="Alice", external_id="g-1"
        )
        user = await provisioner.provision(
            db_session,
            ExternalProfile(
                subject="g-1",
                email="alice@test.com",
                name="Alice Liddell",
                picture="https://img.test/a.png",
            ),
        )
        assert user.name == "Alice Liddell"
        assert user.picture == "https://img.test/a.png"

    async def test_different_subject_conflicts(self, provisioner, db_session):
        await create_user(db_session, "alice@test.com", external_id="g-1")
        result = await provisioner.provision(
            db_session, ExternalProfile(subject="g-2", email="alice@test.com")
        )
        assert result is RegistrationFailure.IDENTITY_CONFLICT
        assert result.status_code == 409

    async def test_finds_subject_under_old_email(self, provisioner, db_session):
        existing = await create_user(
            db_session, "old@test.com", None, external_id="g-1"
        )
        user = await provisioner.provision(
            db_session, ExternalProfile(subject="g-1", email="new@test.com")
        )
        assert user.id == existing.id


class TestLoginExternal:
    async def test_issues_tokens(self, app, db_session):
        result = await app.state.auth_service.login_external(
            db_session, ExternalProfile(subject="g-1", email="bob@test.com")
        )
        assert isinstance(result, AuthResult)
        assert result.tokens.refresh.value
        assert result.user.email == "bob@test.com"

    async def test_external_only_account_cannot_use_password(
        self, app, client, db_session
    ):
        await app.state.auth_service.login_external(
            db_session, ExternalProfile(subject="g-1", email="bob@test.com")
        )
        result = await app.state.auth_service.login(
            db_session, "bob@test.com", "anything"
        )
        assert result is CredentialFailure.NO_PASSWORD

        resp = await client.get("/auth/status")
        assert resp.json()["auth_methods"]["google_sso"] is False
