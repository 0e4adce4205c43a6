from tests.conftest import bearer, create_user, login


class TestProfile:
    async def test_get_me(self, client, db_session):
        user = await create_user(db_session, "alice@test.com", name="Alice")
        tokens = await login(client, "alice@test.com")

        resp = await client.get("/me", headers=bearer(tokens))
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == user.id
        assert body["name"] == "Alice"
        assert body["has_password"] is True
        assert body["has_external_identity"] is False
        assert "password_hash" not in body

    async def test_update_me(self, client, db_session):
        await create_user(db_session, "alice@test.com", name="Alice")
        tokens = await login(client, "alice@test.com")

        resp = await client.put(
            "/me",
            json={"name": "Alice B.", "picture": "https://img.test/a.png"},
            headers=bearer(tokens),
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Alice B."
        assert resp.json()["picture"] == "https://img.test/a.png"

    async def test_update_me_partial(self, client, db_session):
        await create_user(db_session, "alice@test.com", name="Alice")
        tokens = await login(client, "alice@test.com")

        resp = await client.put(
            "/me", json={"picture": "https://img.test/a.png"}, headers=bearer(tokens)
        )
        assert resp.json()["name"] == "Alice"


class TestChangePassword:
    async def test_success_revokes_sessions(self, client, db_session):
        await create_user(db_session, "alice@test.com")
        tokens = await login(client, "alice@test.com")

        resp = await client.post(
            "/me/password",
            json={"current_password": "secret123", "new_password": "better-secret"},
            headers=bearer(tokens),
        )
        assert resp.status_code == 204

        refresh = await client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refresh.status_code == 401

        await login(client, "alice@test.com", "better-secret")

    async def test_wrong_current_password(self, client, db_session):
        await create_user(db_session, "alice@test.com")
        tokens = await login(client, "alice@test.com")

        resp = await client.post(
            "/me/password",
            json={"current_password": "nope-nope", "new_password": "better-secret"},
            headers=bearer(tokens),
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_password"

    async def test_weak_new_password(self, client, db_session):
        await create_user(db_session, "alice@test.com")
        tokens = await login(client, "alice@test.com")

        resp = await client.post(
            "/me/password",
            json={"current_password": "secret123", "new_password": "short"},
            headers=bearer(tokens),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "weak_password"

    async def test_external_only_account(self, app, client, db_session):
        user = await create_user(
            db_session, "sso@test.com", None, external_id="g-1"
        )
        access = app.state.token_issuer.issue_access_token(user.id)

        resp = await client.post(
            "/me/password",
            json={"current_password": "anything", "new_password": "better-secret"},
            headers={"Authorization": f"Bearer {access.value}"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "no_password"


class TestAdminRevoke:
    async def test_requires_global_admin(self, client, db_session):
        alice = await create_user(db_session, "alice@test.com")
        tokens = await login(client, "alice@test.com")

        resp = await client.post(
            f"/admin/users/{alice.id}/revoke-tokens", headers=bearer(tokens)
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    async def test_revokes_every_session(self, client, db_session):
        alice = await create_user(db_session, "alice@test.com")
        await create_user(db_session, "admin@test.com", admin=True)
        first = await login(client, "alice@test.com")
        await login(client, "alice@test.com")
        admin_tokens = await login(client, "admin@test.com")

        resp = await client.post(
            f"/admin/users/{alice.id}/revoke-tokens", headers=bearer(admin_tokens)
        )
        assert resp.status_code == 200
        assert resp.json() == {"revoked": 2}

        refresh = await client.post(
            "/auth/refresh", json={"refresh_token": first["refresh_token"]}
        )
        assert refresh.status_code == 401
        # Access tokens stay valid until they expire.
        assert (await client.get("/me", headers=bearer(first))).status_code == 200

    async def test_unknown_user(self, client, db_session):
        await create_user(db_session, "admin@test.com", admin=True)
        admin_tokens = await login(client, "admin@test.com")
        resp = await client.post(
            "/admin/users/9999/revoke-tokens", headers=bearer(admin_tokens)
        )
        assert resp.status_code == 404
