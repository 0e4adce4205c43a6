import pytest
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from src.app import create_app
from src.base.core.dependencies import get_current_user
from src.base.core.lifespan import init_services
from src.base.middleware.security_headers_middleware import is_sensitive_path
from tests.conftest import bearer, create_user, login


async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "Healthy"


async def test_health_reports_dependencies(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "Healthy"
    assert body["database"] == "connected"
    assert body["redis"] == "not configured"


async def test_correlation_id_is_echoed(client):
    resp = await client.get("/health", headers={"x-correlation-id": "abc-123"})
    assert resp.headers["x-correlation-id"] == "abc-123"


async def test_correlation_id_is_generated(client):
    resp = await client.get("/health")
    assert resp.headers["x-correlation-id"]


async def test_unauthenticated_request_gets_bearer_challenge(client):
    resp = await client.get("/me")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
    assert resp.json() == {"error": "missing_token", "message": "JWT Token not found"}


async def test_unknown_route_uses_error_envelope(client, db_session):
    await create_user(db_session, "alice@test.com")
    tokens = await login(client, "alice@test.com")
    resp = await client.get("/nowhere", headers=bearer(tokens))
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


async def test_unexpected_error_returns_500(app, client, db_session):
    @app.get("/explode")
    async def explode(user=Depends(get_current_user)):
        raise RuntimeError("boom")

    await create_user(db_session, "alice@test.com")
    tokens = await login(client, "alice@test.com")

    resp = await client.get(
        "/explode", headers={**bearer(tokens), "x-correlation-id": "req-1"}
    )
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "internal_error"
    assert body["correlation_id"] == "req-1"
    assert "boom" not in resp.text


async def test_openapi_declares_bearer_scheme(client):
    resp = await client.get("/openapi.json")
    assert resp.status_code == 200
    schemes = resp.json()["components"]["securitySchemes"]
    assert any(s.get("scheme") == "bearer" for s in schemes.values())


class TestSecurityHeaders:
    async def test_hardening_headers_on_every_response(self, client):
        resp = await client.get("/health")
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-frame-options"] == "DENY"
        assert "frame-ancestors 'none'" in resp.headers["content-security-policy"]
        assert "no-store" not in resp.headers.get("cache-control", "")

    async def test_token_responses_are_not_cached(self, client, db_session):
        await create_user(db_session, "alice@test.com")
        resp = await client.post(
            "/auth/login", json={"email": "alice@test.com", "password": "secret123"}
        )
        assert resp.status_code == 200
        assert "no-store" in resp.headers["cache-control"]
        assert resp.headers["pragma"] == "no-cache"

        me = await client.get("/me", headers=bearer(resp.json()))
        assert "no-store" in me.headers["cache-control"]

    async def test_error_responses_are_hardened_too(self, client):
        resp = await client.get("/me")
        assert resp.status_code == 401
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert "no-store" in resp.headers["cache-control"]

    async def test_docs_page_keeps_its_assets(self, client):
        resp = await client.get("/docs")
        assert resp.status_code == 200
        assert "content-security-policy" not in resp.headers

    async def test_hsts_only_in_production(
        self, monkeypatch, client, auth_settings, key_pair, db_session_factory
    ):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        resp = await client.get("/health")
        assert "strict-transport-security" not in resp.headers

        monkeypatch.setenv("ENVIRONMENT", "production")
        prod_app = create_app(use_lifespan=False)
        init_services(prod_app, auth_settings, key_pair, db_session_factory)
        async with AsyncClient(
            transport=ASGITransport(app=prod_app), base_url="http://test"
        ) as prod_client:
            resp = await prod_client.get("/health")
        assert resp.headers["strict-transport-security"].startswith("max-age=31536000")


@pytest.mark.parametrize(
    ("path", "sensitive"),
    [
        ("/auth/login", True),
        ("/me", True),
        ("/me/password", True),
        ("/admin/users/1/revoke-tokens", True),
        ("/messages", False),
        ("/meetings", False),
    ],
)
def test_sensitive_paths(path, sensitive):
    assert is_sensitive_path(path) is sensitive
