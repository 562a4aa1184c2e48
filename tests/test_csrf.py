"""Tests for signed double-submit CSRF tokens."""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from folioguard.app.api import csrf_router
from folioguard.app.core.config import GuardrailConfig
from folioguard.app.core.security import TokenSigner
from folioguard.app.main import create_app
from folioguard.app.middleware.csrf import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    verify_csrf_token,
)
from folioguard.app.services.guardrail import RequestGuardrail


@pytest.fixture
def client():
    app = FastAPI()
    app.state.token_signer = TokenSigner("csrf-test-secret")
    app.include_router(csrf_router)

    @app.api_route("/check", methods=["GET", "POST"])
    async def check(request: Request):
        return {"valid": await verify_csrf_token(request)}

    # Secure cookies are only sent back over https
    return TestClient(app, base_url="https://testserver")


def fetch_token(client) -> str:
    resp = client.get("/api/csrf-token")
    assert resp.status_code == 200
    return resp.json()["csrfToken"]


class TestCsrfTokenEndpoint:
    def test_issues_token_and_cookie(self, client):
        resp = client.get("/api/csrf-token")

        token = resp.json()["csrfToken"]
        assert len(token) == 64
        assert resp.headers["Cache-Control"] == "no-store"

        cookie = resp.headers["set-cookie"].lower()
        assert cookie.startswith(f"{CSRF_COOKIE_NAME}=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "secure" in cookie

    def test_cookie_holds_signed_token(self, client):
        token = fetch_token(client)

        signed = client.cookies.get(CSRF_COOKIE_NAME)
        assert signed.startswith(f"{token}.")
        assert len(signed.split(".")) == 3


class TestVerifyCsrfToken:
    def test_header_token_matches(self, client):
        token = fetch_token(client)

        resp = client.post("/check", headers={CSRF_HEADER_NAME: token})

        assert resp.json() == {"valid": True}

    def test_body_token_matches(self, client):
        token = fetch_token(client)

        resp = client.post("/check", json={"_csrf": token, "name": "Jane"})

        assert resp.json() == {"valid": True}

    def test_missing_token(self, client):
        fetch_token(client)

        assert client.post("/check", json={"name": "Jane"}).json() == {"valid": False}

    def test_missing_cookie(self, client):
        token = fetch_token(client)
        client.cookies.clear()

        resp = client.post("/check", headers={CSRF_HEADER_NAME: token})

        assert resp.json() == {"valid": False}

    def test_mismatched_token(self, client):
        fetch_token(client)

        resp = client.post("/check", headers={CSRF_HEADER_NAME: "0" * 64})

        assert resp.json() == {"valid": False}

    def test_cookie_signed_with_other_secret(self, client):
        forged = TokenSigner("attacker-secret").sign("a" * 64, 32_503_680_000_000)
        client.cookies.set(CSRF_COOKIE_NAME, forged)

        resp = client.post("/check", headers={CSRF_HEADER_NAME: "a" * 64})

        assert resp.json() == {"valid": False}

    def test_expired_cookie(self, client):
        expired = TokenSigner("csrf-test-secret").sign("a" * 64, 1_000)
        client.cookies.set(CSRF_COOKIE_NAME, expired)

        resp = client.post("/check", headers={CSRF_HEADER_NAME: "a" * 64})

        assert resp.json() == {"valid": False}

    def test_safe_methods_pass(self, client):
        assert client.get("/check").json() == {"valid": True}


class TestApplicationSigner:
    """The application signs cookies with its guardrail's configured secret."""

    def test_cookie_signed_with_config_secret(self):
        guardrail = RequestGuardrail(config=GuardrailConfig(hmac_secret="configured-secret"))
        client = TestClient(create_app(guardrail), base_url="https://testserver")

        fetch_token(client)
        signed = client.cookies.get(CSRF_COOKIE_NAME)

        assert TokenSigner("configured-secret").verify(signed).valid is True
        assert TokenSigner("another-secret").verify(signed).valid is False
