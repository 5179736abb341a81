"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth/*.

Covers:
  - register: 201 with token and public user; duplicate 400; invalid body 422
  - login: 200 with token in body and httpOnly cookie; no-store caching
  - login: wrong password and unknown email return identical 400 bodies
  - login: cookie is Secure only when ENVIRONMENT=production
  - passwords keep surrounding whitespace; emails are stripped
  - me: Bearer header and cookie both accepted; Bearer wins over a bad cookie
  - logout: revokes only the presented session and clears the cookie
  - sessions: lists live sessions and flags the current one
  - missing or garbage tokens -> 401 with the error envelope
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from core.config import Settings

PW = "pw-Secret1"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _fresh_cookies(api_client):
    """The client is module-scoped; drop any cookie a previous login left behind."""
    client, _, _ = api_client
    client.cookies.clear()
    yield
    client.cookies.clear()


def _register(client: TestClient, email: str, role: str = "commuter"):
    return client.post("/api/v1/auth/register", json={"email": email, "password": PW, "role": role})


def _login(client: TestClient, email: str, password: str = PW):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegister:
    def test_register_returns_201_with_token(self, api_client) -> None:
        client, _, gateway = api_client
        resp = _register(client, "new@x.com")
        assert resp.status_code == 201
        data = resp.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["email"] == "new@x.com"
        assert data["user"]["role"] == "commuter"
        assert set(data["user"]) == {"id", "email", "role"}
        assert gateway.tokens.verify(data["token"]).user_id == data["user"]["id"]
        assert resp.headers["cache-control"] == "no-store"

    def test_registration_token_is_usable(self, api_client) -> None:
        client, _, _ = api_client
        token = _register(client, "usable@x.com", role="operator").json()["token"]
        me = client.get("/api/v1/auth/me", headers=_auth(token))
        assert me.status_code == 200
        assert me.json()["role"] == "operator"

    def test_duplicate_email_400(self, api_client) -> None:
        client, _, _ = api_client
        assert _register(client, "dup@x.com").status_code == 201
        resp = _register(client, "dup@x.com", role="admin")
        assert resp.status_code == 400
        assert resp.json() == {"error": "User already exists with this email"}

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "bad@x.com", "password": PW, "role": "superuser"},
            {"email": "not-an-email", "password": PW, "role": "commuter"},
            {"email": "short@x.com", "password": "", "role": "commuter"},
            {"email": "norole@x.com", "password": PW},
        ],
    )
    def test_invalid_body_422(self, api_client, body) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 422
        data = resp.json()
        assert data["error"] == "Request validation failed."
        assert isinstance(data["detail"], list)


class TestLogin:
    def test_login_sets_cookie_and_returns_token(self, api_client) -> None:
        client, _, gateway = api_client
        _register(client, "login@x.com")
        resp = _login(client, "login@x.com")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Login successful"
        assert data["user"]["email"] == "login@x.com"
        assert resp.cookies.get("token") == data["token"]

        set_cookie = resp.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie
        assert "max-age=3600" in set_cookie
        assert "secure" not in set_cookie
        assert resp.headers["cache-control"] == "no-store"
        assert gateway.tokens.verify(data["token"]).role == "commuter"

    def test_production_cookie_is_secure(self, api_client, monkeypatch) -> None:
        client, _, _ = api_client
        production = Settings(_env_file=None, secret_key="p" * 40, environment="production")
        monkeypatch.setattr(client.app.state, "settings", production)
        _register(client, "prod@x.com")
        resp = _login(client, "prod@x.com")
        assert resp.status_code == 200
        set_cookie = resp.headers["set-cookie"].lower()
        assert "secure" in set_cookie
        assert "httponly" in set_cookie

    def test_password_whitespace_is_significant(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/auth/register", json={"email": "  spaced@x.com ", "password": " pw pw ", "role": "commuter"}
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["email"] == "spaced@x.com"
        assert _login(client, "spaced@x.com", "pw pw").status_code == 400
        assert _login(client, "spaced@x.com", " pw pw ").status_code == 200

    def test_login_tokens_differ_from_registration(self, api_client) -> None:
        client, _, _ = api_client
        t1 = _register(client, "differ@x.com").json()["token"]
        t2 = _login(client, "differ@x.com").json()["token"]
        assert t1 != t2

    def test_wrong_password_and_unknown_email_identical(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "enum@x.com")
        wrong_pw = _login(client, "enum@x.com", "wrong-password")
        unknown = _login(client, "ghost@x.com")
        assert wrong_pw.status_code == unknown.status_code == 400
        assert wrong_pw.json() == unknown.json() == {"error": "Invalid email or password"}
        assert "token" not in wrong_pw.cookies

    def test_login_missing_fields_422(self, api_client) -> None:
        client, _, _ = api_client
        assert client.post("/api/v1/auth/login", json={"email": "x@x.com"}).status_code == 422


class TestTokenSources:
    def test_no_token_401(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Access denied. No token provided."}

    def test_garbage_token_401(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/me", headers=_auth("garbage"))
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid or expired token."}

    def test_cookie_accepted(self, api_client) -> None:
        client, tokens, _ = api_client
        client.cookies.set("token", tokens["commuter"])
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == "commuter@ntc.test"

    def test_bearer_wins_over_cookie(self, api_client) -> None:
        client, tokens, _ = api_client
        client.cookies.set("token", "garbage")
        resp = client.get("/api/v1/auth/me", headers=_auth(tokens["admin"]))
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"

    def test_me_never_exposes_hash(self, api_client) -> None:
        client, tokens, _ = api_client
        data = client.get("/api/v1/auth/me", headers=_auth(tokens["operator"])).json()
        assert set(data) == {"id", "email", "role"}


class TestLogoutAndSessions:
    def test_register_login_logout_scenario(self, api_client) -> None:
        """T1 from register, T2 from login; logging out T2 leaves T1 valid."""
        client, _, gateway = api_client
        t1 = _register(client, "scenario@x.com").json()["token"]
        t2 = _login(client, "scenario@x.com").json()["token"]
        assert client.get("/api/v1/auth/me", headers=_auth(t1)).status_code == 200
        assert client.get("/api/v1/auth/me", headers=_auth(t2)).status_code == 200

        resp = client.post("/api/v1/auth/logout", headers=_auth(t2))
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out successfully"}
        assert "token=" in resp.headers["set-cookie"]

        revoked = client.get("/api/v1/auth/me", headers=_auth(t2))
        assert revoked.status_code == 401
        assert revoked.json() == {"error": "Session has been revoked."}
        assert client.get("/api/v1/auth/me", headers=_auth(t1)).status_code == 200
        # The revoked token is still a well-formed, correctly signed JWT.
        assert gateway.tokens.verify(t2).user_id == gateway.tokens.verify(t1).user_id

    def test_logout_requires_auth(self, api_client) -> None:
        client, _, _ = api_client
        assert client.post("/api/v1/auth/logout").status_code == 401

    def test_sessions_lists_current(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "sessions@x.com")
        current = _login(client, "sessions@x.com").json()["token"]
        client.cookies.clear()
        resp = client.get("/api/v1/auth/sessions", headers=_auth(current))
        assert resp.status_code == 200
        sessions = resp.json()
        assert len(sessions) == 2
        assert [s["current"] for s in sessions].count(True) == 1
        assert all("token" not in s for s in sessions)
