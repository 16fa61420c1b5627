"""
tests/test_api_auth.py -- Integration tests for /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> auth dependency injection
-> AuthenticationService / TokenService -> error envelope rendering.

Coverage:
  - register: 201 with default role, 403 for SUPER_ADMIN, 409 on duplicates,
    422 on bad input, 403 when self-registration is disabled
  - login: 200 with no-store token, identical 401 for unknown user / bad password
  - me / token-info / logout / refresh / change-password round trips
  - invalid tokens: one 401 token_invalid envelope, reason never leaked

Fixtures used (from conftest.py):
  - api_client: ApiContext with one seeded user per role, password "correct-horse-9"
"""

from __future__ import annotations

from auth.roles import Role

SEED_PASSWORD = "correct-horse-9"


def _login(api_client, username: str, password: str = SEED_PASSWORD) -> str:
    resp = api_client.client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestRegister:
    def test_register_default_role(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "newbie", "email": "newbie@campus.example", "password": "long-enough-1"},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["username"] == "newbie"
        assert data["role"] == "STUDENT"
        assert "password_hash" not in data
        assert "password" not in data

    def test_register_teacher(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={
                "username": "prof",
                "email": "prof@campus.example",
                "password": "long-enough-1",
                "name": "Grace",
                "surname": "Hopper",
                "role": "TEACHER",
            },
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["role"] == "TEACHER"
        assert resp.json()["name"] == "Grace"

    def test_register_super_admin_is_forbidden(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={
                "username": "sneaky",
                "email": "sneaky@campus.example",
                "password": "long-enough-1",
                "role": "SUPER_ADMIN",
            },
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "privilege_escalation"
        assert not api_client.user_store.exists_by_username("sneaky")

    def test_register_duplicate_username(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "student", "email": "fresh@campus.example", "password": "long-enough-1"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_register_short_password_is_422(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "shorty", "email": "shorty@campus.example", "password": "short"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert "password" in resp.json()["error"]["detail"]

    def test_register_over_72_bytes_is_422(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "longpw", "email": "longpw@campus.example", "password": "é" * 40},
        )
        assert resp.status_code == 422

    def test_register_unknown_role_is_422(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "odd", "email": "odd@campus.example", "password": "long-enough-1", "role": "DEAN"},
        )
        assert resp.status_code == 422

    def test_register_disabled(self, api_client) -> None:
        from api.main import app

        original = app.state.settings
        app.state.settings = original.model_copy(update={"self_registration_enabled": False})
        try:
            resp = api_client.client.post(
                "/api/v1/auth/register",
                json={"username": "blocked", "email": "blocked@campus.example", "password": "long-enough-1"},
            )
        finally:
            app.state.settings = original
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "registration_disabled"


class TestLogin:
    def test_login_success(self, api_client) -> None:
        resp = api_client.client.post("/api/v1/auth/login", json={"username": "teacher", "password": SEED_PASSWORD})
        assert resp.status_code == 200, resp.text
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == api_client.token_service.lifetime_seconds
        claims = api_client.token_service.extract_claims(data["access_token"])
        assert claims.user_id == api_client.user_ids["teacher"]
        assert claims.role == Role.TEACHER.value

    def test_unknown_user_and_wrong_password_look_the_same(self, api_client) -> None:
        unknown = api_client.client.post("/api/v1/auth/login", json={"username": "ghost", "password": SEED_PASSWORD})
        wrong = api_client.client.post("/api/v1/auth/login", json={"username": "student", "password": "nope-nope"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["error"]["code"] == "bad_credentials"


class TestTokenLifecycle:
    def test_me(self, api_client) -> None:
        resp = api_client.client.get("/api/v1/auth/me", headers=api_client.headers("admin"))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": api_client.user_ids["admin"], "username": "admin", "role": "ADMIN"}

    def test_me_without_token(self, api_client) -> None:
        resp = api_client.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_me_with_wrong_scheme(self, api_client) -> None:
        resp = api_client.client.get("/api/v1/auth/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.status_code == 401

    def test_me_with_lowercase_scheme(self, api_client) -> None:
        token = api_client.tokens["teacher"]
        resp = api_client.client.get("/api/v1/auth/me", headers={"Authorization": f"bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["username"] == "teacher"

    def test_logout_then_token_is_dead(self, api_client) -> None:
        token = _login(api_client, "student")
        resp = api_client.client.post("/api/v1/auth/logout", headers=_bearer(token))
        assert resp.status_code == 200
        me = api_client.client.get("/api/v1/auth/me", headers=_bearer(token))
        assert me.status_code == 401
        assert me.json()["error"]["code"] == "token_invalid"

    def test_logout_is_idempotent(self, api_client) -> None:
        token = _login(api_client, "student")
        assert api_client.client.post("/api/v1/auth/logout", headers=_bearer(token)).status_code == 200
        assert api_client.client.post("/api/v1/auth/logout", headers=_bearer(token)).status_code == 200
        assert api_client.client.post("/api/v1/auth/logout", headers=_bearer("garbage")).status_code == 200

    def test_refresh_rotates(self, api_client) -> None:
        old = _login(api_client, "teacher")
        resp = api_client.client.post("/api/v1/auth/refresh", headers=_bearer(old))
        assert resp.status_code == 200, resp.text
        assert resp.headers["cache-control"] == "no-store"
        new = resp.json()["access_token"]
        assert new != old

        assert api_client.client.get("/api/v1/auth/me", headers=_bearer(new)).status_code == 200
        assert api_client.client.get("/api/v1/auth/me", headers=_bearer(old)).status_code == 401

        replay = api_client.client.post("/api/v1/auth/refresh", headers=_bearer(old))
        assert replay.status_code == 401
        assert replay.json()["error"]["message"] == "Cannot refresh an invalid token."

    def test_token_info(self, api_client) -> None:
        token = _login(api_client, "student")
        resp = api_client.client.get("/api/v1/auth/token-info", headers=_bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["access_token"] == token
        assert 0 < data["expires_in"] <= api_client.token_service.lifetime_seconds

    def test_invalid_token_reason_not_leaked(self, api_client) -> None:
        token = _login(api_client, "student")
        api_client.client.post("/api/v1/auth/logout", headers=_bearer(token))
        revoked = api_client.client.get("/api/v1/auth/me", headers=_bearer(token)).json()
        garbage = api_client.client.get("/api/v1/auth/me", headers=_bearer("a.b.c")).json()
        assert revoked == garbage
        assert "revoked" not in str(revoked).lower()


class TestChangePassword:
    def test_change_password_round_trip(self, api_client) -> None:
        api_client.client.post(
            "/api/v1/auth/register",
            json={"username": "mover", "email": "mover@campus.example", "password": "first-pass-1"},
        )
        token = _login(api_client, "mover", "first-pass-1")
        resp = api_client.client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "first-pass-1", "new_password": "second-pass-2"},
            headers=_bearer(token),
        )
        assert resp.status_code == 200, resp.text
        _login(api_client, "mover", "second-pass-2")

    def test_wrong_current_password(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "not-it", "new_password": "second-pass-2"},
            headers=api_client.headers("student"),
        )
        assert resp.status_code == 401
