"""
End-to-end tests for the sign-in flow against a faked REST API.

The browser session only ever holds the bearer token; identity and role are
re-confirmed through /auth/me on every request that needs them.
"""

from feedbacktool_app.core.api_client import ApiError
from feedbacktool_app.core.session import TOKEN_KEY, USER_KEY

from .fakes import ADMIN_TOKEN, PROFILES


def post_json(client, url, data):
    return client.post(url, data=data, content_type="application/json")


def test_healthcheck(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


class TestLogin:
    def test_login_stores_token_and_returns_profile(self, client, remote_api):
        remote_api.route(
            "POST",
            "/auth/login",
            {"success": True, "message": "Login successful", "data": {"token": ADMIN_TOKEN}},
        )
        r = post_json(client, "/auth/login", {"email": "admin@example.com", "password": "pw123456"})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["user"]["role"] == "ADMIN"
        assert client.session[TOKEN_KEY] == ADMIN_TOKEN

        me = client.get("/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["email"] == PROFILES[ADMIN_TOKEN]["email"]

    def test_password_never_forwarded_elsewhere(self, client, remote_api):
        remote_api.route("POST", "/auth/login", {"token": ADMIN_TOKEN})
        post_json(client, "/auth/login", {"email": "admin@example.com", "password": "pw123456"})
        assert remote_api.calls_to("POST", "/auth/login") == [
            {"email": "admin@example.com", "password": "pw123456"}
        ]
        assert all(data is None for m, p, data in remote_api.calls if p == "/auth/me")

    def test_invalid_payload(self, client, remote_api):
        r = post_json(client, "/auth/login", {"email": "not-an-email"})
        assert r.status_code == 400
        assert set(r.json()["fields"]) == {"email", "password"}
        assert remote_api.calls == []

    def test_rejected_credentials(self, client, remote_api):
        remote_api.route("POST", "/auth/login", ApiError("Invalid email or password", status=401))
        r = post_json(client, "/auth/login", {"email": "a@example.com", "password": "wrong"})
        assert r.status_code == 401
        assert r.json()["error"] == "Invalid email or password"
        assert TOKEN_KEY not in client.session


class TestRegister:
    def test_register_creates_session(self, client, remote_api):
        remote_api.route("POST", "/auth/register", {"token": "user-token"})
        r = post_json(
            client,
            "/auth/register",
            {"name": "Member", "email": "member@example.com", "password": "secret1"},
        )
        assert r.status_code == 201
        assert r.json()["message"] == "Registration successful"
        assert r.json()["user"]["role"] == "USER"

    def test_short_password(self, client, remote_api):
        r = post_json(
            client, "/auth/register", {"name": "M", "email": "m@example.com", "password": "123"}
        )
        assert r.status_code == 400
        assert "password" in r.json()["fields"]

    def test_server_field_errors(self, client, remote_api):
        remote_api.route(
            "POST",
            "/auth/register",
            ApiError("Validation failed", status=400, fields={"email": "Email already registered"}),
        )
        r = post_json(
            client,
            "/auth/register",
            {"name": "M", "email": "m@example.com", "password": "secret1"},
        )
        assert r.status_code == 400
        assert r.json()["fields"] == {"email": "Email already registered"}


class TestSession:
    def test_me_anonymous(self, client, remote_api):
        assert client.get("/auth/me").status_code == 401

    def test_stale_token_is_discarded(self, client, remote_api):
        session = client.session
        session[TOKEN_KEY] = "revoked-token"
        session[USER_KEY] = '{"role": "ADMIN"}'
        session.save()

        r = client.get("/auth/me")
        assert r.status_code == 401
        assert TOKEN_KEY not in client.session
        assert USER_KEY not in client.session

    def test_logout_clears_even_if_server_fails(self, admin_client, remote_api):
        remote_api.route("POST", "/auth/logout", ApiError("Unable to connect", error_type="network"))
        r = admin_client.post("/auth/logout")
        assert r.status_code == 200
        assert TOKEN_KEY not in admin_client.session
        assert admin_client.get("/auth/me").status_code == 401

    def test_profile_verified_once_per_request(self, admin_client, remote_api):
        remote_api.route("GET", "/surveys/admin", [])
        remote_api.route("GET", "/analytics/recent-responses", [])
        r = admin_client.get("/surveys/admin/dashboard")
        assert r.status_code == 200
        assert len(remote_api.calls_to("GET", "/auth/me")) == 1

    def test_public_requests_skip_verification(self, admin_client, remote_api):
        assert admin_client.get("/health").status_code == 200
        assert remote_api.calls_to("GET", "/auth/me") == []
