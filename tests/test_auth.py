"""
Tests for registration, login and request authentication.
"""

from tests.conftest import register


class TestRegisterAndLogin:
    """Account creation and credential checks."""

    def test_register_returns_token(self, client):
        res = client.post(
            "/api/auth/register",
            json={"name": "Kiri", "email": "Kiri@Example.com", "password": "secret1"},
        )

        assert res.status_code == 201
        body = res.get_json()
        assert body["success"] is True
        assert body["token"]

    def test_register_rejects_duplicate_email(self, client):
        register(client, "dup@example.com")
        res = client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "DUP@example.com", "password": "secret1"},
        )

        assert res.status_code == 400
        assert res.get_json() == {"success": False, "error": "Email already registered."}

    def test_register_requires_fields(self, client):
        res = client.post("/api/auth/register", json={"email": "a@b.com", "password": "x"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Name is required."

    def test_register_rejects_non_object_body(self, client):
        res = client.post("/api/auth/register", json=["a@b.com", "secret1"])

        assert res.status_code == 400
        assert res.get_json() == {"success": False, "error": "Invalid request body"}

    def test_login_with_valid_credentials(self, client):
        register(client, "login@example.com", password="hunter22")
        res = client.post("/api/auth/login", json={"email": "login@example.com", "password": "hunter22"})

        assert res.status_code == 200
        assert res.get_json()["token"]

    def test_login_with_wrong_password(self, client):
        register(client, "login@example.com", password="hunter22")
        res = client.post("/api/auth/login", json={"email": "login@example.com", "password": "nope"})

        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid credentials"

    def test_login_requires_email_and_password(self, client):
        res = client.post("/api/auth/login", json={"email": "login@example.com"})
        assert res.status_code == 400


class TestAuthenticatedRequests:
    """Bearer tokens, cookie sessions and profile updates."""

    def test_me_with_bearer_token(self, app):
        headers = register(app.test_client(), "me@example.com", name="Me")
        res = app.test_client().get("/api/auth/me", headers=headers)

        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["email"] == "me@example.com"
        assert data["name"] == "Me"

    def test_me_with_session_cookie(self, client):
        register(client, "cookie@example.com")
        res = client.get("/api/auth/me")

        assert res.status_code == 200
        assert res.get_json()["data"]["email"] == "cookie@example.com"

    def test_logout_clears_session(self, client):
        register(client, "cookie@example.com")
        client.get("/api/auth/logout")

        assert client.get("/api/auth/me").status_code == 401

    def test_rejects_missing_and_bad_tokens(self, client):
        assert client.get("/api/jobs").status_code == 401
        res = client.get("/api/jobs", headers={"Authorization": "Bearer not-a-token"})
        assert res.status_code == 401
        assert res.get_json() == {"success": False, "error": "Not authorized to access this route"}

    def test_token_signed_with_other_key_is_rejected(self, app, tmp_path):
        from volunteer_tracker import create_app

        other = create_app({"TESTING": True, "SECRET_KEY": "other", "DATABASE": str(tmp_path / "other.db")})
        headers = register(other.test_client(), "x@example.com")

        assert app.test_client().get("/api/auth/me", headers=headers).status_code == 401

    def test_update_profile(self, client, auth_headers):
        res = client.put("/api/auth/profile", json={"name": "Renamed"}, headers=auth_headers)

        assert res.status_code == 200
        assert res.get_json()["data"]["name"] == "Renamed"
        assert res.get_json()["data"]["email"] == "volunteer@example.com"

    def test_update_profile_rejects_taken_email(self, client, auth_headers, other_headers):
        res = client.put("/api/auth/profile", json={"email": "someone.else@example.com"}, headers=auth_headers)
        assert res.status_code == 400
