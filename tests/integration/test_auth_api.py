"""HTTP tests for signup, login, logout and /me."""

import time

import bcrypt
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD
from fastapi.testclient import TestClient

from aidfusion.app import App
from aidfusion.core.modules.session.models import SESSION_COOKIE_NAME
from aidfusion.web.server import create_fastapi_app


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestSignup:
    def test_signup_starts_user_session(self, client):
        """Signup returns a user-role account and sets the session cookie."""
        response = client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "a@b.com"
        assert user["role"] == "user"

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
        assert "HttpOnly" in set_cookie
        assert "Max-Age=604800" in set_cookie
        assert "SameSite=lax" in set_cookie or "samesite=lax" in set_cookie.lower()
        assert "Path=/" in set_cookie

    def test_signup_duplicate_email(self, client):
        """Registering an address twice is a conflict."""
        client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})
        response = client.post("/api/v1/auth/signup", json={"email": " A@B.com ", "password": "secret2"})
        assert response.status_code == 409
        assert response.json()["type"] == "conflict"

    def test_signup_validation_messages(self, client):
        """Bad email or short password return 400 with a readable message."""
        response = client.post("/api/v1/auth/signup", json={"email": "nope", "password": "secret1"})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide a valid email address."

        response = client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "123"})
        assert response.status_code == 400
        assert "at least 6" in response.json()["message"]


class TestLogin:
    def test_login_success(self, client):
        """Login is case-insensitive on email and returns a token."""
        client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})
        response = client.post("/api/v1/auth/login", json={"email": "A@b.com", "password": "secret1"})
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "a@b.com"
        assert response.json()["token"]

    def test_login_failures_are_indistinguishable(self, client):
        """Wrong password and unknown email give identical responses."""
        client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})
        wrong_password = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "wrong1"})
        unknown_email = client.post("/api/v1/auth/login", json={"email": "x@b.com", "password": "secret1"})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {
            "message": "Invalid credentials.",
            "type": "invalid_credentials",
        }


class TestMe:
    def test_anonymous(self, client):
        """No session yields user null."""
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json() == {"user": None}

    def test_garbage_token_is_anonymous(self, client):
        """An unparseable token is treated as anonymous."""
        response = client.get("/api/v1/auth/me", headers=bearer("garbage"))
        assert response.json() == {"user": None}

    def test_cookie_session(self, client):
        """The cookie set at signup authenticates later requests."""
        client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})
        response = client.get("/api/v1/auth/me")
        assert response.json()["user"]["email"] == "a@b.com"

    def test_bearer_session(self, client):
        """A Bearer token authenticates without a cookie."""
        token = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}).json()["token"]
        client.cookies.clear()
        response = client.get("/api/v1/auth/me", headers=bearer(token))
        assert response.json()["user"]["role"] == "admin"


class TestLogout:
    def test_logout_clears_cookie(self, client):
        """Logout expires the cookie so the client becomes anonymous."""
        client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})
        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 204
        assert "Max-Age=0" in response.headers["set-cookie"]
        assert client.get("/api/v1/auth/me").json() == {"user": None}

    def test_token_outlives_logout(self, client):
        """No server-side revocation: a copied token keeps working until it expires."""
        token = client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"}).json()["token"]
        client.post("/api/v1/auth/logout")
        response = client.get("/api/v1/auth/me", headers=bearer(token))
        assert response.json()["user"]["email"] == "a@b.com"


def test_health(client):
    """Health check responds without a session."""
    assert client.get("/health").json() == {"status": "healthy"}


def test_hashing_timeout_is_service_unavailable(config, pool, monkeypatch):
    """A stalled password hash returns 503 and creates no account."""
    slow_config = config.model_copy(update={"password_hash_timeout": 0.01, "admin_email": None, "admin_password": None})
    with TestClient(create_fastapi_app(App(slow_config, pool), slow_config)) as client:
        monkeypatch.setattr(bcrypt, "hashpw", lambda password, salt: time.sleep(0.3) or b"")
        response = client.post("/api/v1/auth/signup", json={"email": "a@b.com", "password": "secret1"})

    assert response.status_code == 503
    assert response.json() == {"message": "Service temporarily unavailable.", "type": "service_unavailable"}
    assert pool.database.get_collection("users").documents == []
