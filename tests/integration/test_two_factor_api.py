"""HTTP tests for 2FA setup, confirmation and the second factor at login."""

import pyotp
import pytest

CREDENTIALS = {"email": "a@b.com", "password": "secret1"}


@pytest.fixture
def auth_headers(client):
    token = client.post("/api/v1/auth/signup", json=CREDENTIALS).json()["token"]
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def setup_material(client, auth_headers):
    response = client.get("/api/v1/auth/2fa/setup", headers=auth_headers)
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def enabled(client, auth_headers, setup_material):
    code = pyotp.TOTP(setup_material["secret"]).now()
    response = client.post("/api/v1/auth/2fa/verify", json={"code": code}, headers=auth_headers)
    assert response.status_code == 200
    return setup_material


class TestSetup:
    def test_setup_requires_session(self, client):
        """Setup without a session is unauthenticated."""
        response = client.get("/api/v1/auth/2fa/setup")
        assert response.status_code == 401
        assert response.json()["type"] == "authentication_error"

    def test_setup_material(self, setup_material):
        """Setup returns eight backup codes, a PNG QR code and an otpauth URI."""
        assert len(setup_material["backup_codes"]) == 8
        assert setup_material["qr_code"].startswith("data:image/png;base64,")
        assert setup_material["provisioning_uri"].startswith("otpauth://totp/")
        assert "issuer=AidFusion" in setup_material["provisioning_uri"]

    def test_status_progression(self, client, auth_headers):
        """Status moves from unstarted to awaiting verification to enabled."""
        assert client.get("/api/v1/auth/2fa/status", headers=auth_headers).json()["status"] == "unstarted"
        material = client.get("/api/v1/auth/2fa/setup", headers=auth_headers).json()
        assert client.get("/api/v1/auth/2fa/status", headers=auth_headers).json()["status"] == "awaiting_verification"

        code = pyotp.TOTP(material["secret"]).now()
        assert client.post("/api/v1/auth/2fa/verify", json={"code": code}, headers=auth_headers).json() == {"enabled": True}
        status = client.get("/api/v1/auth/2fa/status", headers=auth_headers).json()
        assert status == {"status": "enabled", "method": "totp", "backup_codes_remaining": 8}

    def test_verify_ignores_client_supplied_secret(self, client, auth_headers, setup_material):
        """A secret sent by the client is never used for verification."""
        own_secret = pyotp.random_base32()
        response = client.post(
            "/api/v1/auth/2fa/verify",
            json={"code": pyotp.TOTP(own_secret).now(), "secret": own_secret},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_verify_before_setup(self, client, auth_headers):
        """Verifying before setup is not found."""
        response = client.post("/api/v1/auth/2fa/verify", json={"code": "123456"}, headers=auth_headers)
        assert response.status_code == 404

    def test_setup_after_enabled_is_rejected(self, client, auth_headers, enabled):
        """Setup cannot restart once 2FA is enabled."""
        response = client.get("/api/v1/auth/2fa/setup", headers=auth_headers)
        assert response.status_code == 400
        assert "already enabled" in response.json()["message"]


class TestLoginWithSecondFactor:
    def test_password_alone_asks_for_code(self, client, enabled):
        """With 2FA on, a password alone asks for a code and sets no cookie."""
        response = client.post("/api/v1/auth/login", json=CREDENTIALS)
        assert response.status_code == 401
        assert response.json()["type"] == "two_factor_required"
        assert "set-cookie" not in response.headers

    def test_totp_code_completes_login(self, client, enabled):
        """Password plus current TOTP code logs in."""
        code = pyotp.TOTP(enabled["secret"]).now()
        response = client.post("/api/v1/auth/login", json={**CREDENTIALS, "code": code})
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "a@b.com"

    def test_wrong_code_is_generic_failure(self, client, enabled):
        """A wrong code fails like a wrong password."""
        current = pyotp.TOTP(enabled["secret"]).now()
        wrong = "000000" if current != "000000" else "111111"
        response = client.post("/api/v1/auth/login", json={**CREDENTIALS, "code": wrong})
        assert response.status_code == 401
        assert response.json()["type"] == "invalid_credentials"

    def test_backup_code_works_once(self, client, enabled, auth_headers):
        """A backup code logs in once and is then spent."""
        code = enabled["backup_codes"][0]
        first = client.post("/api/v1/auth/login", json={**CREDENTIALS, "code": code})
        second = client.post("/api/v1/auth/login", json={**CREDENTIALS, "code": code})

        assert first.status_code == 200
        assert second.status_code == 401
        assert client.get("/api/v1/auth/2fa/status", headers=auth_headers).json()["backup_codes_remaining"] == 7

    def test_code_does_not_bypass_password(self, client, enabled):
        """A valid code does not excuse a wrong password."""
        code = pyotp.TOTP(enabled["secret"]).now()
        response = client.post("/api/v1/auth/login", json={"email": "a@b.com", "password": "wrong1", "code": code})
        assert response.status_code == 401
        assert response.json()["type"] == "invalid_credentials"
