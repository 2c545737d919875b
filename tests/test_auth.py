"""Authentication API tests."""

from datetime import timedelta

from jose import jwt

from conftest import auth_headers, register
from homemates.auth.jwt import ALGORITHM, SECRET_KEY, create_oauth_state, _encode


class TestRegister:
    """Tests for POST /api/auth/register."""

    def test_register_returns_tokens_and_profile(self, client):
        """Registration returns a token pair and the user."""
        body = register(client, phone="98765 43210")

        assert body["token_type"] == "bearer"
        assert body["token"]
        assert body["refresh_token"]
        assert body["user"]["email"] == "owner@example.com"
        assert body["user"]["phone"] == "+919876543210"
        assert body["user"]["user_type"] == "owner"

    def test_access_token_carries_dashboard_claims(self, client):
        """The dashboard decodes name, email and user_type from the token."""
        body = register(client, name="Ravi Kumar")
        claims = jwt.decode(body["token"], SECRET_KEY, algorithms=[ALGORITHM])

        assert claims["sub"] == body["user"]["id"]
        assert claims["id"] == body["user"]["id"]
        assert claims["name"] == "Ravi Kumar"
        assert claims["email"] == "owner@example.com"
        assert claims["user_type"] == "owner"
        assert claims["type"] == "access"

    def test_duplicate_email_rejected(self, client):
        """Same email cannot register twice."""
        register(client)
        response = client.post(
            "/api/auth/register",
            json={"email": "OWNER@example.com", "password": "supersecret", "name": "Other"},
        )
        assert response.status_code == 400
        assert "already registered" in response.json()["message"]

    def test_invalid_phone_rejected(self, client):
        """Phone numbers that cannot be normalized are rejected."""
        response = client.post(
            "/api/auth/register",
            json={
                "email": "a@example.com",
                "password": "supersecret",
                "name": "A",
                "phone": "12",
            },
        )
        assert response.status_code == 400

    def test_short_password_rejected(self, client):
        """Passwords need at least 8 characters."""
        response = client.post(
            "/api/auth/register",
            json={"email": "a@example.com", "password": "short", "name": "A"},
        )
        assert response.status_code == 422
        assert response.json()["message"]


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login_with_phone(self, client):
        """Tenants log in with the phone number they registered."""
        register(client, email="t@example.com", user_type="tenant", phone="+919876543210")
        response = client.post(
            "/api/auth/login",
            json={"phone_number": "098765 43210", "password": "supersecret"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["user_type"] == "tenant"

    def test_login_with_email(self, client):
        """The phone_number field may hold an email address."""
        register(client)
        response = client.post(
            "/api/auth/login",
            json={
                "phone_number": "Owner@Example.com",
                "password": "supersecret",
                "user_type": "owner",
            },
        )
        assert response.status_code == 200

    def test_wrong_password(self, client):
        register(client)
        response = client.post(
            "/api/auth/login",
            json={"phone_number": "owner@example.com", "password": "wrong-pass", "user_type": "owner"},
        )
        assert response.status_code == 401

    def test_role_mismatch(self, client):
        """An owner account cannot log in through the tenant tab."""
        register(client)
        response = client.post(
            "/api/auth/login",
            json={"phone_number": "owner@example.com", "password": "supersecret", "user_type": "tenant"},
        )
        assert response.status_code == 403


class TestTokens:
    """Tests for /api/auth/me and /api/auth/refresh."""

    def test_me(self, client):
        body = register(client)
        response = client.get("/api/auth/me", headers=auth_headers(body))
        assert response.status_code == 200
        assert response.json()["id"] == body["user"]["id"]

    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_refresh_returns_new_pair(self, client):
        body = register(client)
        response = client.post("/api/auth/refresh", json={"refresh_token": body["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["token"]

    def test_refresh_rejects_access_token(self, client):
        """Access tokens cannot be used as refresh tokens."""
        body = register(client)
        response = client.post("/api/auth/refresh", json={"refresh_token": body["token"]})
        assert response.status_code == 401

    def test_oauth_state_is_not_an_access_token(self, client):
        """OAuth state tokens are rejected by authenticated routes."""
        body = register(client)
        state = create_oauth_state(body["user"]["id"], "gmail")
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {state}"})
        assert response.status_code == 401

    def test_expired_token_rejected(self, client):
        body = register(client)
        expired = _encode({"sub": body["user"]["id"]}, "access", timedelta(seconds=-1))
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
        assert response.status_code == 401


class TestRoles:
    """Owner-only routes reject tenants."""

    def test_tenant_cannot_list_leads(self, client, tenant_headers):
        response = client.get("/api/leads", headers=tenant_headers)
        assert response.status_code == 403
