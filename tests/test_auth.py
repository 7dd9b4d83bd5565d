"""
Tests for authentication endpoints and the error envelope.

Tests cover:
- Registration and login returning a token with the user
- Duplicate email and bad credentials
- Token validation (missing, invalid, expired, deactivated user)
- Logout and /me
"""

import logging
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskflow import models
from tests.conftest import TEST_PASSWORD, create_auth_token, create_user

logger = logging.getLogger(__name__)


def test_register_returns_token_and_user(client: TestClient, test_db: Session):
    response = client.post(
        "/api/auth/register",
        json={"name": "New Person", "email": "New.Person@test.com", "password": "supersecret"},
    )

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["email"] == "new.person@test.com"
    assert data["user"]["role"] == "USER"
    assert "password_hash" not in data["user"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == data["user"]["id"]
    logger.info("✓ Registration signs the new user in")


def test_register_duplicate_email(client: TestClient, owner_user: models.User):
    response = client.post(
        "/api/auth/register",
        json={"name": "Dup", "email": owner_user.email, "password": "supersecret"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Email already registered"
    assert body["error"] == "Bad Request"
    assert body["statusCode"] == 400
    assert body["path"] == "/api/auth/register"
    assert body["timestamp"]
    logger.info("✓ Duplicate email rejected with the error envelope")


def test_register_validation_errors_are_a_list(client: TestClient):
    response = client.post("/api/auth/register", json={"name": "", "email": "not-an-email", "password": "short"})

    assert response.status_code == 400
    body = response.json()
    assert isinstance(body["message"], list)
    assert len(body["message"]) >= 2
    assert body["error"] == "Bad Request"


def test_login_success(client: TestClient, owner_user: models.User):
    response = client.post("/api/auth/login", json={"email": owner_user.email, "password": TEST_PASSWORD})

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.json()}"
    assert response.json()["user"]["id"] == owner_user.id
    logger.info("✓ Login returns token and user")


def test_login_wrong_password(client: TestClient, owner_user: models.User):
    response = client.post("/api/auth/login", json={"email": owner_user.email, "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid credentials"
    assert response.json()["error"] == "Unauthorized"


def test_login_unknown_email(client: TestClient):
    response = client.post("/api/auth/login", json={"email": "ghost@test.com", "password": TEST_PASSWORD})
    assert response.status_code == 401


def test_login_disabled_account(client: TestClient, test_db: Session):
    user = create_user(test_db, "Disabled", "disabled@test.com", is_active=False)

    response = client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})

    assert response.status_code == 401
    assert response.json()["message"] == "User account is disabled"


def test_me_without_token(client: TestClient):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Not authenticated"


def test_me_with_garbage_token(client: TestClient):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_me_with_expired_token(client: TestClient, owner_user: models.User):
    token = create_auth_token(owner_user, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    logger.info("✓ Expired token rejected")


def test_deactivated_user_token_is_rejected(client: TestClient, test_db: Session, owner_user: models.User):
    token = create_auth_token(owner_user)
    owner_user.is_active = False
    test_db.commit()

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "User account is disabled"


def test_logout(client: TestClient, owner_headers: dict):
    response = client.post("/api/auth/logout", headers=owner_headers)
    assert response.status_code == 204


def test_unknown_route_uses_error_envelope(client: TestClient):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "healthy"}
