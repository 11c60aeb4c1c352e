from datetime import timedelta

from jose import jwt

from conftest import ADMIN_EMAIL, PASSWORD, register
from tutor.auth import auth_utils
from tutor.database.models import SUB_FREE, SUB_SUSPENDED, utcnow


def test_register_returns_token_and_free_user(client, settings):
    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "ana", "password": PASSWORD},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["subscription_status"] == SUB_FREE
    assert "password_hash" not in body["user"]
    claims = jwt.decode(body["token"], settings.jwt_secret, algorithms=[auth_utils.ALGORITHM])
    assert claims["sub"] == body["user"]["id"]
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600
    assert response.cookies.get(auth_utils.TOKEN_COOKIE) == body["token"]


def test_register_duplicate_email(client):
    register(client, "ana@example.com")
    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "other", "password": PASSWORD},
    )
    assert response.status_code == 409


def test_register_rejects_short_password(client, user_store):
    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "ana", "password": "short"},
    )
    assert response.status_code == 400
    assert user_store.list_all() == []


def test_register_rejects_blank_username(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "  ", "password": PASSWORD},
    )
    assert response.status_code == 400


def test_register_rejects_malformed_email(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "not-an-email", "username": "ana", "password": PASSWORD},
    )
    assert response.status_code == 422


def test_admin_registration(client):
    response = client.post(
        "/api/auth/register",
        json={"email": ADMIN_EMAIL, "username": "boss", "password": PASSWORD},
    )
    assert response.status_code == 201
    assert response.json()["user"]["is_admin"] is True


def test_login_returns_token(client):
    register(client, "ana@example.com", username="ana")

    response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

    assert response.status_code == 200
    assert response.json()["user"]["username"] == "ana"
    assert response.json()["token"]


def test_email_is_stored_and_matched_as_typed(client, user_store):
    register(client, "Ana@Example.COM", username="ana")

    same = client.post("/api/auth/login", json={"email": "Ana@Example.COM", "password": PASSWORD})
    lowered = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

    assert user_store.get_by_email("Ana@Example.COM").username == "ana"
    assert same.status_code == 200
    assert same.json()["user"]["email"] == "Ana@Example.COM"
    assert lowered.status_code == 401


def test_login_failures_are_indistinguishable(client):
    register(client, "ana@example.com")

    wrong_password = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "wrong-pass"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_pending_user_is_refused(client, user_store):
    user_store.create("pending@example.com", "pending", PASSWORD)

    response = client.post("/api/auth/login", json={"email": "pending@example.com", "password": PASSWORD})

    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["status"] == ""
    assert "subscription" in detail["error"]
    assert "checkout_url" not in detail


def test_login_suspended_user_is_refused(client, user_store):
    user = user_store.create("ana@example.com", "ana", PASSWORD)
    user_store.set_subscription_status(user.id, SUB_SUSPENDED, None)

    response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": PASSWORD})

    assert response.status_code == 403
    assert response.json()["detail"]["status"] == SUB_SUSPENDED


def test_me_with_bearer_token(client):
    headers = register(client, "ana@example.com", username="ana")

    response = client.get("/api/auth/me", headers=headers)

    assert response.status_code == 200
    assert response.json()["username"] == "ana"


def test_me_with_cookie(client):
    client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "ana", "password": PASSWORD},
    )

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == "ana@example.com"


def test_protected_route_without_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401


def test_protected_route_with_bad_tokens(client, settings):
    headers = register(client, "ana@example.com")
    user_id = client.get("/api/auth/me", headers=headers).json()["id"]

    expired = auth_utils.create_access_token(user_id, settings, expires_delta=timedelta(seconds=-5))
    forged = jwt.encode({"sub": user_id, "exp": utcnow() + timedelta(days=1)}, "other-secret", algorithm="HS256")

    for token in ("garbage", expired, forged):
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401, token


def test_logout_clears_cookie(client):
    client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "username": "ana", "password": PASSWORD},
    )

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert client.get("/api/auth/me").status_code == 401
