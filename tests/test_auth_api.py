from visitor_api.roles import Role
from visitor_api.security import create_access_token

from tests.factories import PASSWORD, auth_headers, make_user

REGISTRATION = {
    "email": "Alice@Example.com",
    "password": "hunter22",
    "firstName": "Alice",
    "lastName": "Smith",
    "phone": "+15550100",
}


def test_register_creates_visitor_and_returns_token(client):
    response = client.post("/api/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token"]
    user = body["data"]["user"]
    assert user["email"] == "alice@example.com"
    assert user["role"] == "visitor"
    assert "hashedPassword" not in user

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['data']['token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["firstName"] == "Alice"


def test_register_rejects_duplicate_email(client):
    client.post("/api/auth/register", json=REGISTRATION)

    response = client.post("/api/auth/register", json={**REGISTRATION, "email": "alice@example.com"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email is already registered"}


def test_register_reports_field_errors(client):
    response = client.post("/api/auth/register", json={**REGISTRATION, "email": "nope", "password": "123"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    fields = {error["field"] for error in body["errors"]}
    assert {"email", "password"} <= fields


def test_login_with_valid_and_invalid_password(client, app):
    make_user(app, "bob@example.com")

    ok = client.post("/api/auth/login", json={"email": "bob@example.com", "password": PASSWORD})
    bad = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "wrong"})

    assert ok.status_code == 200
    assert ok.json()["data"]["user"]["email"] == "bob@example.com"
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid credentials"


def test_inactive_user_cannot_log_in_or_use_token(client, app):
    user_id = make_user(app, "gone@example.com", is_active=False)

    login = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
    me = client.get("/api/auth/me", headers=auth_headers(app, user_id))

    assert login.status_code == 403
    assert me.status_code == 403


def test_protected_route_requires_bearer_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_signed_with_other_secret_is_rejected(client, app):
    user_id = make_user(app, "eve@example.com")
    forged = create_access_token(user_id, "not-the-secret")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired token"


def test_expired_token_is_rejected(client, app):
    user_id = make_user(app, "late@example.com")
    settings = app.state.settings
    expired = create_access_token(user_id, settings.jwt_secret_key, expires_minutes=-5)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401


def test_update_profile_and_change_password(client, app):
    user_id = make_user(app, "carol@example.com", role=Role.VISITOR)
    headers = auth_headers(app, user_id)

    updated = client.patch(
        "/api/auth/me",
        json={"company": "Initech", "emailNotifications": False},
        headers=headers,
    )
    wrong = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "nope", "newPassword": "brand-new"},
        headers=headers,
    )
    changed = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "brand-new"},
        headers=headers,
    )
    relogin = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "brand-new"})

    assert updated.status_code == 200
    assert updated.json()["data"]["company"] == "Initech"
    assert updated.json()["data"]["emailNotifications"] is False
    assert wrong.status_code == 400
    assert changed.status_code == 200
    assert relogin.status_code == 200
