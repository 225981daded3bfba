from datetime import timedelta

from sqlalchemy import select

from dealfinder.core.time_utils import utcnow
from dealfinder.models.refresh_token import RefreshToken
from dealfinder.models.user import User


def _register(client, *, email: str, name: str = "Jane Owner", role: str = "business", password: str = "password123"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_token_pair_and_user(test_context):
    client, _ = test_context

    res = _register(client, email="Owner@Example.com")
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["success"] is True
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["user"]["email"] == "owner@example.com"
    assert body["user"]["role"] == "business"
    assert body["user"]["avatar"] == "default-avatar.png"
    assert body["user"]["isVerified"] is False


def test_register_rejects_duplicate_email_case_insensitively(test_context):
    client, _ = test_context

    assert _register(client, email="dup@example.com").status_code == 201
    res = _register(client, email="DUP@example.com")
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "User already exists"
    assert body["error"]["code"] == "bad_request"


def test_register_validation_errors_use_400_envelope(test_context):
    client, _ = test_context

    res = _register(client, email="short@example.com", password="short")
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["details"][0]["field"] == "password"
    assert body["message"].startswith("password:")
    assert res.headers["X-Request-ID"]


def test_register_cannot_self_assign_admin_role(test_context):
    client, _ = test_context

    res = _register(client, email="sneaky@example.com", role="admin")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_bootstrap_admin_email_registers_as_admin(test_context):
    client, _ = test_context

    res = _register(client, email="admin@example.com", role="user")
    assert res.status_code == 201, res.text
    assert res.json()["user"]["role"] == "admin"


def test_login_and_me(test_context):
    client, _ = test_context
    _register(client, email="login@example.com", name="Login User", role="user")

    res = client.post("/api/auth/login", json={"email": "LOGIN@example.com", "password": "password123"})
    assert res.status_code == 200, res.text
    token = res.json()["access_token"]

    me = client.get("/api/auth/me", headers=_auth_headers(token))
    assert me.status_code == 200
    assert me.json()["data"]["name"] == "Login User"
    assert me.json()["data"]["role"] == "user"


def test_me_requires_token(test_context):
    client, _ = test_context

    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "unauthorized"

    res = client.get("/api/auth/me", headers=_auth_headers("not-a-token"))
    assert res.status_code == 401


def test_swagger_token_endpoint_accepts_form_login(test_context):
    client, _ = test_context
    _register(client, email="swagger@example.com")

    res = client.post(
        "/api/auth/token",
        data={"username": "swagger@example.com", "password": "password123"},
    )
    assert res.status_code == 200, res.text
    assert res.json()["access_token"]


def test_failed_logins_are_throttled(test_context):
    client, _ = test_context
    _register(client, email="throttle@example.com")

    for _ in range(5):
        res = client.post("/api/auth/login", json={"email": "throttle@example.com", "password": "wrong-pass"})
        assert res.status_code == 401

    res = client.post("/api/auth/login", json={"email": "throttle@example.com", "password": "password123"})
    assert res.status_code == 429
    assert int(res.headers["Retry-After"]) > 0
    assert res.json()["error"]["code"] == "rate_limited"


def test_refresh_rotates_and_revokes_old_token(test_context):
    client, session_local = test_context
    tokens = _register(client, email="refresh@example.com").json()

    res = client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refresh_token"]})
    assert res.status_code == 200, res.text
    rotated = res.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    reused = client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refresh_token"]})
    assert reused.status_code == 401

    with session_local() as db:
        rows = db.execute(select(RefreshToken)).scalars().all()
        assert len(rows) == 2
        assert sum(1 for row in rows if row.revoked_at is not None) == 1
        assert any(row.replaced_by_jti for row in rows)


def test_logout_revokes_refresh_token(test_context):
    client, _ = test_context
    tokens = _register(client, email="logout@example.com").json()

    res = client.post("/api/auth/logout", json={"refreshToken": tokens["refresh_token"]})
    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Logged out successfully"}

    res = client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refresh_token"]})
    assert res.status_code == 401


def test_update_profile_changes_only_given_fields(test_context):
    client, _ = test_context
    token = _register(client, email="profile@example.com", name="Before Name").json()["access_token"]

    res = client.put(
        "/api/auth/update-profile",
        json={"phone": " 555-0100 ", "address": {"city": "Lagos", "zipCode": "100001"}},
        headers=_auth_headers(token),
    )
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["name"] == "Before Name"
    assert data["phone"] == "555-0100"
    assert data["address"]["city"] == "Lagos"
    assert data["address"]["zipCode"] == "100001"

    empty = client.put("/api/auth/update-profile", json={}, headers=_auth_headers(token))
    assert empty.status_code == 400


def test_update_password_requires_current_password(test_context):
    client, _ = test_context
    token = _register(client, email="pw@example.com").json()["access_token"]

    wrong = client.put(
        "/api/auth/update-password",
        json={"currentPassword": "nope-nope", "newPassword": "brand-new-pass"},
        headers=_auth_headers(token),
    )
    assert wrong.status_code == 401

    res = client.put(
        "/api/auth/update-password",
        json={"currentPassword": "password123", "newPassword": "brand-new-pass"},
        headers=_auth_headers(token),
    )
    assert res.status_code == 200, res.text

    old = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "password123"})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": "pw@example.com", "password": "brand-new-pass"})
    assert new.status_code == 200


def test_forgot_and_reset_password_flow(test_context, monkeypatch):
    client, session_local = test_context
    _register(client, email="reset@example.com")
    sent = {}

    def fake_send(**kwargs):
        sent.update(kwargs)

    monkeypatch.setattr("dealfinder.routers.auth.send_password_reset_email", fake_send)

    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    assert unknown.status_code == 200
    assert not sent

    res = client.post("/api/auth/forgot-password", json={"email": "reset@example.com"})
    assert res.status_code == 200
    assert res.json()["message"] == unknown.json()["message"]
    raw_token = sent["raw_token"]

    with session_local() as db:
        user = db.execute(select(User).where(User.email == "reset@example.com")).scalar_one()
        assert user.reset_password_token_hash
        assert user.reset_password_token_hash != raw_token

    reset = client.post(f"/api/auth/reset-password/{raw_token}", json={"password": "after-reset-1"})
    assert reset.status_code == 200, reset.text
    assert reset.json()["access_token"]

    again = client.post(f"/api/auth/reset-password/{raw_token}", json={"password": "after-reset-2"})
    assert again.status_code == 400

    login = client.post("/api/auth/login", json={"email": "reset@example.com", "password": "after-reset-1"})
    assert login.status_code == 200


def test_reset_password_rejects_expired_token(test_context, monkeypatch):
    client, session_local = test_context
    _register(client, email="expired@example.com")
    sent = {}
    monkeypatch.setattr(
        "dealfinder.routers.auth.send_password_reset_email",
        lambda **kwargs: sent.update(kwargs),
    )
    client.post("/api/auth/forgot-password", json={"email": "expired@example.com"})

    with session_local() as db:
        user = db.execute(select(User).where(User.email == "expired@example.com")).scalar_one()
        user.reset_password_expires_at = utcnow() - timedelta(minutes=1)
        db.commit()

    res = client.post(f"/api/auth/reset-password/{sent['raw_token']}", json={"password": "after-reset-1"})
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid or expired reset token"
