import pytest

from conftest import TEST_PASSWORD, auth_headers

pytestmark = pytest.mark.asyncio


def registration(email: str = "new.user@tix.io", **overrides):
    payload = {
        "email": email,
        "firstName": "New",
        "lastName": "User",
        "password": "hunter22",
        "confirmPassword": "hunter22",
    }
    payload.update(overrides)
    return payload


async def test_register_returns_token_and_user(client):
    resp = await client.post("/api/auth/register", json=registration())

    assert resp.status_code == 201
    body = resp.json()
    assert body["token"]
    assert body["user"]["email"] == "new.user@tix.io"
    assert body["user"]["firstName"] == "New"
    assert body["user"]["role"] == "user"
    assert "hashedPassword" not in body["user"]


async def test_register_lowercases_email_and_rejects_duplicates(client):
    first = await client.post("/api/auth/register", json=registration("Mixed@Tix.io"))
    assert first.status_code == 201
    assert first.json()["user"]["email"] == "mixed@tix.io"

    second = await client.post("/api/auth/register", json=registration("mixed@tix.io"))
    assert second.status_code == 400
    assert second.json()["code"] == "validation_error"


async def test_register_password_mismatch_is_validation_error(client):
    resp = await client.post(
        "/api/auth/register", json=registration(confirmPassword="different")
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"


async def test_login_with_valid_credentials(client, attendee):
    resp = await client.post(
        "/api/auth/login", json={"email": attendee.email, "password": TEST_PASSWORD}
    )

    assert resp.status_code == 200
    token = resp.json()["token"]

    me = await client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == attendee.id


async def test_login_with_wrong_password(client, attendee):
    resp = await client.post(
        "/api/auth/login", json={"email": attendee.email, "password": "wrong-one"}
    )

    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


async def test_session_cookie_identifies_user_until_logout(client, attendee):
    login = await client.post(
        "/api/auth/login", json={"email": attendee.email, "password": TEST_PASSWORD}
    )
    assert login.status_code == 200

    # No bearer header: the session cookie set at login is enough
    me = await client.get("/api/auth/user")
    assert me.status_code == 200
    assert me.json()["email"] == attendee.email

    logout = await client.post("/api/auth/logout")
    assert logout.status_code == 200

    after = await client.get("/api/auth/user")
    assert after.status_code == 401


async def test_current_user_requires_credentials(client):
    resp = await client.get("/api/auth/user")

    assert resp.status_code == 401
    assert resp.json() == {"detail": "Not authenticated", "code": "unauthorized"}


async def test_invalid_bearer_token_is_rejected(client):
    resp = await client.get(
        "/api/auth/user", headers={"Authorization": "Bearer not-a-real-token"}
    )

    assert resp.status_code == 401


async def test_inactive_user_is_forbidden(client, db, attendee):
    attendee.is_active = False
    await db.commit()

    resp = await client.get("/api/auth/user", headers=auth_headers(attendee))

    assert resp.status_code == 403
