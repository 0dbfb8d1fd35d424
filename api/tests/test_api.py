"""API tests: health, auth and the current user."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import add_member, auth_headers, make_user
from app.core.auth import create_password_reset_token, create_refresh_token
from app.core.database import async_session_factory
from app.models import OrgRole, User

SUBMISSION = {"name": "Oak Park", "email": "oak@example.com", "city": "Austin", "state": "TX"}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
@patch("app.routes.auth.send_verification_email", new_callable=AsyncMock)
async def test_register_and_login(mock_verify, client):
    email = "Test.User@Example.com"

    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "testpass123", "full_name": "Test User"},
    )
    assert resp.status_code == 201
    tokens = resp.json()
    assert "access_token" in tokens

    resp = await client.post("/api/v1/auth/login", json={"email": email, "password": "testpass123"})
    assert resp.status_code == 200
    assert "access_token" in resp.json()

    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["email"] == "test.user@example.com"
    assert body["user_type"] == "member"
    assert body["organization_ids"] == []


@pytest.mark.asyncio
async def test_register_duplicate_email(client, member):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "member@example.com", "password": "testpass123"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client):
    resp = await client.post("/api/v1/auth/register", json={"email": "short@example.com", "password": "abc"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_login_wrong_password(client, member):
    resp = await client.post("/api/v1/auth/login", json={"email": "member@example.com", "password": "wrongpass1"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_unauthenticated(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_refresh_token(client, member):
    headers = {"Authorization": f"Bearer {create_refresh_token(str(member.id))}"}
    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh(client, member):
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": create_refresh_token(str(member.id))})
    assert resp.status_code == 200
    assert resp.json()["refresh_token"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client, member):
    token = auth_headers(member)["Authorization"].removeprefix("Bearer ")
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_lists_organizations(client, member, org):
    await add_member(member, org, OrgRole.COACH)

    resp = await client.get("/api/v1/auth/me", headers=auth_headers(member))
    assert resp.status_code == 200
    assert resp.json()["organization_ids"] == [org.id]
    assert resp.json()["email_verified"] is True


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@patch("app.routes.auth.send_verification_email", new_callable=AsyncMock)
async def test_email_verification_unlocks_club_registration(mock_verify, client):
    resp = await client.post("/api/v1/auth/register", json={"email": "new@example.com", "password": "testpass123"})
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    to, token = mock_verify.call_args[0]
    assert to == "new@example.com"

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.json()["email_verified"] is False
    resp = await client.post("/api/v1/club-submissions", headers=headers, json=SUBMISSION)
    assert resp.status_code == 403

    resp = await client.post("/api/v1/auth/verify-email", json={"token": token})
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=headers)
    assert resp.json()["email_verified"] is True
    resp = await client.post("/api/v1/club-submissions", headers=headers, json=SUBMISSION)
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_verify_email_rejects_other_tokens(client, member):
    resp = await client.post("/api/v1/auth/verify-email", json={"token": "not-a-token"})
    assert resp.status_code == 400

    # A password reset token is not a verification token
    token = create_password_reset_token(member.id, None)
    resp = await client.post("/api/v1/auth/verify-email", json={"token": token})
    assert resp.status_code == 400


@pytest.mark.asyncio
@patch("app.routes.auth.send_verification_email", new_callable=AsyncMock)
async def test_resend_verification(mock_verify, client):
    user = await make_user("pending@example.com", email_verified=False)

    resp = await client.post("/api/v1/auth/resend-verification", headers=auth_headers(user))
    assert resp.status_code == 200
    mock_verify.assert_called_once()

    resp = await client.post("/api/v1/auth/verify-email", json={"token": mock_verify.call_args[0][1]})
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@patch("app.routes.auth.send_password_reset_email", new_callable=AsyncMock)
async def test_imported_user_sets_first_password(mock_reset, client):
    imported = await make_user("legacy@example.com", password=None, email_verified=False)

    resp = await client.post("/api/v1/auth/login", json={"email": "legacy@example.com", "password": "newpass123"})
    assert resp.status_code == 401

    resp = await client.post("/api/v1/auth/forgot-password", json={"email": "Legacy@Example.com"})
    assert resp.status_code == 200
    to, token = mock_reset.call_args[0]
    assert to == "legacy@example.com"

    resp = await client.post("/api/v1/auth/reset-password", json={"token": token, "new_password": "newpass123"})
    assert resp.status_code == 200

    resp = await client.post("/api/v1/auth/login", json={"email": "legacy@example.com", "password": "newpass123"})
    assert resp.status_code == 200

    async with async_session_factory() as db:
        assert (await db.get(User, imported.id)).email_verified is True

    # The token is bound to the old (missing) password
    resp = await client.post("/api/v1/auth/reset-password", json={"token": token, "new_password": "other-pass1"})
    assert resp.status_code == 400


@pytest.mark.asyncio
@patch("app.routes.auth.send_password_reset_email", new_callable=AsyncMock)
async def test_forgot_password_unknown_email(mock_reset, client):
    resp = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert resp.status_code == 200
    mock_reset.assert_not_called()


@pytest.mark.asyncio
async def test_reset_password_rejects_bad_token(client):
    resp = await client.post("/api/v1/auth/reset-password", json={"token": "garbage", "new_password": "newpass123"})
    assert resp.status_code == 400
