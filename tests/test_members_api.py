import pytest
from fastapi import status

from councilhub.auth import security
from councilhub.members import services
from councilhub.members.enums import Role
from councilhub.members.models import User
from tests.conftest import PASSWORD, auth_headers, make_user


async def _login(client, email: str, password: str = PASSWORD):
    return await client.post("/api/token", data={"username": email, "password": password})


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == status.HTTP_200_OK


@pytest.mark.anyio
async def test_registration_lifecycle(client, dbsession, admin, mailer, notification_mailer):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Pat Runner", "email": "pat@example.com", "password": "Runner12345"},
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email_sent"] is True
    assert mailer.to("pat@example.com")

    user = await services.get_user_by_email(dbsession, "pat@example.com")
    assert user is not None

    response = await _login(client, "pat@example.com", "Runner12345")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {
        "success": False,
        "error": "Please verify your email address before signing in",
    }

    response = await client.get(
        "/api/auth/verify-email", params={"token": user.email_verification_token}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["bucket"] == "pending_approval"
    assert notification_mailer.to(admin.email)

    response = await _login(client, "pat@example.com", "Runner12345")
    assert response.json()["error"] == "Your account is awaiting admin approval"

    response = await client.post(f"/api/users/{user.id}/approve", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["bucket"] == "active"
    assert response.json()["data"]["active"] is True

    response = await _login(client, "pat@example.com", "Runner12345")
    assert response.status_code == status.HTTP_200_OK
    tokens = response.json()
    assert tokens["success"] is True
    assert tokens["token_type"] == "bearer"

    response = await client.get(
        "/api/users/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert response.json()["data"]["email"] == "pat@example.com"


@pytest.mark.anyio
async def test_register_rejects_weak_password(client):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Weak", "email": "weak@example.com", "password": "alllowercase"},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    body = response.json()
    assert body["success"] is False
    assert body["error"].startswith("password")


@pytest.mark.anyio
async def test_duplicate_registration_conflicts(client, editor):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Again", "email": editor.email, "password": "Password123"},
    )
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.anyio
async def test_wrong_password(client, editor):
    response = await _login(client, editor.email, "Wrong-Password1")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False


@pytest.mark.anyio
async def test_public_resend_does_not_reveal_accounts(client):
    response = await client.post(
        "/api/auth/resend-verification", json={"email": "ghost@example.com"}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True


@pytest.mark.anyio
async def test_refresh_token_revoked_by_deactivation(client, dbsession, admin, editor):
    tokens = (await _login(client, editor.email)).json()
    response = await client.post(
        "/api/token/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert response.status_code == status.HTTP_200_OK

    for action in ("deactivate", "activate"):
        response = await client.post(
            f"/api/users/{editor.id}/actions/{action}", headers=auth_headers(admin)
        )
        assert response.status_code == status.HTTP_200_OK

    response = await client.post(
        "/api/token/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.anyio
async def test_access_token_cannot_refresh(client, editor):
    access = security.create_access_token(data={"sub": str(editor.id)})
    response = await client.post("/api/token/refresh", json={"refresh_token": access})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.anyio
async def test_user_list_requires_admin(client, editor, admin):
    response = await client.get("/api/users")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False

    response = await client.get("/api/users", headers=auth_headers(editor))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await client.get("/api/users?bucket=active", headers=auth_headers(admin))
    body = response.json()
    assert {u["email"] for u in body["data"]["users"]} == {editor.email, admin.email}
    assert body["data"]["counts"]["active"] == 2


@pytest.mark.anyio
async def test_self_action_is_forbidden(client, admin):
    response = await client.post(
        f"/api/users/{admin.id}/actions/deactivate", headers=auth_headers(admin)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "You cannot deactivate your own account"


@pytest.mark.anyio
async def test_action_outside_bucket_conflicts(client, dbsession, admin):
    unverified = await make_user(
        dbsession, "unv@example.com", verified=False, token="tok", approved=False
    )
    response = await client.post(
        f"/api/users/{unverified.id}/actions/approve", headers=auth_headers(admin)
    )
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.anyio
async def test_admin_verify_and_resend(client, dbsession, admin, mailer):
    resend_target = await make_user(
        dbsession, "resend@example.com", verified=False, token="tok1", approved=False
    )
    verify_target = await make_user(
        dbsession, "verify@example.com", verified=False, token="tok2", approved=False
    )

    response = await client.post(
        f"/api/users/{resend_target.id}/verify-email",
        json={"action": "resend"},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_200_OK
    assert mailer.to("resend@example.com")

    response = await client.post(
        f"/api/users/{verify_target.id}/verify-email",
        json={"action": "verify"},
        headers=auth_headers(admin),
    )
    assert response.json()["data"]["bucket"] == "pending_approval"

    response = await client.post(
        f"/api/users/{verify_target.id}/verify-email",
        json={"action": "approve"},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.anyio
async def test_reject_without_body(client, dbsession, admin, notification_mailer):
    pending = await make_user(dbsession, "nope@example.com", approved=False)
    pending_id = pending.id
    response = await client.post(f"/api/users/{pending_id}/reject", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"] is None
    assert await dbsession.get(User, pending_id) is None
    assert notification_mailer.to("nope@example.com")


@pytest.mark.anyio
async def test_migration_endpoints(client, dbsession, admin, super_admin):
    for i in range(2):
        await make_user(dbsession, f"old{i}@example.com", verified=False, approved=False)

    response = await client.get("/api/admin/migrate-users", headers=auth_headers(admin))
    assert response.json()["data"] == {"legacy_users_count": 2, "needs_migration": True}

    response = await client.post("/api/admin/migrate-users", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await client.post("/api/admin/migrate-users", headers=auth_headers(super_admin))
    assert response.json()["data"] == {"migrated_count": 2, "errors": []}


@pytest.mark.anyio
async def test_admin_creates_user(client, admin):
    payload = {
        "email": "made@example.com",
        "name": "Made By Admin",
        "password": "LongPassword123",
    }
    response = await client.post("/api/users", json=payload, headers=auth_headers(admin))
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["data"]["bucket"] == "active"

    payload = {**payload, "email": "boss@example.com", "role": Role.ADMIN.value}
    response = await client.post("/api/users", json=payload, headers=auth_headers(admin))
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.anyio
async def test_member_cannot_grant_self_officer_position(client, editor):
    response = await client.patch(
        f"/api/users/{editor.id}",
        json={"member_status": "PRESIDENT"},
        headers=auth_headers(editor),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await client.patch(
        f"/api/users/{editor.id}", json={"city": "Lakeside"}, headers=auth_headers(editor)
    )
    assert response.json()["data"]["city"] == "Lakeside"


@pytest.mark.anyio
@pytest.mark.parametrize("field", ["name", "email", "role", "member_status"])
async def test_profile_patch_rejects_null(client, super_admin, editor, field):
    response = await client.patch(
        f"/api/users/{editor.id}", json={field: None}, headers=auth_headers(super_admin)
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
