"""HTTP surface: status codes, error bodies and the login protocol over the wire."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError

from portal_auth.dependencies import get_login_service
from portal_auth.services.backup_code_service import BackupCodeService
from portal_auth.services.totp_service import get_totp_service
from tests.conftest import PASSWORD

AUTH = "/api/v1/auth"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def login(client, email="alice@example.com", password=PASSWORD):
    return await client.post(f"{AUTH}/login", json={"email": email, "password": password})


async def login_token(client, email="alice@example.com") -> str:
    response = await login(client, email)
    assert response.status_code == 200
    return response.json()["session"]["access_token"]


class TestLogin:
    async def test_password_login(self, client, create_user):
        await create_user()
        response = await login(client)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "authenticated"
        assert body["session"]["token_type"] == "bearer"
        assert body["session"]["expires_in"] == 3600
        assert body["pending"] is None

    async def test_invalid_credentials(self, client, create_user):
        await create_user()
        response = await login(client, password="Wrong-Horse-9-Battery")

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials", "code": "invalid_credentials"}

    async def test_too_many_attempts(self, client, create_user):
        await create_user()
        for _ in range(5):
            assert (await login(client, password="Wrong-Horse-9-Battery")).status_code == 401

        response = await login(client)
        assert response.status_code == 429
        assert response.json()["code"] == "too_many_attempts"
        assert 1 <= int(response.headers["Retry-After"]) <= 900

    async def test_malformed_body(self, client):
        response = await client.post(f"{AUTH}/login", json={"email": "not-an-email"})
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    async def test_security_headers(self, client, create_user):
        await create_user()
        response = await login(client)
        assert response.headers["Cache-Control"] == "no-store, max-age=0"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestSession:
    async def test_validate_and_logout(self, client, create_user):
        user = await create_user()
        token = await login_token(client)

        response = await client.get(f"{AUTH}/session", headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["identity_id"] == str(user.id)
        assert response.json()["role"] == "user"

        assert (await client.post(f"{AUTH}/logout", headers=bearer(token))).status_code == 200

        response = await client.get(f"{AUTH}/session", headers=bearer(token))
        assert response.status_code == 401
        assert response.json()["code"] == "session_expired"
        assert response.headers["WWW-Authenticate"] == 'Bearer error="invalid_token"'

    async def test_logout_is_idempotent(self, client):
        assert (await client.post(f"{AUTH}/logout", headers=bearer("unknown"))).status_code == 200
        assert (await client.post(f"{AUTH}/logout")).status_code == 200

    async def test_missing_token(self, client):
        response = await client.get(f"{AUTH}/session")
        assert response.status_code == 401
        assert response.json()["code"] == "session_expired"

    async def test_pending_token_is_not_a_bearer_token(self, client, create_user, enroll_totp):
        user = await create_user()
        await enroll_totp(user.id)
        pending = (await login(client)).json()["pending"]["pending_token"]

        assert (await client.get(f"{AUTH}/session", headers=bearer(pending))).status_code == 401


class TestAuthorization:
    async def test_role_failure_is_403_not_401(self, client, create_user):
        await create_user()
        victim = await create_user("bob@example.com")
        token = await login_token(client)

        response = await client.post(
            f"/api/v1/admin/users/{victim.id}/sessions/revoke", headers=bearer(token)
        )
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

        # The session survives a role failure
        assert (await client.get(f"{AUTH}/session", headers=bearer(token))).status_code == 200

    async def test_admin_deactivation_ends_sessions(self, client, create_user):
        await create_user("root@example.com", role="admin")
        target = await create_user("bob@example.com")
        admin_token = await login_token(client, "root@example.com")
        target_token = await login_token(client, "bob@example.com")

        response = await client.post(
            f"/api/v1/admin/users/{target.id}/deactivate", headers=bearer(admin_token)
        )
        assert response.status_code == 200
        assert response.json() == {"revoked": 1}

        assert (await client.get(f"{AUTH}/session", headers=bearer(target_token))).status_code == 401
        assert (await login(client, "bob@example.com")).status_code == 401

    async def test_admin_revoke_unknown_user(self, client, create_user):
        await create_user("root@example.com", role="admin")
        admin_token = await login_token(client, "root@example.com")

        response = await client.post(
            "/api/v1/admin/users/00000000-0000-0000-0000-000000000000/sessions/revoke",
            headers=bearer(admin_token),
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestServiceFailure:
    async def test_datastore_outage_is_503_not_401(self, app, client):
        class UnavailableLoginService:
            async def submit_credentials(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        app.dependency_overrides[get_login_service] = UnavailableLoginService

        response = await login(client)
        assert response.status_code == 503
        assert response.json() == {
            "detail": "Service temporarily unavailable",
            "code": "service_unavailable",
        }
        assert response.headers["Retry-After"] == "30"


class TestPasswordChange:
    async def test_change_revokes_other_sessions(self, client, create_user):
        await create_user()
        current = await login_token(client)
        other = await login_token(client)

        response = await client.post(
            f"{AUTH}/password",
            headers=bearer(current),
            json={"current_password": PASSWORD, "new_password": "Fresh-Maple-8-Lantern"},
        )
        assert response.status_code == 200
        assert response.json() == {"revoked": 1}

        assert (await client.get(f"{AUTH}/session", headers=bearer(current))).status_code == 200
        assert (await client.get(f"{AUTH}/session", headers=bearer(other))).status_code == 401
        assert (await login(client, password="Fresh-Maple-8-Lantern")).status_code == 200

    async def test_wrong_current_password_is_400(self, client, create_user):
        await create_user()
        token = await login_token(client)

        response = await client.post(
            f"{AUTH}/password",
            headers=bearer(token),
            json={"current_password": "Wrong-Horse-9-Battery", "new_password": "Fresh-Maple-8-Lantern"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Current password is incorrect"

    async def test_weak_new_password(self, client, create_user):
        await create_user()
        token = await login_token(client)

        response = await client.post(
            f"{AUTH}/password",
            headers=bearer(token),
            json={"current_password": PASSWORD, "new_password": "alllowercase1"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Password does not meet requirements"
        assert "Password must contain at least one uppercase letter" in body["errors"]


class TestTwoFactorOverHttp:
    async def test_enroll_then_login_with_second_factor(self, client, create_user):
        await create_user()
        token = await login_token(client)
        totp = get_totp_service()

        setup = await client.post(f"{AUTH}/2fa/setup", headers=bearer(token))
        assert setup.status_code == 200
        secret = setup.json()["secret"]

        now = datetime.now(timezone.utc)
        confirm = await client.post(
            f"{AUTH}/2fa/confirm",
            headers=bearer(token),
            json={"code": totp.generate_totp(secret, now)},
        )
        assert confirm.status_code == 200
        backup_codes = confirm.json()["backup_codes"]
        assert len(backup_codes) == 10

        status = await client.get(f"{AUTH}/2fa/status", headers=bearer(token))
        assert status.json()["enabled"] is True

        first = await login(client)
        assert first.json()["status"] == "pending"
        pending = first.json()["pending"]["pending_token"]

        # The confirming code's step is spent; the next step is still in the window
        next_code = totp.generate_totp(secret, now + timedelta(seconds=30))
        second = await client.post(
            f"{AUTH}/second-factor", json={"pending_token": pending, "code": next_code}
        )
        assert second.status_code == 200
        assert second.json()["status"] == "authenticated"

    async def test_backup_code_login_warns_when_running_low(self, client, session_factory, create_user, enroll_totp):
        user = await create_user()
        await enroll_totp(user.id)
        async with session_factory() as session:
            codes = await BackupCodeService(session).regenerate(user.id, count=3)
            await session.commit()

        pending = (await login(client)).json()["pending"]["pending_token"]
        response = await client.post(
            f"{AUTH}/second-factor", json={"pending_token": pending, "code": codes[0]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["backup_codes_remaining"] == 2
        assert "backup codes left" in body["warning"]

    async def test_wrong_second_factor_is_401(self, client, create_user, enroll_totp):
        user = await create_user()
        await enroll_totp(user.id)
        pending = (await login(client)).json()["pending"]["pending_token"]

        response = await client.post(
            f"{AUTH}/second-factor", json={"pending_token": pending, "code": "ZZZZ-ZZZZ"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_second_factor"

    async def test_wrong_password_on_disable_keeps_session(
        self, client, session_factory, create_user, enroll_totp
    ):
        user = await create_user()
        await enroll_totp(user.id)
        async with session_factory() as session:
            codes = await BackupCodeService(session).regenerate(user.id, count=10)
            await session.commit()

        pending = (await login(client)).json()["pending"]["pending_token"]
        second = await client.post(
            f"{AUTH}/second-factor", json={"pending_token": pending, "code": codes[0]}
        )
        token = second.json()["session"]["access_token"]

        response = await client.post(
            f"{AUTH}/2fa/disable",
            headers=bearer(token),
            json={"password": "Wrong-Horse-9-Battery", "code": codes[1]},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Current password is incorrect"
        assert (await client.get(f"{AUTH}/session", headers=bearer(token))).status_code == 200
