"""Client API wrapper: which responses end the local session."""

import httpx
import pytest

from portal_auth.client.api import AuthApiError, AuthClient
from portal_auth.client.expiry_timer import ClientExpiryTimer, LogoutReason
from portal_auth.client.state import ClientStateStore
from tests.test_expiry_timer import T0, FakeClock, FakeScheduler

SESSION_BODY = {
    "status": "authenticated",
    "session": {
        "access_token": "server-token",
        "token_type": "bearer",
        "expires_at": "2026-01-01T01:00:00Z",
        "expires_in": 3600,
    },
}

SESSION_INFO = {
    "identity_id": "6f1c1a3e-2d7b-4c55-9a4e-3b2f0e8d9c10",
    "email": "alice@example.com",
    "role": "user",
    "two_factor_complete": True,
    "issued_at": "2026-01-01T00:00:00Z",
    "expires_at": "2026-01-01T01:00:00Z",
}


def make_client(tmp_path, handler, logouts):
    scheduler = FakeScheduler()
    timer = ClientExpiryTimer(
        ClientStateStore(tmp_path / "session.json"),
        scheduler,
        clock=FakeClock(T0),
        on_logout=logouts.append,
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://portal.test")
    return AuthClient(http, timer), scheduler


def json_response(status_code: int, body: dict, headers: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/login"):
            return httpx.Response(200, json=SESSION_BODY)
        return httpx.Response(status_code, json=body, headers=headers)

    return handler


class TestLogin:
    async def test_login_starts_timer(self, tmp_path):
        logouts = []
        client, scheduler = make_client(tmp_path, json_response(200, SESSION_INFO), logouts)

        result = await client.login("alice@example.com", "secret")

        assert result.status == "authenticated"
        assert client.timer.token == "server-token"
        assert [h.delay for h in scheduler.pending] == [3600]

    async def test_pending_login_does_not_start_timer(self, tmp_path):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "status": "pending",
                    "pending": {"pending_token": "p", "expires_at": "2026-01-01T00:10:00Z"},
                },
            )

        client, scheduler = make_client(tmp_path, handler, [])
        result = await client.login("alice@example.com", "secret")

        assert result.pending.pending_token == "p"
        assert client.timer.token is None
        assert scheduler.handles == []

    async def test_rejected_login_raises(self, tmp_path):
        def handler(request):
            return httpx.Response(
                429,
                json={"detail": "Too many failed attempts. Try again later.", "code": "too_many_attempts"},
                headers={"Retry-After": "120"},
            )

        client, _ = make_client(tmp_path, handler, [])
        with pytest.raises(AuthApiError) as exc_info:
            await client.login("alice@example.com", "secret")

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "too_many_attempts"
        assert exc_info.value.retry_after == 120


class TestLogoutSignals:
    async def test_401_forces_logout(self, tmp_path):
        logouts = []
        client, _ = make_client(
            tmp_path, json_response(401, {"detail": "Session expired", "code": "session_expired"}), logouts
        )
        await client.login("alice@example.com", "secret")

        assert await client.validate_session() is None
        assert logouts == [LogoutReason.SESSION_INVALID]
        assert client.timer.token is None

    @pytest.mark.parametrize(
        ("status_code", "code"),
        [(403, "forbidden"), (500, "internal_error"), (503, "service_unavailable")],
    )
    async def test_other_errors_keep_session(self, tmp_path, status_code, code):
        logouts = []
        client, _ = make_client(tmp_path, json_response(status_code, {"detail": "x", "code": code}), logouts)
        await client.login("alice@example.com", "secret")

        with pytest.raises(AuthApiError) as exc_info:
            await client.validate_session()

        assert exc_info.value.code == code
        assert logouts == []
        assert client.timer.token == "server-token"

    async def test_valid_session(self, tmp_path):
        client, _ = make_client(tmp_path, json_response(200, SESSION_INFO), [])
        await client.login("alice@example.com", "secret")

        info = await client.validate_session()
        assert info.email == "alice@example.com"

    async def test_unauthenticated_401_is_not_a_logout(self, tmp_path):
        logouts = []
        client, _ = make_client(tmp_path, json_response(401, {"code": "session_expired"}), logouts)

        response = await client.request("GET", "/api/v1/auth/session")
        assert response.status_code == 401
        assert logouts == []


class TestExplicitLogout:
    async def test_logout_sends_token_and_clears(self, tmp_path):
        seen = []

        def handler(request):
            seen.append((request.url.path, request.headers.get("Authorization")))
            if request.url.path.endswith("/login"):
                return httpx.Response(200, json=SESSION_BODY)
            return httpx.Response(200, json={"message": "Logged out"})

        logouts = []
        client, _ = make_client(tmp_path, handler, logouts)
        await client.login("alice@example.com", "secret")
        await client.logout()

        assert seen[-1] == ("/api/v1/auth/logout", "Bearer server-token")
        assert logouts == [LogoutReason.USER]

    async def test_logout_survives_unreachable_server(self, tmp_path):
        def handler(request):
            if request.url.path.endswith("/login"):
                return httpx.Response(200, json=SESSION_BODY)
            raise httpx.ConnectError("down", request=request)

        logouts = []
        client, _ = make_client(tmp_path, handler, logouts)
        await client.login("alice@example.com", "secret")
        await client.logout()

        assert logouts == [LogoutReason.USER]
        assert client.timer.token is None
