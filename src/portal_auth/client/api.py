"""HTTP client for the auth API that keeps the local expiry timer in sync."""

import logging
from typing import Any

import httpx

from portal_auth.client.expiry_timer import ClientExpiryTimer
from portal_auth.models.dto.auth import LoginResponse, SessionInfo

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/v1/auth"


class AuthApiError(Exception):
    """Non-success response from the auth API."""

    def __init__(
        self,
        status_code: int,
        code: str | None,
        detail: Any,
        retry_after: int | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.detail = detail
        self.retry_after = retry_after
        super().__init__(f"{status_code} {code}: {detail}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AuthApiError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        retry_after = response.headers.get("Retry-After")
        return cls(
            status_code=response.status_code,
            code=body.get("code"),
            detail=body.get("detail", response.reason_phrase),
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )


class AuthClient:
    """Async client for the login protocol and authenticated calls.

    Any 401 on a request that carried the bearer token forces a local logout.
    A 403 (valid session, insufficient role) and 5xx responses never do.
    """

    def __init__(self, http: httpx.AsyncClient, timer: ClientExpiryTimer) -> None:
        """Initialize the client.

        Args:
            http: HTTP client configured with the API base URL
            timer: Expiry timer holding the local session
        """
        self.http = http
        self.timer = timer

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, attaching the bearer token when a session is held."""
        token = self.timer.token
        headers = dict(kwargs.pop("headers", None) or {})
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        response = await self.http.request(method, url, headers=headers, **kwargs)

        if response.status_code == httpx.codes.UNAUTHORIZED and token is not None:
            logger.info("Server reported the session invalid, logging out locally")
            self.timer.handle_session_invalid()
        return response

    async def _login_step(self, path: str, payload: dict[str, str]) -> LoginResponse:
        response = await self.http.post(f"{AUTH_PREFIX}{path}", json=payload)
        if response.is_error:
            raise AuthApiError.from_response(response)

        result = LoginResponse.model_validate(response.json())
        if result.status == "authenticated" and result.session is not None:
            self.timer.start(result.session.access_token, result.session.expires_in)
        return result

    async def login(self, email: str, password: str) -> LoginResponse:
        """Password step; starts the expiry timer when a session is issued.

        Raises:
            AuthApiError: On rejection
        """
        return await self._login_step("/login", {"email": email, "password": password})

    async def complete_second_factor(self, pending_token: str, code: str) -> LoginResponse:
        """Second-factor step; starts the expiry timer on success.

        Raises:
            AuthApiError: On rejection
        """
        return await self._login_step(
            "/second-factor", {"pending_token": pending_token, "code": code}
        )

    async def validate_session(self) -> SessionInfo | None:
        """Ask the server whether the held session is still valid.

        Returns:
            SessionInfo, or None if no session is held or the server rejected it

        Raises:
            AuthApiError: On errors other than an invalid session
        """
        if self.timer.token is None:
            return None

        response = await self.request("GET", f"{AUTH_PREFIX}/session")
        if response.status_code == httpx.codes.UNAUTHORIZED:
            return None
        if response.is_error:
            raise AuthApiError.from_response(response)
        return SessionInfo.model_validate(response.json())

    async def logout(self) -> None:
        """Log out on the server, then locally.

        The local session is dropped even when the server cannot be reached.
        """
        token = self.timer.token
        if token is not None:
            try:
                await self.http.post(
                    f"{AUTH_PREFIX}/logout",
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                logger.warning("Server logout failed: %s", type(e).__name__)
        self.timer.logout()
