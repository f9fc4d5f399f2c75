"""GoTrue-compatible credential authority client.

Talks to the `/auth/v1` REST surface (Supabase Auth and self-hosted GoTrue).
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import logfire

from passage.adapter.authority.base import LocalSessionAuthority
from passage.adapter.error import AuthorityError
from passage.domain.error import (
    AlreadyRegisteredError,
    InvalidCredentialsError,
    NetworkUnavailableError,
)
from passage.domain.value import AuthEvent, AuthoritySession, ProfileId

_ALREADY_REGISTERED_CODES = {"user_already_exists", "email_exists"}


def _error_detail(response: httpx.Response) -> tuple[str | None, str]:
    """Pull (error_code, message) out of a GoTrue error body."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text
    if not isinstance(body, dict):
        return None, response.text
    code = body.get("error_code") or body.get("error")
    message = (
        body.get("msg")
        or body.get("message")
        or body.get("error_description")
        or response.text
    )
    return code, message


def parse_session(payload: dict[str, Any]) -> AuthoritySession:
    """Map a GoTrue token response to an AuthoritySession.

    Raises:
        KeyError: If the payload has no user or access token
    """
    user = payload["user"]
    expires_at = payload.get("expires_at")
    if expires_at is not None:
        expiry = datetime.fromtimestamp(expires_at, tz=timezone.utc)
    elif payload.get("expires_in") is not None:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=payload["expires_in"])
    else:
        expiry = None
    return AuthoritySession(
        user_id=ProfileId(user["id"]),
        email=user.get("email") or "",
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token"),
        expires_at=expiry,
        user_metadata=user.get("user_metadata") or {},
    )


class GoTrueCredentialAuthority(LocalSessionAuthority):
    """Credential authority backed by a GoTrue server.

    Session-change notifications are emitted locally after each successful
    call; the server has no push channel for a backend process.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 30.0,
        retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize GoTrue client.

        Args:
            url: Base URL of the authority (without `/auth/v1`)
            api_key: Project API key, sent as the `apikey` header
            timeout: HTTP timeout in seconds
            retries: Connection retries for each request
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        super().__init__()
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.retries = retries
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        # Fresh transport per client: closing the client closes its transport
        transport = self._transport or httpx.AsyncHTTPTransport(retries=self.retries)
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1",
            transport=transport,
            timeout=self.timeout,
            headers={"apikey": self.api_key},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {access_token or self.api_key}"}
        try:
            async with self._http() as client:
                return await client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logfire.error("Authority unreachable", path=path, error=str(e))
            raise NetworkUnavailableError(
                "Unable to reach the authentication service"
            ) from e

    def _session_from(self, response: httpx.Response) -> AuthoritySession:
        try:
            return parse_session(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise AuthorityError(
                "Authority returned an unusable session", response.status_code
            ) from e

    async def sign_in(self, email: str, secret: str) -> AuthoritySession:
        with logfire.span("gotrue.sign_in", email=email):
            response = await self._request(
                "POST",
                "/token",
                params={"grant_type": "password"},
                json={"email": email, "password": secret},
            )
            if response.status_code in (400, 401):
                _, message = _error_detail(response)
                logfire.info("Authority rejected credentials", email=email, reason=message)
                raise InvalidCredentialsError("Invalid email or password")
            if not response.is_success:
                _, message = _error_detail(response)
                logfire.error(
                    "Authority sign-in failed",
                    status_code=response.status_code,
                    error=message,
                )
                raise AuthorityError(message, response.status_code)

            session = self._session_from(response)
            await self._set_session(AuthEvent.SIGNED_IN, session)
            return session

    async def register(
        self, email: str, secret: str, metadata: dict[str, Any] | None = None
    ) -> AuthoritySession:
        with logfire.span("gotrue.register", email=email):
            response = await self._request(
                "POST",
                "/signup",
                json={"email": email, "password": secret, "data": metadata or {}},
            )
            if response.status_code in (400, 422):
                code, message = _error_detail(response)
                if code in _ALREADY_REGISTERED_CODES or "already" in message.lower():
                    raise AlreadyRegisteredError(email)
                logfire.error("Authority refused sign-up", email=email, error=message)
                raise AuthorityError(message, response.status_code)
            if not response.is_success:
                _, message = _error_detail(response)
                logfire.error(
                    "Authority sign-up failed",
                    status_code=response.status_code,
                    error=message,
                )
                raise AuthorityError(message, response.status_code)

            if "access_token" not in response.json():
                # Sign-up without auto-confirm returns only the user
                return await self.sign_in(email, secret)

            session = self._session_from(response)
            await self._set_session(AuthEvent.SIGNED_IN, session)
            return session

    async def sign_out(self, session: AuthoritySession | None = None) -> None:
        target = session or self._session
        await self._set_session(AuthEvent.SIGNED_OUT, None)
        if target is None:
            return

        response = await self._request(
            "POST", "/logout", access_token=target.access_token
        )
        # 401/404: the token was already invalid server-side
        if not response.is_success and response.status_code not in (401, 404):
            _, message = _error_detail(response)
            raise AuthorityError(message, response.status_code)

    async def reset_password(self, email: str) -> None:
        response = await self._request("POST", "/recover", json={"email": email})
        if not response.is_success:
            _, message = _error_detail(response)
            logfire.error(
                "Password reset request failed",
                status_code=response.status_code,
                error=message,
            )
            raise AuthorityError(message, response.status_code)
        logfire.info("Password reset requested", email=email)

    async def check_connection(self) -> bool:
        try:
            response = await self._request("GET", "/health")
        except NetworkUnavailableError:
            return False
        return response.is_success
