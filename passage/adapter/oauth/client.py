"""OAuth 2.0 client implementation.

Implements the Authorization Code flow with PKCE for any provider described
by a `ProviderProfile`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import logfire

from passage.adapter.oauth import pkce
from passage.adapter.oauth.attempt import (
    AttemptStatus,
    AttemptStore,
    AuthorizationAttempt,
    InMemoryAttemptStore,
)
from passage.adapter.oauth.providers import ProviderProfile
from passage.domain.error import (
    AuthError,
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    IdentityFetchFailedError,
    MissingCodeError,
    NetworkUnavailableError,
    ReplayedCallbackError,
    StateMismatchError,
    TokenExchangeFailedError,
)
from passage.domain.service.auth_service import OAuthClient
from passage.domain.value import AuthProvider, PKCEContext, ProviderIdentity


@dataclass(frozen=True)
class CallbackParams:
    """Query parameters carried by a provider redirect."""

    code: str | None
    state: str | None
    error: str | None
    error_description: str | None


def parse_callback(callback_url: str) -> CallbackParams:
    """Extract OAuth parameters from a redirect URL."""
    query = parse_qs(urlsplit(callback_url).query)

    def first(key: str) -> str | None:
        values = query.get(key)
        return values[0] if values else None

    return CallbackParams(
        code=first("code"),
        state=first("state"),
        error=first("error"),
        error_description=first("error_description"),
    )


class OAuth2PKCEClient(OAuthClient):
    """OAuth 2.0 client with PKCE support.

    One instance per provider. Attempts are keyed by their state token and
    consumed exactly once through the attempt store, so a second callback for
    the same state is refused as a replay.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        attempt_store: AttemptStore | None = None,
        authorization_timeout: timedelta = timedelta(seconds=120),
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize OAuth client.

        Args:
            profile: Provider endpoints, scopes and payload parsing
            client_id: OAuth client ID
            client_secret: OAuth client secret
            redirect_uri: Callback URL registered with the provider
            attempt_store: Storage for pending attempts
            authorization_timeout: Deadline for the redirect after begin
            transport: Optional httpx transport (tests pass a MockTransport)
            timeout: HTTP timeout in seconds
        """
        self.profile = profile
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.attempt_store = attempt_store or InMemoryAttemptStore()
        self.authorization_timeout = authorization_timeout
        self.timeout = timeout
        self._transport = transport

    @property
    def provider(self) -> AuthProvider:  # type: ignore[override]
        return self.profile.provider

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    async def begin_authorization(
        self, scopes: list[str] | None = None
    ) -> tuple[str, PKCEContext]:
        """Build the authorization URL and record the attempt.

        Args:
            scopes: Scopes to request, provider defaults if None

        Returns:
            Tuple of (authorization URL, PKCE context)
        """
        context = pkce.generate()
        now = datetime.now(timezone.utc)
        attempt = AuthorizationAttempt(
            provider=self.provider,
            pkce=context,
            status=AttemptStatus.AUTHORIZATION_REQUESTED,
            created_at=now,
            expires_at=now + self.authorization_timeout,
        )

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(scopes or self.profile.default_scopes),
            "state": context.state,
            "code_challenge": context.challenge,
            "code_challenge_method": "S256",
        }
        auth_url = f"{self.profile.authorize_url}?{urlencode(params)}"

        attempt.status = AttemptStatus.CALLBACK_AWAITED
        await self.attempt_store.save(attempt)

        logfire.info(
            "OAuth authorization initiated",
            provider=self.provider.value,
            state=context.state,
            redirect_uri=self.redirect_uri,
        )
        return auth_url, context

    async def complete_authorization(self, callback_url: str) -> ProviderIdentity:
        """Complete the flow from the provider's redirect.

        Raises:
            AuthorizationDeniedError: Provider returned an `error`
            ReplayedCallbackError: State belongs to an attempt that already ended
            StateMismatchError: State was never issued by this client
            AuthorizationTimeoutError: Callback arrived after the deadline
            MissingCodeError: No authorization code in the callback
            TokenExchangeFailedError: Token endpoint refused the code
            IdentityFetchFailedError: Identity endpoint failed
            NetworkUnavailableError: Provider unreachable
        """
        params = parse_callback(callback_url)

        with logfire.span(
            "oauth_client.complete_authorization", provider=self.provider.value
        ):
            if params.error:
                if params.state:
                    await self.attempt_store.discard(
                        params.state, AttemptStatus.ERRORED
                    )
                logfire.info(
                    "OAuth authorization denied",
                    provider=self.provider.value,
                    error=params.error,
                )
                raise AuthorizationDeniedError(
                    params.error_description or params.error
                )

            finished = (
                await self.attempt_store.finished_status(params.state)
                if params.state
                else None
            )
            if finished is AttemptStatus.EXPIRED:
                raise AuthorizationTimeoutError("Authorization timed out")
            if finished is not None:
                logfire.warn(
                    "OAuth callback replayed",
                    provider=self.provider.value,
                    state=params.state,
                    security=True,
                )
                raise ReplayedCallbackError("Authorization callback already used")

            attempt = (
                await self.attempt_store.take(params.state) if params.state else None
            )
            if attempt is None:
                logfire.warn(
                    "OAuth callback state mismatch",
                    provider=self.provider.value,
                    state=params.state,
                    security=True,
                )
                raise StateMismatchError("Authorization state does not match")

            if attempt.expired():
                attempt.status = AttemptStatus.ERRORED
                raise AuthorizationTimeoutError("Authorization timed out")

            if not params.code:
                attempt.status = AttemptStatus.ERRORED
                raise MissingCodeError("No authorization code received")

            attempt.status = AttemptStatus.CODE_RECEIVED
            try:
                access_token = await self.exchange_code(
                    params.code, attempt.pkce.verifier
                )
                attempt.status = AttemptStatus.TOKEN_EXCHANGED
                identity = await self.fetch_identity(access_token)
                attempt.status = AttemptStatus.USER_FETCHED
            except AuthError:
                attempt.status = AttemptStatus.ERRORED
                raise

            attempt.status = AttemptStatus.DONE
            logfire.info(
                "OAuth authorization completed",
                provider=self.provider.value,
                provider_user_id=identity.provider_user_id,
                handle=identity.handle,
            )
            return identity

    async def exchange_code(self, code: str, verifier: str) -> str:
        """Exchange authorization code for access token.

        Args:
            code: Authorization code from callback
            verifier: PKCE code verifier of the attempt

        Returns:
            Access token

        Raises:
            TokenExchangeFailedError: If the token endpoint refuses the code
            NetworkUnavailableError: If the provider cannot be reached
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": verifier,
            "client_id": self.client_id,
        }
        auth = None
        if self.profile.client_auth == "basic":
            auth = (self.client_id, self.client_secret)
        else:
            data["client_secret"] = self.client_secret

        try:
            async with self._http() as client:
                response = await client.post(
                    self.profile.token_url,
                    data=data,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.TransportError as e:
            logfire.error(
                "OAuth token exchange HTTP error",
                provider=self.provider.value,
                error=str(e),
            )
            raise NetworkUnavailableError(
                f"Unable to reach {self.provider.value}"
            ) from e

        if not response.is_success:
            logfire.error(
                "OAuth token exchange failed",
                provider=self.provider.value,
                status_code=response.status_code,
                error=response.text,
            )
            raise TokenExchangeFailedError(f"HTTP {response.status_code}")

        try:
            return response.json()["access_token"]
        except (ValueError, KeyError) as e:
            raise TokenExchangeFailedError("no access token in response") from e

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        """Get the signed-in user from the provider.

        Raises:
            IdentityFetchFailedError: On non-2xx or an unusable payload
            NetworkUnavailableError: If the provider cannot be reached
        """
        try:
            async with self._http() as client:
                response = await client.get(
                    self.profile.identity_url,
                    params=self.profile.identity_params,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.TransportError as e:
            logfire.error(
                "OAuth identity HTTP error",
                provider=self.provider.value,
                error=str(e),
            )
            raise NetworkUnavailableError(
                f"Unable to reach {self.provider.value}"
            ) from e

        if not response.is_success:
            logfire.error(
                "OAuth identity request failed",
                provider=self.provider.value,
                status_code=response.status_code,
                error=response.text,
            )
            raise IdentityFetchFailedError(f"HTTP {response.status_code}")

        try:
            return self.profile.parse_identity(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logfire.error(
                "OAuth identity payload unusable",
                provider=self.provider.value,
                error=str(e),
            )
            raise IdentityFetchFailedError("missing user id or handle") from e

    async def cancel(self, state: str) -> None:
        attempt = await self.attempt_store.discard(state, AttemptStatus.CANCELLED)
        if attempt:
            logfire.info(
                "OAuth authorization cancelled",
                provider=self.provider.value,
                state=state,
            )

    async def dismiss(self, state: str) -> None:
        attempt = await self.attempt_store.discard(state, AttemptStatus.DISMISSED)
        if attempt:
            logfire.info(
                "OAuth authorization dismissed",
                provider=self.provider.value,
                state=state,
            )


class MockOAuthClient(OAuth2PKCEClient):
    """Mock OAuth client for testing.

    Runs the real attempt bookkeeping (state, replay, timeout checks) but
    returns a fixed identity instead of calling the provider.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        identity: ProviderIdentity | None = None,
        redirect_uri: str | None = None,
        attempt_store: AttemptStore | None = None,
        authorization_timeout: timedelta = timedelta(seconds=120),
    ) -> None:
        super().__init__(
            profile=profile,
            client_id="mock-client-id",
            client_secret="mock-client-secret",
            redirect_uri=redirect_uri or f"passage://auth/{profile.provider.value}",
            attempt_store=attempt_store,
            authorization_timeout=authorization_timeout,
        )
        self.identity = identity or ProviderIdentity(
            provider=profile.provider,
            provider_user_id=f"mock{profile.provider.value}123",
            handle="mockuser",
            display_name=f"Mock {profile.provider.value.title()} User",
            email=f"mock@{profile.provider.value}.example",
            avatar_url="https://example.com/avatar.jpg",
            verified=False,
        )

    async def exchange_code(self, code: str, verifier: str) -> str:
        return f"mock-access-token-{code}"

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        return self.identity
