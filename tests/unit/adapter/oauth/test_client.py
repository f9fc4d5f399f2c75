"""Unit tests for the OAuth 2.0 + PKCE client."""

import base64
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from passage.adapter.oauth import (
    GOOGLE,
    TWITTER,
    AttemptStatus,
    InMemoryAttemptStore,
    OAuth2PKCEClient,
    pkce,
)
from passage.domain.error import (
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    IdentityFetchFailedError,
    MissingCodeError,
    NetworkUnavailableError,
    ReplayedCallbackError,
    StateMismatchError,
    TokenExchangeFailedError,
)
from passage.domain.value import AuthProvider

REDIRECT_URI = "passage://auth/twitter"

TWITTER_ME = {
    "data": {
        "id": "2244994945",
        "name": "Alice",
        "username": "alice_tw",
        "profile_image_url": "https://pbs.twimg.com/profile_images/1/a_normal.jpg",
        "verified": True,
    }
}


class FakeProvider:
    """Records requests and answers token and identity calls."""

    def __init__(
        self,
        token_status: int = 200,
        token_body: dict | None = None,
        identity_status: int = 200,
        identity_body: dict | None = None,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self.token_status = token_status
        self.token_body = token_body if token_body is not None else {"access_token": "at-1"}
        self.identity_status = identity_status
        self.identity_body = identity_body if identity_body is not None else TWITTER_ME

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            return httpx.Response(self.token_status, json=self.token_body)
        return httpx.Response(self.identity_status, json=self.identity_body)


def make_client(
    handler,
    profile=TWITTER,
    authorization_timeout: timedelta = timedelta(seconds=120),
) -> OAuth2PKCEClient:
    return OAuth2PKCEClient(
        profile=profile,
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=f"passage://auth/{profile.provider.value}",
        attempt_store=InMemoryAttemptStore(),
        authorization_timeout=authorization_timeout,
        transport=httpx.MockTransport(handler),
    )


def callback(state: str | None, code: str | None = "code-1", **extra: str) -> str:
    params = {k: v for k, v in {"state": state, "code": code, **extra}.items() if v}
    query = "&".join(f"{k}={v}" for k, v in params.items())
    return f"{REDIRECT_URI}?{query}"


class TestBeginAuthorization:
    """Tests for OAuth2PKCEClient.begin_authorization()."""

    @pytest.mark.asyncio
    async def test_builds_authorization_url(self):
        client = make_client(FakeProvider())

        url, context = await client.begin_authorization()

        parts = urlsplit(url)
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == TWITTER.authorize_url
        assert query == {
            "response_type": "code",
            "client_id": "client-id",
            "redirect_uri": REDIRECT_URI,
            "scope": "tweet.read users.read offline.access",
            "state": context.state,
            "code_challenge": context.challenge,
            "code_challenge_method": "S256",
        }
        assert pkce.verify(context.verifier, context.challenge)

    @pytest.mark.asyncio
    async def test_custom_scopes(self):
        client = make_client(FakeProvider())

        url, _ = await client.begin_authorization(["users.read"])

        assert parse_qs(urlsplit(url).query)["scope"] == ["users.read"]

    @pytest.mark.asyncio
    async def test_each_attempt_has_fresh_state(self):
        client = make_client(FakeProvider())

        _, first = await client.begin_authorization()
        _, second = await client.begin_authorization()

        assert first.state != second.state
        assert sorted(client.attempt_store.pending_states()) == sorted(
            [first.state, second.state]
        )


class TestCompleteAuthorization:
    """Tests for OAuth2PKCEClient.complete_authorization()."""

    @pytest.mark.asyncio
    async def test_exchanges_code_and_fetches_identity(self):
        provider = FakeProvider()
        client = make_client(provider)
        _, context = await client.begin_authorization()

        identity = await client.complete_authorization(callback(context.state))

        assert identity.provider == AuthProvider.TWITTER
        assert identity.provider_user_id == "2244994945"
        assert identity.handle == "alice_tw"
        assert identity.verified is True
        assert identity.avatar_url.endswith("a_400x400.jpg")

        token_request, identity_request = provider.requests
        form = parse_qs(token_request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["code-1"]
        assert form["code_verifier"] == [context.verifier]
        assert form["redirect_uri"] == [REDIRECT_URI]
        # Twitter authenticates confidential clients with HTTP Basic
        expected = base64.b64encode(b"client-id:client-secret").decode()
        assert token_request.headers["Authorization"] == f"Basic {expected}"
        assert identity_request.headers["Authorization"] == "Bearer at-1"
        assert identity_request.url.params["user.fields"].startswith("id,")

    @pytest.mark.asyncio
    async def test_google_sends_client_secret_in_body(self):
        provider = FakeProvider(
            identity_body={
                "sub": "1089",
                "email": "carol@example.com",
                "email_verified": True,
                "name": "Carol",
            }
        )
        client = make_client(provider, profile=GOOGLE)
        _, context = await client.begin_authorization()

        identity = await client.complete_authorization(callback(context.state))

        assert identity.handle == "carol"
        assert identity.email == "carol@example.com"
        form = parse_qs(provider.requests[0].content.decode())
        assert form["client_secret"] == ["client-secret"]
        assert "Authorization" not in provider.requests[0].headers

    @pytest.mark.asyncio
    async def test_unknown_state_is_refused_without_network(self):
        provider = FakeProvider()
        client = make_client(provider)
        await client.begin_authorization()

        with pytest.raises(StateMismatchError):
            await client.complete_authorization(callback("forged-state"))

        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_missing_state_is_refused(self):
        client = make_client(FakeProvider())
        await client.begin_authorization()

        with pytest.raises(StateMismatchError):
            await client.complete_authorization(callback(None))

    @pytest.mark.asyncio
    async def test_second_callback_is_a_replay(self):
        provider = FakeProvider()
        client = make_client(provider)
        _, context = await client.begin_authorization()
        await client.complete_authorization(callback(context.state))

        with pytest.raises(ReplayedCallbackError):
            await client.complete_authorization(callback(context.state))

        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_callback_after_cancel_is_a_replay(self):
        client = make_client(FakeProvider())
        _, context = await client.begin_authorization()
        await client.cancel(context.state)

        with pytest.raises(ReplayedCallbackError):
            await client.complete_authorization(callback(context.state))

    @pytest.mark.asyncio
    async def test_provider_error_is_denied(self):
        client = make_client(FakeProvider())
        _, context = await client.begin_authorization()

        with pytest.raises(AuthorizationDeniedError):
            await client.complete_authorization(
                callback(context.state, code=None, error="access_denied")
            )

        # The attempt is over; the state cannot be reused
        with pytest.raises(ReplayedCallbackError):
            await client.complete_authorization(callback(context.state))

    @pytest.mark.asyncio
    async def test_missing_code(self):
        client = make_client(FakeProvider())
        _, context = await client.begin_authorization()

        with pytest.raises(MissingCodeError):
            await client.complete_authorization(callback(context.state, code=None))

    @pytest.mark.asyncio
    async def test_late_callback_times_out(self):
        provider = FakeProvider()
        client = make_client(provider, authorization_timeout=timedelta(0))
        _, context = await client.begin_authorization()

        with pytest.raises(AuthorizationTimeoutError):
            await client.complete_authorization(callback(context.state))

        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_token_endpoint_rejection(self):
        client = make_client(
            FakeProvider(token_status=400, token_body={"error": "invalid_grant"})
        )
        _, context = await client.begin_authorization()

        with pytest.raises(TokenExchangeFailedError) as exc_info:
            await client.complete_authorization(callback(context.state))

        assert exc_info.value.reason == "HTTP 400"

    @pytest.mark.asyncio
    async def test_token_response_without_access_token(self):
        client = make_client(FakeProvider(token_body={"token_type": "bearer"}))
        _, context = await client.begin_authorization()

        with pytest.raises(TokenExchangeFailedError) as exc_info:
            await client.complete_authorization(callback(context.state))

        assert exc_info.value.reason == "no access token in response"

    @pytest.mark.asyncio
    async def test_identity_endpoint_rejection(self):
        client = make_client(FakeProvider(identity_status=401, identity_body={}))
        _, context = await client.begin_authorization()

        with pytest.raises(IdentityFetchFailedError) as exc_info:
            await client.complete_authorization(callback(context.state))

        assert exc_info.value.reason == "HTTP 401"

    @pytest.mark.asyncio
    async def test_identity_payload_without_user(self):
        client = make_client(FakeProvider(identity_body={"errors": []}))
        _, context = await client.begin_authorization()

        with pytest.raises(IdentityFetchFailedError) as exc_info:
            await client.complete_authorization(callback(context.state))

        assert exc_info.value.reason == "missing user id or handle"

    @pytest.mark.asyncio
    async def test_unreachable_provider(self):
        def offline(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(offline)
        _, context = await client.begin_authorization()

        with pytest.raises(NetworkUnavailableError):
            await client.complete_authorization(callback(context.state))


class TestAttemptStore:
    """Tests for InMemoryAttemptStore tombstones."""

    @pytest.mark.asyncio
    async def test_dismiss_leaves_tombstone(self):
        client = make_client(FakeProvider())
        _, context = await client.begin_authorization()

        await client.dismiss(context.state)

        assert client.attempt_store.pending_states() == []
        assert await client.attempt_store.was_consumed(context.state)

    @pytest.mark.asyncio
    async def test_tombstones_expire(self):
        store = InMemoryAttemptStore(tombstone_ttl=timedelta(0))
        client = OAuth2PKCEClient(
            profile=TWITTER,
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri=REDIRECT_URI,
            attempt_store=store,
        )
        _, context = await client.begin_authorization()
        await client.cancel(context.state)

        assert not await store.was_consumed(context.state)
        # Without the tombstone the state is simply unknown
        with pytest.raises(StateMismatchError):
            await client.complete_authorization(callback(context.state))


    @pytest.mark.asyncio
    async def test_abandoned_attempts_are_evicted(self):
        """Attempts that never see a callback do not pile up."""
        client = make_client(FakeProvider(), authorization_timeout=timedelta(0))
        abandoned = [(await client.begin_authorization())[1] for _ in range(50)]

        await client.begin_authorization()

        assert len(client.attempt_store.pending_states()) == 1
        assert (
            await client.attempt_store.finished_status(abandoned[0].state)
            is AttemptStatus.EXPIRED
        )

    @pytest.mark.asyncio
    async def test_callback_for_evicted_attempt_times_out(self):
        provider = FakeProvider()
        client = make_client(provider, authorization_timeout=timedelta(0))
        _, context = await client.begin_authorization()
        await client.begin_authorization()

        with pytest.raises(AuthorizationTimeoutError):
            await client.complete_authorization(callback(context.state))

        assert provider.requests == []
