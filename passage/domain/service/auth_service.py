"""Federated authentication domain service."""

from passage.domain.value.types import AuthProvider, PKCEContext, ProviderIdentity

from .base import Service


class OAuthClient:
    """Generic OAuth 2.0 + PKCE client interface for all providers."""

    provider: AuthProvider

    async def begin_authorization(
        self, scopes: list[str] | None = None
    ) -> tuple[str, PKCEContext]:
        """Start an authorization attempt.

        Args:
            scopes: Scopes to request, provider defaults if None

        Returns:
            Tuple of (authorization URL to open, PKCE context of the attempt)
        """
        raise NotImplementedError

    async def complete_authorization(self, callback_url: str) -> ProviderIdentity:
        """Complete an attempt from the provider's redirect.

        Args:
            callback_url: Full redirect URL including its query string

        Returns:
            Identity asserted by the provider

        Raises:
            AuthError: For every refusal of the callback or failed provider call
        """
        raise NotImplementedError

    async def cancel(self, state: str) -> None:
        """Abandon the attempt for `state`; a later callback is refused."""
        raise NotImplementedError

    async def dismiss(self, state: str) -> None:
        """Record that the browser closed without redirecting."""
        raise NotImplementedError


class AuthService(Service):
    """Domain service for multi-provider federated authentication.

    Dispatches to the per-provider OAuth client and works out which provider a
    redirect belongs to from its fixed redirect URI.
    """

    def __init__(
        self, oauth_clients: dict[AuthProvider, OAuthClient], redirect_base: str
    ) -> None:
        """Initialize auth service.

        Args:
            oauth_clients: Map of provider to OAuth client implementation
            redirect_base: Redirect URIs are `<redirect_base>/<provider>`
        """
        self.oauth_clients = oauth_clients
        self.redirect_base = redirect_base.rstrip("/")

    def client_for(self, provider: AuthProvider) -> OAuthClient:
        """Get the OAuth client for `provider`.

        Raises:
            ValueError: If provider not supported
        """
        client = self.oauth_clients.get(provider)
        if not client:
            raise ValueError(f"Unsupported provider: {provider}")
        return client

    @property
    def providers(self) -> list[AuthProvider]:
        return list(self.oauth_clients)

    async def initiate_login(
        self, provider: AuthProvider, scopes: list[str] | None = None
    ) -> tuple[str, PKCEContext]:
        """Initiate OAuth login flow for any provider.

        Returns:
            Authorization URL to open and the attempt's PKCE context

        Raises:
            ValueError: If provider not supported
        """
        return await self.client_for(provider).begin_authorization(scopes)

    async def complete_login(
        self, provider: AuthProvider, callback_url: str
    ) -> ProviderIdentity:
        """Complete OAuth login flow for any provider.

        Raises:
            ValueError: If provider not supported
            AuthError: If the callback is refused or a provider call fails
        """
        return await self.client_for(provider).complete_authorization(callback_url)

    async def cancel(self, provider: AuthProvider, state: str) -> None:
        await self.client_for(provider).cancel(state)

    async def dismiss(self, provider: AuthProvider, state: str) -> None:
        await self.client_for(provider).dismiss(state)

    def provider_for_url(self, url: str) -> AuthProvider | None:
        """Resolve the provider whose redirect URI `url` was sent to.

        Returns None for URLs outside `<redirect_base>/` or for providers
        without a configured client.
        """
        path = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
        prefix = f"{self.redirect_base}/"
        if not path.startswith(prefix):
            return None
        try:
            provider = AuthProvider(path[len(prefix) :])
        except ValueError:
            return None
        return provider if provider in self.oauth_clients else None
