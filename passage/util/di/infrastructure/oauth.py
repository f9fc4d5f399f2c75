"""OAuth infrastructure providers for multi-provider authentication."""

from datetime import timedelta

import logfire
from dishka import Scope, provide

from passage.adapter.oauth import PROFILES, InMemoryAttemptStore, OAuth2PKCEClient
from passage.config import Settings
from passage.domain.service import OAuthClient
from passage.domain.value import AuthProvider
from passage.util.di.base import ProviderBase


class OAuthProvider(ProviderBase):
    """OAuth component base."""

    __mock_component__ = "oauth"


class ProdOAuthProvider(OAuthProvider):
    """Production OAuth provider."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_oauth_clients(self, settings: Settings) -> dict[AuthProvider, OAuthClient]:
        """Provide dictionary of OAuth clients for every configured provider.

        Providers without client credentials are left out, so a deployment
        can enable only the providers it has registered with.

        Returns:
            Dictionary mapping AuthProvider to OAuthClient
        """
        credentials = {
            AuthProvider.TWITTER: settings.auth.twitter,
            AuthProvider.GOOGLE: settings.auth.google,
        }
        clients: dict[AuthProvider, OAuthClient] = {}
        for provider, creds in credentials.items():
            if not creds.client_id or not creds.client_secret:
                logfire.warn("OAuth provider not configured", provider=provider.value)
                continue
            clients[provider] = OAuth2PKCEClient(
                profile=PROFILES[provider],
                client_id=creds.client_id,
                client_secret=creds.client_secret,
                redirect_uri=settings.auth.redirect_uri(provider),
                attempt_store=InMemoryAttemptStore(
                    timedelta(seconds=settings.auth.consumed_state_ttl_seconds)
                ),
                authorization_timeout=timedelta(
                    seconds=settings.auth.authorization_timeout_seconds
                ),
            )
        return clients
