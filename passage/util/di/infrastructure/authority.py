"""Credential authority infrastructure providers."""

from dishka import Scope, provide

from passage.adapter.authority import GoTrueCredentialAuthority
from passage.config import Settings
from passage.domain.service import CredentialAuthority
from passage.util.di.base import ProviderBase
from passage.util.error import ConfigurationError


class AuthorityProvider(ProviderBase):
    """Credential authority component base."""

    __mock_component__ = "authority"


class ProdAuthorityProvider(AuthorityProvider):
    """Production credential authority provider (GoTrue REST)."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    def get_credential_authority(self, settings: Settings) -> CredentialAuthority:
        """Provide GoTrue credential authority client.

        Raises:
            ConfigurationError: If the authority URL is not configured
        """
        if not settings.authority.url:
            raise ConfigurationError("Credential authority URL must be configured")

        return GoTrueCredentialAuthority(
            url=settings.authority.url,
            api_key=settings.authority.api_key,
            timeout=settings.authority.timeout_seconds,
            retries=settings.authority.retries,
        )
