"""Mock credential authority providers for testing."""

from dishka import Scope, provide

from passage.adapter.authority import InMemoryCredentialAuthority
from passage.domain.service import CredentialAuthority
from passage.util.di.infrastructure.authority import AuthorityProvider


class MockAuthorityProvider(AuthorityProvider):
    """Mock authority provider using the in-memory authority."""

    __is_mock__ = True

    @provide(scope=Scope.APP)
    def get_credential_authority(self) -> CredentialAuthority:
        """Provide in-memory credential authority."""
        return InMemoryCredentialAuthority()
