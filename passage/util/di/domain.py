"""Domain layer DI providers."""

from dishka import Scope, provide

from passage.config import AuthSettings, BridgeSettings, HandleSettings
from passage.domain.repository import ProfileRepository
from passage.domain.service import (
    AuthService,
    CredentialAuthority,
    CredentialBridge,
    HandleAllocator,
    IdentityReconciliationEngine,
    OAuthClient,
    ProfileService,
)
from passage.domain.value import AuthProvider
from passage.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Production domain services provider - concrete, no mocks needed.

    Domain services are APP-scoped: the session machine that uses them lives
    for the whole process, and repositories open a session per operation.
    """

    scope = Scope.APP

    @provide
    def get_auth_service(
        self,
        oauth_clients: dict[AuthProvider, OAuthClient],
        auth_settings: AuthSettings,
    ) -> AuthService:
        """Provide multi-provider authentication domain service.

        Args:
            oauth_clients: Dictionary mapping providers to their OAuth clients
            auth_settings: Auth settings (redirect base)

        Returns:
            AuthService configured with all available OAuth clients
        """
        return AuthService(
            oauth_clients=oauth_clients, redirect_base=auth_settings.redirect_base
        )

    @provide
    def get_profile_service(
        self, profile_repository: ProfileRepository
    ) -> ProfileService:
        """Provide profile domain service."""
        return ProfileService(profile_repository=profile_repository)

    @provide
    def get_credential_bridge(
        self, authority: CredentialAuthority, bridge_settings: BridgeSettings
    ) -> CredentialBridge:
        """Provide credential bridge."""
        return CredentialBridge(authority=authority, settings=bridge_settings)

    @provide
    def get_handle_allocator(
        self, profile_repository: ProfileRepository, handle_settings: HandleSettings
    ) -> HandleAllocator:
        """Provide handle allocator."""
        return HandleAllocator(
            profile_repository=profile_repository, settings=handle_settings
        )

    @provide
    def get_reconciliation_engine(
        self,
        authority: CredentialAuthority,
        profile_repository: ProfileRepository,
        profile_service: ProfileService,
        bridge: CredentialBridge,
        handle_allocator: HandleAllocator,
        bridge_settings: BridgeSettings,
    ) -> IdentityReconciliationEngine:
        """Provide identity reconciliation engine."""
        return IdentityReconciliationEngine(
            authority=authority,
            profile_repository=profile_repository,
            profile_service=profile_service,
            bridge=bridge,
            handle_allocator=handle_allocator,
            settings=bridge_settings,
        )
