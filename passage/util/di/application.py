"""Application layer DI providers."""

from dishka import Scope, provide

from passage.application.session import RedirectListener, SessionStateMachine
from passage.config import AuthSettings
from passage.domain.service import (
    AuthService,
    CredentialAuthority,
    IdentityReconciliationEngine,
    ProfileService,
)
from passage.util.di.base import ProviderBase


class ProdApplicationProvider(ProviderBase):
    """Production application provider - concrete, no mocks needed.

    The redirect listener and the session machine are process-wide.
    """

    scope = Scope.APP

    @provide
    def get_redirect_listener(self) -> RedirectListener:
        """Provide the redirect channel fed by the callback endpoint."""
        return RedirectListener()

    @provide
    def get_session_state_machine(
        self,
        engine: IdentityReconciliationEngine,
        auth_service: AuthService,
        authority: CredentialAuthority,
        profile_service: ProfileService,
        listener: RedirectListener,
        auth_settings: AuthSettings,
    ) -> SessionStateMachine:
        """Provide session state machine."""
        return SessionStateMachine(
            engine=engine,
            auth_service=auth_service,
            authority=authority,
            profile_service=profile_service,
            listener=listener,
            settings=auth_settings,
        )
