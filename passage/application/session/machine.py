"""Session state machine.

Tracks the caller-visible authentication state and drives every sign-in
path through the reconciliation engine:

    INITIALIZING --start()--> AUTHENTICATED | UNAUTHENTICATED
    UNAUTHENTICATED <--> AUTHENTICATED

Authority session-change notifications and provider redirects both land
here. Engine failures always end in UNAUTHENTICATED; refusals at the
authorization stage (state mismatch, replay, denial, timeout) leave an
authenticated session alone.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import logfire

from passage.adapter.oauth.client import parse_callback
from passage.application.session.listener import (
    BrowserOpener,
    RedirectListener,
    open_system_browser,
)
from passage.application.session.state import (
    AuthOutcome,
    SessionSnapshot,
    SessionState,
)
from passage.config import AuthSettings
from passage.domain.error import (
    SECURITY_RELEVANT,
    AuthError,
    AuthorizationDeniedError,
    AuthorizationTimeoutError,
    DomainError,
    NetworkUnavailableError,
    NotFoundError,
    RepositoryError,
    StateMismatchError,
    UniqueViolationError,
    ValidationError,
)
from passage.domain.model.profile import Profile
from passage.domain.model.reconciliation import ReconciliationResult
from passage.domain.service import (
    AuthService,
    CredentialAuthority,
    IdentityReconciliationEngine,
    ProfileService,
    Unsubscribe,
)
from passage.domain.value import AuthEvent, AuthoritySession, AuthProvider, ErrorKind

SnapshotObserver = Callable[[SessionSnapshot], Awaitable[None]]
FederatedSignInCallback = Callable[[Profile, AuthProvider], Awaitable[None]]


class SessionStateMachine:
    """Process-wide authentication state.

    One instance per process. Its lifecycle owns the redirect listener
    registration and the authority subscription: both are set up in
    `start` and removed in `stop`.
    """

    def __init__(
        self,
        engine: IdentityReconciliationEngine,
        auth_service: AuthService,
        authority: CredentialAuthority,
        profile_service: ProfileService,
        listener: RedirectListener,
        settings: AuthSettings,
        browser: BrowserOpener = open_system_browser,
        on_federated_sign_in: Optional[FederatedSignInCallback] = None,
    ) -> None:
        """Initialize session state machine.

        Args:
            engine: Identity reconciliation engine
            auth_service: Federated authentication dispatch
            authority: Credential authority (session notifications, sign-out)
            profile_service: Profile operations (offline flag, edits)
            listener: Redirect channel fed by the callback endpoint
            settings: Auth settings (authorization timeout)
            browser: Opens authorization URLs for interactive sign-in
            on_federated_sign_in: Receives the federated-sign-in-complete
                signal, e.g. to navigate to a landing view
        """
        self.engine = engine
        self.auth_service = auth_service
        self.authority = authority
        self.profile_service = profile_service
        self.listener = listener
        self.settings = settings
        self.browser = browser
        self.on_federated_sign_in = on_federated_sign_in

        self._state = SessionState.INITIALIZING
        self._profile: Optional[Profile] = None
        self._session: Optional[AuthoritySession] = None
        self._error_kind: Optional[ErrorKind] = None
        self._error: Optional[str] = None

        self._observers: list[SnapshotObserver] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self._waiters: dict[str, tuple[AuthProvider, asyncio.Future[AuthOutcome]]] = {}
        self._busy = 0

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def session(self) -> Optional[AuthoritySession]:
        return self._session

    @property
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            profile=self._profile,
            session=self._session,
            error_kind=self._error_kind,
            error=self._error,
        )

    def subscribe(self, observer: SnapshotObserver) -> Unsubscribe:
        """Register an observer called with a snapshot after every transition."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _transition(
        self,
        state: SessionState,
        profile: Optional[Profile] = None,
        session: Optional[AuthoritySession] = None,
        error_kind: Optional[ErrorKind] = None,
        error: Optional[str] = None,
    ) -> None:
        previous = self._state
        self._state = state
        self._profile = profile
        self._session = session
        self._error_kind = error_kind
        self._error = error
        logfire.info(
            "Session state changed",
            previous=previous.value,
            state=state.value,
            profile_id=str(profile.id) if profile else None,
            error_kind=error_kind.value if error_kind else None,
        )
        snapshot = self.snapshot
        for observer in list(self._observers):
            await observer(snapshot)

    @asynccontextmanager
    async def _operation(self) -> AsyncIterator[None]:
        # Authority notifications caused by our own calls are ignored meanwhile
        self._busy += 1
        try:
            yield
        finally:
            self._busy -= 1

    async def _apply(self, result: ReconciliationResult) -> AuthOutcome:
        """Transition on an engine result."""
        if not result.ok:
            await self._transition(
                SessionState.UNAUTHENTICATED,
                error_kind=result.error_kind,
                error=result.message,
            )
            return AuthOutcome.failure(result.message, result.error_kind)

        await self._transition(
            SessionState.AUTHENTICATED, profile=result.profile, session=result.session
        )
        if result.provider and self.on_federated_sign_in:
            await self.on_federated_sign_in(result.profile, result.provider)
        return AuthOutcome.success()

    async def _refuse(self, error: AuthError) -> AuthOutcome:
        """Record an authorization-stage refusal without touching a live session."""
        if error.kind in SECURITY_RELEVANT:
            logfire.warn(
                "Authorization refused",
                kind=error.kind.value,
                reason=error.message,
                security=True,
            )
        else:
            logfire.info(
                "Authorization failed", kind=error.kind.value, reason=error.message
            )

        if self._state is SessionState.AUTHENTICATED:
            self._error_kind = error.kind
            self._error = error.message
        else:
            await self._transition(
                SessionState.UNAUTHENTICATED, error_kind=error.kind, error=error.message
            )
        return AuthOutcome.failure(error.message, error.kind)

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> AuthOutcome:
        """Install the redirect handler, subscribe, and restore any session."""
        self.listener.install(self.handle_redirect)
        if self._unsubscribe is None:
            self._unsubscribe = self.authority.on_session_change(
                self._on_authority_event
            )

        with logfire.span("session_machine.start"):
            async with self._operation():
                try:
                    if not await self.authority.check_connection():
                        error = NetworkUnavailableError(
                            "Unable to reach the authentication service"
                        )
                        await self._transition(
                            SessionState.UNAUTHENTICATED,
                            error_kind=error.kind,
                            error=error.message,
                        )
                        return AuthOutcome.failure(error.message, error.kind)

                    session = await self.authority.current_session()
                    if session is None:
                        await self._transition(SessionState.UNAUTHENTICATED)
                        return AuthOutcome.success()

                    return await self._apply(await self.engine.resume_session(session))
                except Exception:
                    if self._state is SessionState.INITIALIZING:
                        await self._transition(SessionState.UNAUTHENTICATED)
                    raise

    async def stop(self) -> None:
        """Tear down the redirect handler and subscription; cancel pending attempts."""
        self.listener.teardown(self.handle_redirect)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        for state, (provider, waiter) in list(self._waiters.items()):
            await self.auth_service.cancel(provider, state)
            waiter.cancel()
        self._waiters.clear()
        logfire.info("Session machine stopped")

    async def _on_authority_event(
        self, event: AuthEvent, session: Optional[AuthoritySession]
    ) -> None:
        if self._busy:
            return

        if event is AuthEvent.SIGNED_OUT:
            if self._state is not SessionState.UNAUTHENTICATED:
                await self._transition(SessionState.UNAUTHENTICATED)
            return

        if session is None:
            return

        if (
            self._state is SessionState.AUTHENTICATED
            and self._profile is not None
            and self._profile.id == session.user_id
        ):
            self._session = session
            return

        async with self._operation():
            await self._apply(await self.engine.resume_session(session))

    # -- password -----------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthOutcome:
        async with self._operation():
            return await self._apply(
                await self.engine.sign_in_with_password(email, password)
            )

    async def sign_up(
        self, email: str, password: str, handle: str, display_name: str
    ) -> AuthOutcome:
        async with self._operation():
            return await self._apply(
                await self.engine.register(email, password, handle, display_name)
            )

    async def reset_password(self, email: str) -> AuthOutcome:
        try:
            await self.authority.reset_password(email)
        except AuthError as e:
            return AuthOutcome.failure(e.message, e.kind)
        return AuthOutcome.success()

    async def sign_out(self) -> AuthOutcome:
        """Sign out. Always ends UNAUTHENTICATED.

        Marking the profile offline is best effort and does not gate the
        authority sign-out.
        """
        profile, session = self._profile, self._session
        async with self._operation():
            try:
                if profile is not None:
                    try:
                        await self.profile_service.mark_offline(profile.id)
                    except DomainError as e:
                        logfire.warn(
                            "Could not mark profile offline",
                            profile_id=str(profile.id),
                            error=str(e),
                        )
                try:
                    await self.authority.sign_out(session)
                except AuthError as e:
                    logfire.warn("Authority sign-out failed", error=e.message)
            finally:
                await self._transition(SessionState.UNAUTHENTICATED)
        return AuthOutcome.success()

    # -- federated ----------------------------------------------------------

    async def begin_federated_sign_in(
        self, provider: AuthProvider, scopes: list[str] | None = None
    ) -> str:
        """Start a non-interactive attempt and return the URL to open.

        The redirect later arrives through the listener.

        Raises:
            ValueError: If provider not supported
        """
        url, _ = await self.auth_service.initiate_login(provider, scopes)
        return url

    async def sign_in_with_provider(
        self, provider: AuthProvider, scopes: list[str] | None = None
    ) -> AuthOutcome:
        """Interactive federated sign-in.

        Opens the browser and waits, bounded by the authorization timeout,
        for the redirect. Timing out, or the caller cancelling this
        coroutine, cancels the attempt so a late callback is refused.

        Raises:
            ValueError: If provider not supported
        """
        url, context = await self.auth_service.initiate_login(provider, scopes)
        waiter: asyncio.Future[AuthOutcome] = asyncio.get_running_loop().create_future()
        self._waiters[context.state] = (provider, waiter)

        try:
            await self.browser(url)
            return await asyncio.wait_for(
                waiter, self.settings.authorization_timeout_seconds
            )
        except asyncio.TimeoutError:
            await self.auth_service.cancel(provider, context.state)
            return await self._refuse(
                AuthorizationTimeoutError("Authorization timed out")
            )
        except asyncio.CancelledError:
            await self.auth_service.cancel(provider, context.state)
            raise
        finally:
            self._waiters.pop(context.state, None)

    async def dismiss_federated_sign_in(
        self, state: str, provider: Optional[AuthProvider] = None
    ) -> None:
        """The browser closed without redirecting back.

        Interactive attempts are found by state. An attempt started with
        `begin_federated_sign_in` has no waiter and needs its `provider`.
        """
        entry = self._waiters.pop(state, None)
        if entry is None:
            if provider is not None:
                await self.auth_service.dismiss(provider, state)
            return
        provider, waiter = entry
        await self.auth_service.dismiss(provider, state)
        outcome = await self._refuse(AuthorizationDeniedError("Sign-in was cancelled"))
        if not waiter.done():
            waiter.set_result(outcome)

    async def handle_redirect(self, url: str) -> AuthOutcome:
        """Resume a federated attempt from its provider redirect."""
        state = parse_callback(url).state
        entry = self._waiters.get(state) if state else None

        provider = self.auth_service.provider_for_url(url)
        if provider is None:
            outcome = await self._refuse(
                StateMismatchError("Redirect does not match any provider")
            )
        else:
            async with self._operation():
                with logfire.span("session_machine.handle_redirect", provider=provider.value):
                    try:
                        identity = await self.auth_service.complete_login(provider, url)
                    except AuthError as e:
                        outcome = await self._refuse(e)
                    else:
                        outcome = await self._apply(
                            await self.engine.sign_in_with_identity(identity)
                        )

        if entry is not None and not entry[1].done():
            entry[1].set_result(outcome)
        return outcome

    # -- profile ------------------------------------------------------------

    async def update_profile(self, changes: dict[str, Any]) -> AuthOutcome:
        """Apply an owner edit to the signed-in profile."""
        if self._profile is None or self._state is not SessionState.AUTHENTICATED:
            return AuthOutcome.failure("Not signed in", ErrorKind.INVALID_CREDENTIALS)

        try:
            profile = await self.profile_service.update_profile(
                self._profile.id, changes
            )
        except UniqueViolationError:
            return AuthOutcome.failure("Username is already taken")
        except (ValidationError, NotFoundError) as e:
            return AuthOutcome.failure(str(e))
        except RepositoryError as e:
            logfire.error("Profile update failed", error=str(e))
            return AuthOutcome.failure(
                "Profile directory is unavailable", ErrorKind.NETWORK_UNAVAILABLE
            )

        await self._transition(
            SessionState.AUTHENTICATED, profile=profile, session=self._session
        )
        return AuthOutcome.success()

    async def refresh_profile(self) -> AuthOutcome:
        """Reload the signed-in profile from the directory."""
        if self._profile is None or self._state is not SessionState.AUTHENTICATED:
            return AuthOutcome.failure("Not signed in", ErrorKind.INVALID_CREDENTIALS)

        try:
            profile = await self.profile_service.find_by_id(self._profile.id)
        except RepositoryError as e:
            logfire.error("Profile refresh failed", error=str(e))
            return AuthOutcome.failure(
                "Profile directory is unavailable", ErrorKind.NETWORK_UNAVAILABLE
            )
        if profile is None:
            return AuthOutcome.failure("Profile not found")
        await self._transition(
            SessionState.AUTHENTICATED, profile=profile, session=self._session
        )
        return AuthOutcome.success()
