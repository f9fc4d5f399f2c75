"""Credential authority port."""

from typing import Any, Awaitable, Callable, Optional

from passage.domain.value import AuthEvent, AuthoritySession

SessionChangeCallback = Callable[
    [AuthEvent, Optional[AuthoritySession]], Awaitable[None]
]
Unsubscribe = Callable[[], None]


class CredentialAuthority:
    """External system of record for login secrets and sessions.

    The authority only understands e-mail + password. Federated identities
    reach it through the credential bridge.
    """

    async def sign_in(self, email: str, secret: str) -> AuthoritySession:
        """Sign in with e-mail and password.

        Raises:
            InvalidCredentialsError: Unknown e-mail or wrong secret
            NetworkUnavailableError: Authority unreachable
        """
        raise NotImplementedError

    async def register(
        self, email: str, secret: str, metadata: dict[str, Any] | None = None
    ) -> AuthoritySession:
        """Create an account and return its first session.

        Raises:
            AlreadyRegisteredError: The e-mail already has an account
            NetworkUnavailableError: Authority unreachable
        """
        raise NotImplementedError

    async def current_session(self) -> AuthoritySession | None:
        """Return the session currently held by this process, if any."""
        raise NotImplementedError

    def on_session_change(self, callback: SessionChangeCallback) -> Unsubscribe:
        """Subscribe to session-change notifications.

        Returns:
            Callable that removes the subscription
        """
        raise NotImplementedError

    async def sign_out(self, session: AuthoritySession | None = None) -> None:
        """Invalidate `session` (or the current session)."""
        raise NotImplementedError

    async def reset_password(self, email: str) -> None:
        """Ask the authority to send a password-reset e-mail."""
        raise NotImplementedError

    async def check_connection(self) -> bool:
        """Return True when the authority answers."""
        raise NotImplementedError
