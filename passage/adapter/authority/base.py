"""Session bookkeeping shared by credential authority adapters."""

import logfire

from passage.domain.service.authority import (
    CredentialAuthority,
    SessionChangeCallback,
    Unsubscribe,
)
from passage.domain.value import AuthEvent, AuthoritySession


class LocalSessionAuthority(CredentialAuthority):
    """Holds the process's current session and fans out change events.

    Subscribers are awaited in subscription order. A subscriber that raises
    stops delivery to the rest and the error reaches the caller of the
    operation that emitted the event.
    """

    def __init__(self) -> None:
        self._session: AuthoritySession | None = None
        self._subscribers: list[SessionChangeCallback] = []

    async def current_session(self) -> AuthoritySession | None:
        return self._session

    def on_session_change(self, callback: SessionChangeCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def _set_session(
        self, event: AuthEvent, session: AuthoritySession | None
    ) -> None:
        self._session = session
        logfire.debug(
            "Authority session changed",
            event=event.value,
            user_id=str(session.user_id) if session else None,
        )
        for callback in list(self._subscribers):
            await callback(event, session)
