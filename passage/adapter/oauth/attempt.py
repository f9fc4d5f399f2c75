"""Authorization attempt state for the redirect-based OAuth flow."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from passage.domain.value import AuthProvider, PKCEContext


class AttemptStatus(str, Enum):
    """Lifecycle of one authorization attempt.

    Idle -> AuthorizationRequested -> CallbackAwaited ->
    {CodeReceived | Cancelled | Dismissed | Errored | Expired} ->
    TokenExchanged -> UserFetched -> Done

    Expired marks an attempt evicted after its deadline without a callback.
    """

    IDLE = "idle"
    AUTHORIZATION_REQUESTED = "authorization_requested"
    CALLBACK_AWAITED = "callback_awaited"
    CODE_RECEIVED = "code_received"
    CANCELLED = "cancelled"
    DISMISSED = "dismissed"
    ERRORED = "errored"
    EXPIRED = "expired"
    TOKEN_EXCHANGED = "token_exchanged"
    USER_FETCHED = "user_fetched"
    DONE = "done"


TERMINAL_STATUSES = frozenset(
    {
        AttemptStatus.CANCELLED,
        AttemptStatus.DISMISSED,
        AttemptStatus.ERRORED,
        AttemptStatus.EXPIRED,
        AttemptStatus.DONE,
    }
)


class AuthorizationAttempt(BaseModel):
    """One in-flight authorization attempt.

    The OAuth flow spans the authorization request and the redirect
    callback, so the PKCE verifier has to be held in between. The attempt
    is keyed by its state token and consumed exactly once.

    Attributes:
        provider: Provider the attempt was started for
        pkce: Verifier, challenge and state issued for this attempt
        status: Current lifecycle status
        created_at: Attempt creation timestamp
        expires_at: Deadline for the redirect callback
    """

    provider: AuthProvider
    pkce: PKCEContext
    status: AttemptStatus = AttemptStatus.IDLE
    created_at: datetime
    expires_at: datetime

    @property
    def state(self) -> str:
        return self.pkce.state

    def expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class AttemptStore(Protocol):
    """Storage for pending attempts plus tombstones of finished ones.

    Tombstones let a second callback for the same state be recognised as a
    replay instead of an unknown state.
    """

    async def save(self, attempt: AuthorizationAttempt) -> None:
        """Store a pending attempt under its state."""
        ...

    async def take(self, state: str) -> AuthorizationAttempt | None:
        """Remove and return the pending attempt for `state`, leaving a tombstone."""
        ...

    async def discard(self, state: str, status: AttemptStatus) -> AuthorizationAttempt | None:
        """End the attempt for `state` without using it, leaving a tombstone."""
        ...

    async def finished_status(self, state: str) -> AttemptStatus | None:
        """Final status of the ended attempt for `state`, or None if it has not ended."""
        ...

    async def was_consumed(self, state: str) -> bool:
        """Whether `state` belonged to an attempt that already ended."""
        ...


class InMemoryAttemptStore:
    """In-memory attempt store.

    Attempts only live for the duration of one redirect round trip and do not
    need to survive restarts; the user simply starts again. Attempts past
    their deadline are evicted on every store access and leave an Expired
    tombstone, so abandoned attempts do not accumulate.

    Attributes:
        _pending: Dict mapping state -> AuthorizationAttempt
        _finished: Dict mapping state -> (final status, tombstone expiry)
    """

    def __init__(self, tombstone_ttl: timedelta = timedelta(minutes=15)) -> None:
        self._pending: dict[str, AuthorizationAttempt] = {}
        self._finished: dict[str, tuple[AttemptStatus, datetime]] = {}
        self._tombstone_ttl = tombstone_ttl

    async def save(self, attempt: AuthorizationAttempt) -> None:
        self._purge()
        self._pending[attempt.state] = attempt

    async def take(self, state: str) -> AuthorizationAttempt | None:
        self._purge()
        attempt = self._pending.pop(state, None)
        if attempt is not None:
            self._tombstone(state, AttemptStatus.CODE_RECEIVED)
        return attempt

    async def discard(
        self, state: str, status: AttemptStatus
    ) -> AuthorizationAttempt | None:
        attempt = self._pending.pop(state, None)
        if attempt is not None:
            attempt.status = status
            self._tombstone(state, status)
        return attempt

    async def finished_status(self, state: str) -> AttemptStatus | None:
        self._purge()
        finished = self._finished.get(state)
        return finished[0] if finished else None

    async def was_consumed(self, state: str) -> bool:
        return await self.finished_status(state) is not None

    def pending_states(self) -> list[str]:
        return list(self._pending)

    def _tombstone(self, state: str, status: AttemptStatus) -> None:
        self._finished[state] = (
            status,
            datetime.now(timezone.utc) + self._tombstone_ttl,
        )

    def _purge(self) -> None:
        now = datetime.now(timezone.utc)
        for state, attempt in list(self._pending.items()):
            if attempt.expired(now):
                del self._pending[state]
                attempt.status = AttemptStatus.EXPIRED
                self._tombstone(state, AttemptStatus.EXPIRED)
        for state, (_, expiry) in list(self._finished.items()):
            if expiry <= now:
                del self._finished[state]
