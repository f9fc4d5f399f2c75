"""In-memory credential authority for tests and mock wiring."""

import asyncio
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from passage.adapter.authority.base import LocalSessionAuthority
from passage.domain.error import (
    AlreadyRegisteredError,
    InvalidCredentialsError,
    NetworkUnavailableError,
)
from passage.domain.value import AuthEvent, AuthoritySession, ProfileId


@dataclass
class StoredAccount:
    user_id: UUID
    email: str
    secret: str
    metadata: dict[str, Any] = field(default_factory=dict)


class InMemoryCredentialAuthority(LocalSessionAuthority):
    """Dict-backed authority.

    Every operation yields to the event loop once before touching state, so
    concurrent callers interleave the way they would against a remote
    authority. Check-and-insert on register happens without an await in
    between, which gives the e-mail the same uniqueness a real authority has.

    Attributes:
        accounts: Dict mapping lowercased e-mail -> StoredAccount
        online: When False every remote operation raises NetworkUnavailableError
        sign_in_attempts: (email, secret) pairs in call order
        reset_requests: E-mails a password reset was requested for
    """

    def __init__(self, online: bool = True) -> None:
        super().__init__()
        self.accounts: dict[str, StoredAccount] = {}
        self.online = online
        self.sign_in_attempts: list[tuple[str, str]] = []
        self.reset_requests: list[str] = []
        self.signed_out: list[UUID] = []

    def seed(
        self,
        email: str,
        secret: str,
        user_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UUID:
        """Create an account directly, bypassing events."""
        account = StoredAccount(
            user_id=user_id or uuid4(),
            email=email,
            secret=secret,
            metadata=metadata or {},
        )
        self.accounts[email.lower()] = account
        return account.user_id

    async def _remote_call(self) -> None:
        await asyncio.sleep(0)
        if not self.online:
            raise NetworkUnavailableError("Unable to reach the authentication service")

    @staticmethod
    def _issue(account: StoredAccount) -> AuthoritySession:
        return AuthoritySession(
            user_id=ProfileId(account.user_id),
            email=account.email,
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            user_metadata=dict(account.metadata),
        )

    async def sign_in(self, email: str, secret: str) -> AuthoritySession:
        await self._remote_call()
        self.sign_in_attempts.append((email, secret))
        account = self.accounts.get(email.lower())
        if account is None or not secrets.compare_digest(account.secret, secret):
            raise InvalidCredentialsError("Invalid email or password")
        session = self._issue(account)
        await self._set_session(AuthEvent.SIGNED_IN, session)
        return session

    async def register(
        self, email: str, secret: str, metadata: dict[str, Any] | None = None
    ) -> AuthoritySession:
        await self._remote_call()
        if email.lower() in self.accounts:
            raise AlreadyRegisteredError(email)
        self.seed(email, secret, metadata=metadata)
        session = self._issue(self.accounts[email.lower()])
        await self._set_session(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self, session: AuthoritySession | None = None) -> None:
        await self._remote_call()
        target = session or self._session
        if target is not None:
            self.signed_out.append(target.user_id)
        await self._set_session(AuthEvent.SIGNED_OUT, None)

    async def reset_password(self, email: str) -> None:
        await self._remote_call()
        self.reset_requests.append(email)

    async def check_connection(self) -> bool:
        await asyncio.sleep(0)
        return self.online
