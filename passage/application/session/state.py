"""Caller-visible authentication state."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from passage.domain.model.profile import Profile
from passage.domain.value import AuthoritySession, ErrorKind


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class SessionSnapshot(BaseModel):
    """Point-in-time view of the session machine, handed to observers."""

    model_config = ConfigDict(frozen=True)

    state: SessionState
    profile: Optional[Profile] = None
    session: Optional[AuthoritySession] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None


class AuthOutcome(BaseModel):
    """Result of a session operation as seen by the UI layer.

    Serializes to `{}` on success or `{"error": message}` on failure. The
    error kind is kept for callers that branch on it but is never part of
    the serialized shape.
    """

    model_config = ConfigDict(frozen=True)

    error: Optional[str] = None
    kind: Optional[ErrorKind] = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, str]:
        return {} if self.error is None else {"error": self.error}

    @classmethod
    def success(cls) -> "AuthOutcome":
        return cls()

    @classmethod
    def failure(cls, message: str, kind: ErrorKind | None = None) -> "AuthOutcome":
        return cls(error=message, kind=kind)
