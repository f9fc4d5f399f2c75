"""Outcome of reconciling a proof of identity with the profile directory."""

from typing import Optional

from pydantic import model_validator

from passage.domain.model.common import DomainModel
from passage.domain.model.profile import Profile
from passage.domain.value import AuthoritySession, AuthProvider, ErrorKind


class ReconciliationResult(DomainModel):
    """Either `{profile, session}` or `{error_kind, message}`, never both.

    `provider` is set when the proof of identity came from a federated
    provider, so callers can emit the federated-sign-in-complete signal.
    """

    profile: Optional[Profile] = None
    session: Optional[AuthoritySession] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    provider: Optional[AuthProvider] = None

    @model_validator(mode="after")
    def check_shape(self) -> "ReconciliationResult":
        """Reject partially populated results."""
        success_fields = (self.profile, self.session)
        failure_fields = (self.error_kind, self.message)
        is_success = all(f is not None for f in success_fields) and all(
            f is None for f in failure_fields
        )
        is_failure = all(f is not None for f in failure_fields) and all(
            f is None for f in success_fields
        )
        if not (is_success or is_failure):
            raise ValueError(
                "ReconciliationResult must hold either profile and session "
                "or error_kind and message"
            )
        return self

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(
        cls,
        profile: Profile,
        session: AuthoritySession,
        provider: AuthProvider | None = None,
    ) -> "ReconciliationResult":
        return cls(profile=profile, session=session, provider=provider)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ReconciliationResult":
        return cls(error_kind=kind, message=message)
