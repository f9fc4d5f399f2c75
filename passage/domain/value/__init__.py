"""Domain value objects for Passage."""

from passage.domain.value.identifiers import ProfileId
from passage.domain.value.types import (
    AuthEvent,
    AuthoritySession,
    AuthProvider,
    ErrorKind,
    Handle,
    PKCEContext,
    ProviderIdentity,
)

__all__ = [
    # Identifiers
    "ProfileId",
    # Types
    "AuthEvent",
    "AuthoritySession",
    "AuthProvider",
    "ErrorKind",
    "Handle",
    "PKCEContext",
    "ProviderIdentity",
]
