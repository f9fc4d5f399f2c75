"""Domain value objects for Passage.

Value objects are immutable and defined by their values, not identity.
They encapsulate validation rules and business logic.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from passage.domain.value.common import RootValueObject, ValueObject
from passage.domain.value.identifiers import ProfileId


class AuthProvider(str, Enum):
    """Federated identity providers known to the system.

    Declaration order is the deterministic order used by credential bridge
    fallbacks unless configuration overrides it.
    """

    GOOGLE = "google"
    APPLE = "apple"
    TWITTER = "twitter"


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to callers."""

    INVALID_CREDENTIALS = "InvalidCredentials"
    AUTHORIZATION_DENIED = "AuthorizationDenied"
    STATE_MISMATCH = "StateMismatch"
    MISSING_CODE = "MissingCode"
    REPLAYED_CALLBACK = "ReplayedCallback"
    TOKEN_EXCHANGE_FAILED = "TokenExchangeFailed"
    IDENTITY_FETCH_FAILED = "IdentityFetchFailed"
    BRIDGE_EXHAUSTED = "BridgeExhausted"
    PROFILE_CREATION_FAILED = "ProfileCreationFailed"
    AUTHORIZATION_TIMEOUT = "AuthorizationTimeout"
    NETWORK_UNAVAILABLE = "NetworkUnavailable"


class AuthEvent(str, Enum):
    """Session-change events emitted by the credential authority."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class Handle(RootValueObject[str]):
    """Unique human-readable account name.

    Lowercase alphanumerics and underscore only, 1-64 characters.
    Examples: 'alice', 'bob_1', 'carol_1718000000000'
    """

    @field_validator("root")
    @classmethod
    def validate_handle_format(cls, v: str) -> str:
        """Validate handle character set and length."""
        if not re.match(r"^[a-z0-9_]{1,64}$", v):
            raise ValueError(
                "Handle must be 1-64 characters of lowercase letters, digits or '_'"
            )
        return v


class ProviderIdentity(ValueObject):
    """Identity asserted by a federated provider.

    Transient: lives for one reconciliation call. Folded into the profile's
    social accounts and used to derive the credential bridge secret.
    """

    provider: AuthProvider
    provider_user_id: str  # Opaque, permanent id at the provider
    handle: str  # Provider username, may change over time
    display_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    verified: bool = False


class PKCEContext(ValueObject):
    """Correlation and verifier material for one authorization attempt.

    Must be consumed exactly once and never reused across attempts.
    """

    verifier: str = Field(min_length=43, max_length=128)
    challenge: str
    state: str


class AuthoritySession(ValueObject):
    """Session issued by the credential authority."""

    user_id: ProfileId
    email: str
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
