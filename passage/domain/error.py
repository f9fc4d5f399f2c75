"""Domain layer errors."""

from passage.domain.value.types import ErrorKind


class DomainError(Exception):
    """Base domain error."""

    pass


class ValidationError(DomainError):
    """Domain validation error."""

    pass


class NotFoundError(DomainError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class UniqueViolationError(DomainError):
    """Raised by the profile directory when an insert breaks a uniqueness rule.

    Attributes:
        field: Which constraint was violated, "id" or "handle"
    """

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate profile {field}: {value}")


class RepositoryError(DomainError):
    """Profile directory failure other than a uniqueness violation."""

    pass


class AuthError(DomainError):
    """Base for every failure surfaced to the caller of a sign-in.

    Each subclass pins an `ErrorKind`; the message is human readable and safe
    to show in a UI.
    """

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS


class AuthorizationDeniedError(AuthError):
    kind = ErrorKind.AUTHORIZATION_DENIED


class StateMismatchError(AuthError):
    """Callback state does not belong to any issued attempt. Security relevant."""

    kind = ErrorKind.STATE_MISMATCH


class MissingCodeError(AuthError):
    kind = ErrorKind.MISSING_CODE


class ReplayedCallbackError(AuthError):
    """Callback for an attempt that was already consumed or cancelled. Security relevant."""

    kind = ErrorKind.REPLAYED_CALLBACK


class TokenExchangeFailedError(AuthError):
    kind = ErrorKind.TOKEN_EXCHANGE_FAILED

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Token exchange failed: {reason}")


class IdentityFetchFailedError(AuthError):
    kind = ErrorKind.IDENTITY_FETCH_FAILED

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to fetch provider identity: {reason}")


class BridgeExhaustedError(AuthError):
    kind = ErrorKind.BRIDGE_EXHAUSTED


class ProfileCreationFailedError(AuthError):
    kind = ErrorKind.PROFILE_CREATION_FAILED


class AuthorizationTimeoutError(AuthError):
    kind = ErrorKind.AUTHORIZATION_TIMEOUT


class NetworkUnavailableError(AuthError):
    kind = ErrorKind.NETWORK_UNAVAILABLE


SECURITY_RELEVANT = frozenset({ErrorKind.STATE_MISMATCH, ErrorKind.REPLAYED_CALLBACK})


class AlreadyRegisteredError(DomainError):
    """Raised by the credential authority when the e-mail already has an account."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Account already registered: {email}")
