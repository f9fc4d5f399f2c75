"""Infrastructure layer errors."""

from passage.domain.error import NetworkUnavailableError


class AdapterError(Exception):
    """Base infrastructure error."""

    pass


class AuthorityError(AdapterError, NetworkUnavailableError):
    """Credential authority answered with something other than a known outcome.

    Surfaces to callers as NetworkUnavailable: from the user's side the
    authentication service is not working.

    Attributes:
        detail: Error text returned by the authority
        status_code: HTTP status returned by the authority, if any
    """

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__("Authentication service unavailable")
