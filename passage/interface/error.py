"""Interface layer errors and HTTP status mapping."""

from fastapi import status
from fastapi.responses import JSONResponse

from passage.application.session import AuthOutcome
from passage.domain.value import ErrorKind


class InterfaceError(Exception):
    """Base interface error."""

    pass


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTHORIZATION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.STATE_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorKind.REPLAYED_CALLBACK: status.HTTP_403_FORBIDDEN,
    ErrorKind.MISSING_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TOKEN_EXCHANGE_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.IDENTITY_FETCH_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.BRIDGE_EXHAUSTED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.PROFILE_CREATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.AUTHORIZATION_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.NETWORK_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(outcome: AuthOutcome) -> int:
    """HTTP status for an operation outcome; unclassified failures are 400."""
    if outcome.ok:
        return status.HTTP_200_OK
    if outcome.kind is None:
        return status.HTTP_400_BAD_REQUEST
    return STATUS_BY_KIND.get(outcome.kind, status.HTTP_400_BAD_REQUEST)


def outcome_response(outcome: AuthOutcome) -> JSONResponse:
    """Render an outcome as `{}` or `{"error": message}` with its status."""
    return JSONResponse(status_code=status_for(outcome), content=outcome.as_dict())
