"""Authentication routes.

Every route drives the single process-wide session machine; see the
single-tenant note in `passage.interface.api.app`.
"""

import logging
from typing import Optional

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from passage.application.session import (
    AuthOutcome,
    RedirectListener,
    SessionState,
    SessionStateMachine,
)
from passage.config import AuthSettings
from passage.domain.model.profile import Profile
from passage.domain.value import AuthProvider, ErrorKind
from passage.interface.error import outcome_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"], route_class=DishkaRoute)


class SignInRequest(BaseModel):
    """Password sign-in request."""

    email: str
    password: str


class SignUpRequest(BaseModel):
    """Account registration request."""

    email: str
    password: str
    handle: str
    display_name: str


class ResetPasswordRequest(BaseModel):
    email: str


class AuthorizeRequest(BaseModel):
    """Start a federated sign-in."""

    provider: AuthProvider
    scopes: Optional[list[str]] = None


class AuthorizeResponse(BaseModel):
    authorization_url: str


class DismissRequest(BaseModel):
    """The browser was closed before the provider redirected back."""

    provider: AuthProvider
    state: str


class SessionResponse(BaseModel):
    """Current session state.

    `error` carries the last failure, which may be set while still
    authenticated when a later federated attempt was refused.
    """

    state: SessionState
    profile: Optional[Profile] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


@router.post("/sign-in")
async def sign_in(
    request: SignInRequest,
    machine: FromDishka[SessionStateMachine],
) -> JSONResponse:
    """Sign in with email and password.

    Returns `{}` on success or `{"error": message}` with a failure status.

    Example:
        POST /auth/sign-in
        {"email": "alice@example.com", "password": "..."}
    """
    outcome = await machine.sign_in(request.email, request.password)
    return outcome_response(outcome)


@router.post("/sign-up")
async def sign_up(
    request: SignUpRequest,
    machine: FromDishka[SessionStateMachine],
) -> JSONResponse:
    """Register a new account with a chosen handle."""
    outcome = await machine.sign_up(
        request.email, request.password, request.handle, request.display_name
    )
    return outcome_response(outcome)


@router.post("/sign-out")
async def sign_out(machine: FromDishka[SessionStateMachine]) -> JSONResponse:
    outcome = await machine.sign_out()
    return outcome_response(outcome)


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    machine: FromDishka[SessionStateMachine],
) -> JSONResponse:
    outcome = await machine.reset_password(request.email)
    return outcome_response(outcome)


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(
    request: AuthorizeRequest,
    machine: FromDishka[SessionStateMachine],
) -> AuthorizeResponse:
    """Start a federated sign-in and return the provider URL to open.

    The provider later redirects to `/auth/callback/{provider}`.

    Raises:
        HTTPException: 400 if the provider is not configured

    Example:
        POST /auth/authorize
        {"provider": "twitter"}

        Response:
        {"authorization_url": "https://twitter.com/i/oauth2/authorize?..."}
    """
    logger.info(f"Initiating {request.provider.value} sign-in")
    try:
        url = await machine.begin_federated_sign_in(request.provider, request.scopes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return AuthorizeResponse(authorization_url=url)


@router.post("/dismiss", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss(
    request: DismissRequest,
    machine: FromDishka[SessionStateMachine],
) -> None:
    """Record that the browser closed without a redirect."""
    try:
        await machine.dismiss_federated_sign_in(request.state, request.provider)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/callback/{provider}")
async def callback(
    provider: str,
    request: Request,
    listener: FromDishka[RedirectListener],
    settings: FromDishka[AuthSettings],
) -> JSONResponse:
    """Receive a provider redirect and hand it to the session machine.

    The URL is rebuilt against the configured redirect base so the provider
    is resolved the same way for every transport that delivers redirects.

    Example:
        GET /auth/callback/twitter?code=abc123&state=xyz789
    """
    url = f"{settings.redirect_base.rstrip('/')}/{provider}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    logger.info(f"OAuth callback received: provider={provider}")

    outcome = await listener.deliver(url)
    if outcome is None:
        outcome = AuthOutcome.failure(
            "Sign-in is not available", ErrorKind.NETWORK_UNAVAILABLE
        )
    return outcome_response(outcome)


@router.get("/session", response_model=SessionResponse)
async def current_session(
    machine: FromDishka[SessionStateMachine],
) -> SessionResponse:
    snapshot = machine.snapshot
    return SessionResponse(
        state=snapshot.state,
        profile=snapshot.profile,
        error=snapshot.error,
        error_kind=snapshot.error_kind,
    )
