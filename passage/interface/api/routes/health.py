"""Health check routes."""

from datetime import datetime

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter
from pydantic import BaseModel

from passage.application.session import SessionState, SessionStateMachine
from passage.config import Settings
from passage.domain.service import CredentialAuthority

router = APIRouter(tags=["health"], route_class=DishkaRoute)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    version: str
    git_sha: str
    authority_reachable: bool
    session_state: SessionState


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: FromDishka[Settings],
    authority: FromDishka[CredentialAuthority],
    machine: FromDishka[SessionStateMachine],
) -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Health status, plus whether the credential authority answers
    """
    reachable = await authority.check_connection()
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        timestamp=datetime.now(),
        version="0.1.0",
        git_sha=settings.git_sha,
        authority_reachable=reachable,
        session_state=machine.state,
    )
