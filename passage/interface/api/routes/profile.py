"""Profile routes for the signed-in user."""

from typing import Any, Optional

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from passage.application.session import SessionStateMachine
from passage.interface.error import outcome_response

router = APIRouter(prefix="/profile", tags=["profile"], route_class=DishkaRoute)


class UpdateProfileRequest(BaseModel):
    """Owner edit. Only the fields that are set are applied."""

    display_name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    handle: Optional[str] = None
    settings: Optional[dict[str, Any]] = None


@router.patch("")
async def update_profile(
    request: UpdateProfileRequest,
    machine: FromDishka[SessionStateMachine],
) -> JSONResponse:
    """Edit the signed-in profile.

    Example:
        PATCH /profile
        {"handle": "alice_2", "bio": "hello"}
    """
    outcome = await machine.update_profile(request.model_dump(exclude_unset=True))
    return outcome_response(outcome)


@router.post("/refresh")
async def refresh_profile(machine: FromDishka[SessionStateMachine]) -> JSONResponse:
    outcome = await machine.refresh_profile()
    return outcome_response(outcome)
