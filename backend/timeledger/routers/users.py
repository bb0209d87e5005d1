"""Current user profile and capabilities."""

from fastapi import APIRouter, Depends

from timeledger.dependencies import get_current_actor
from timeledger.models.user import User
from timeledger.schemas.user import MeResponse, UserResponse
from timeledger.services import permissions

router = APIRouter(prefix="/api/v1", tags=["Users"])


@router.get("/me", response_model=MeResponse)
def me(actor: User = Depends(get_current_actor)):
    return MeResponse(
        **UserResponse.model_validate(actor).model_dump(),
        can_approve=permissions.can_approve(actor.role),
        can_finish=permissions.can_finish(actor.role),
        can_administer_batches=permissions.can_administer_batches(actor.role),
        can_view_dashboard=permissions.can_view_dashboard(actor.role),
    )
