import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: Optional[str] = None
    first_name: str
    last_name: str
    full_name: str
    role: str
    is_active: bool


class MeResponse(UserResponse):
    can_approve: bool
    can_finish: bool
    can_administer_batches: bool
    can_view_dashboard: bool
