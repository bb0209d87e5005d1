import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from timeledger.models.timesheet import BatchStatus
from timeledger.schemas.timesheet import TimesheetResponse


class BatchCreate(BaseModel):
    timesheet_ids: list[uuid.UUID]
    admin_id: uuid.UUID
    team_lead_id: Optional[uuid.UUID] = None


class BatchCreateResponse(BaseModel):
    batch_id: uuid.UUID
    succeeded: list[str]
    failed: list[str]
    summary: str


class BatchRejection(BaseModel):
    comment: str = ""  # mandatory, enforced by the service (ValidationError)


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: BatchStatus
    team_lead_id: uuid.UUID
    admin_id: uuid.UUID
    created_at: Optional[datetime] = None
    timesheet_count: int = 0


class BatchHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    action: str
    status: BatchStatus
    comment: Optional[str] = None
    timestamp: datetime
    actor_id: Optional[uuid.UUID] = None


class BatchDetail(BatchResponse):
    timesheets: list[TimesheetResponse] = []
    history: list[BatchHistoryResponse] = []


class BatchActionResponse(BaseModel):
    ok: bool = True
    message: str
    batch: BatchResponse
