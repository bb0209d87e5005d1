from pydantic import BaseModel, ConfigDict
from typing import Optional
import datetime as dt
from uuid import UUID
from decimal import Decimal

from timeledger.models.timesheet import TimesheetStatus


# ── Entries ──

class TimesheetEntryCreate(BaseModel):
    date: dt.date
    logged_hours: Optional[Decimal] = None  # range checked by the service (InvalidHours)
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: str = ""


class TimesheetEntryUpdate(BaseModel):
    date: Optional[dt.date] = None
    logged_hours: Optional[Decimal] = None
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: Optional[str] = None


class TimesheetEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    timesheet_id: UUID
    date: dt.date
    logged_hours: float
    approved_hours: Optional[float] = None
    effective_hours: float
    hours_modified_by_id: Optional[UUID] = None
    hours_modified_at: Optional[dt.datetime] = None
    project_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    description: Optional[str] = ""


class HoursOverride(BaseModel):
    approved_hours: Optional[Decimal] = None
    note: Optional[str] = None


# ── Timesheets ──

class TimesheetOwner(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    role: str


class TimesheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    month: int
    year: int
    status: TimesheetStatus
    submit_date: Optional[dt.datetime] = None
    approve_date: Optional[dt.datetime] = None
    finished_date: Optional[dt.datetime] = None
    comment: Optional[str] = None
    current_approver_id: Optional[UUID] = None
    batch_id: Optional[UUID] = None
    total_hours: float


class ApprovableTimesheet(TimesheetResponse):
    user: Optional[TimesheetOwner] = None


class TimesheetDetail(ApprovableTimesheet):
    entries: list[TimesheetEntryResponse] = []


class ApprovalHistoryResponse(BaseModel):
    id: UUID
    timesheet_id: UUID
    action: str
    from_status: Optional[TimesheetStatus] = None
    to_status: TimesheetStatus
    comment: Optional[str] = None
    timestamp: dt.datetime
    actor_id: Optional[UUID] = None
    actor_name: str


# ── Workflow requests ──

class TimesheetSubmit(BaseModel):
    approver_id: Optional[UUID] = None


class TimesheetApproval(BaseModel):
    comment: Optional[str] = None


class TimesheetRejection(BaseModel):
    comment: str = ""  # mandatory, enforced by the service (ValidationError)


class TimesheetSubmitToAdmin(BaseModel):
    admin_id: UUID


class BulkApproval(BaseModel):
    timesheet_ids: list[UUID]
    comment: Optional[str] = None


class BulkRejection(BaseModel):
    timesheet_ids: list[UUID]
    comment: str = ""


class TransitionResponse(BaseModel):
    ok: bool = True
    message: str
    timesheet: TimesheetResponse


class BulkResponse(BaseModel):
    succeeded: list[str]
    failed: list[str]
    summary: str
