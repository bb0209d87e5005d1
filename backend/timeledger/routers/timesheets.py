"""Timesheets router: entries, lifecycle transitions, approver views."""

import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timeledger.database import get_db
from timeledger.dependencies import get_current_actor
from timeledger.models.timesheet import Timesheet, TimesheetStatus
from timeledger.models.user import User
from timeledger.schemas.timesheet import (
    ApprovableTimesheet,
    ApprovalHistoryResponse,
    BulkApproval,
    BulkRejection,
    BulkResponse,
    TimesheetApproval,
    TimesheetDetail,
    TimesheetEntryCreate,
    TimesheetEntryResponse,
    TimesheetEntryUpdate,
    TimesheetRejection,
    TimesheetResponse,
    TimesheetSubmit,
    TimesheetSubmitToAdmin,
    TransitionResponse,
)
from timeledger.services import entries, workflow

router = APIRouter(prefix="/api/v1/timesheets", tags=["Timesheets"])


def _transition(ts: Timesheet, message: str) -> TransitionResponse:
    return TransitionResponse(message=message, timesheet=TimesheetResponse.model_validate(ts))


# ── Entries ──


@router.post("/entries", response_model=TimesheetEntryResponse)
def create_entry(
    body: TimesheetEntryCreate,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    entry = entries.create_entry(
        db, actor,
        entry_date=body.date,
        logged_hours=body.logged_hours,
        project_id=body.project_id,
        task_id=body.task_id,
        description=body.description,
    )
    return TimesheetEntryResponse.model_validate(entry)


@router.put("/entries/{entry_id}", response_model=TimesheetEntryResponse)
def update_entry(
    entry_id: uuid.UUID,
    body: TimesheetEntryUpdate,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    entry = entries.update_entry(db, actor, entry_id, body.model_dump(exclude_unset=True))
    return TimesheetEntryResponse.model_validate(entry)


@router.delete("/entries/{entry_id}")
def delete_entry(
    entry_id: uuid.UUID,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    entries.delete_entry(db, actor, entry_id)
    return {"ok": True}


# ── Approver views ──


@router.get("/approvable", response_model=list[ApprovableTimesheet])
def approvable_timesheets(
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return [ApprovableTimesheet.model_validate(ts) for ts in workflow.get_approvable_timesheets(db, actor)]


@router.post("/bulk-approve", response_model=BulkResponse)
def bulk_approve(
    body: BulkApproval,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    result = workflow.bulk_approve_timesheets(db, actor, body.timesheet_ids, body.comment)
    return BulkResponse(succeeded=result.succeeded, failed=result.failed, summary=result.summary)


@router.post("/bulk-reject", response_model=BulkResponse)
def bulk_reject(
    body: BulkRejection,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    result = workflow.bulk_reject_timesheets(db, actor, body.timesheet_ids, body.comment)
    return BulkResponse(succeeded=result.succeeded, failed=result.failed, summary=result.summary)


# ── Single timesheet ──


@router.get("/{timesheet_id}", response_model=TimesheetDetail)
def get_timesheet(
    timesheet_id: uuid.UUID,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return TimesheetDetail.model_validate(workflow.get_timesheet(db, actor, timesheet_id))


@router.get("/{timesheet_id}/history", response_model=list[ApprovalHistoryResponse])
def timesheet_history(
    timesheet_id: uuid.UUID,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    rows = workflow.get_timesheet_history(db, actor, timesheet_id)
    actor_ids = {r.actor_id for r in rows if r.actor_id}
    names = {
        u.id: u.full_name or u.email
        for u in db.query(User).filter(User.id.in_(actor_ids)).all()
    } if actor_ids else {}
    return [
        ApprovalHistoryResponse(
            id=r.id,
            timesheet_id=r.timesheet_id,
            action=r.action,
            from_status=r.from_status,
            to_status=r.to_status,
            comment=r.comment,
            timestamp=r.timestamp,
            actor_id=r.actor_id,
            actor_name=names.get(r.actor_id) or "System",
        )
        for r in rows
    ]


# ── Transitions ──


@router.post("/{timesheet_id}/submit", response_model=TransitionResponse)
def submit_timesheet(
    timesheet_id: uuid.UUID,
    body: TimesheetSubmit,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ts = workflow.submit_timesheet(db, actor, timesheet_id, body.approver_id)
    return _transition(ts, "Timesheet submitted successfully")


@router.post("/{timesheet_id}/approve", response_model=TransitionResponse)
def approve_timesheet(
    timesheet_id: uuid.UUID,
    body: TimesheetApproval,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ts = workflow.approve_timesheet(db, actor, timesheet_id, body.comment)
    verb = "finished" if ts.status == TimesheetStatus.finished else "approved"
    return _transition(ts, f"Timesheet {verb} successfully")


@router.post("/{timesheet_id}/reject", response_model=TransitionResponse)
def reject_timesheet(
    timesheet_id: uuid.UUID,
    body: TimesheetRejection,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ts = workflow.reject_timesheet(db, actor, timesheet_id, body.comment)
    return _transition(ts, "Timesheet rejected")


@router.post("/{timesheet_id}/finish", response_model=TransitionResponse)
def finish_timesheet(
    timesheet_id: uuid.UUID,
    body: TimesheetApproval,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ts = workflow.finish_timesheet(db, actor, timesheet_id, body.comment)
    return _transition(ts, "Timesheet finished")


@router.post("/{timesheet_id}/submit-to-admin", response_model=TransitionResponse)
def submit_to_admin(
    timesheet_id: uuid.UUID,
    body: TimesheetSubmitToAdmin,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ts = workflow.submit_to_admin(db, actor, timesheet_id, body.admin_id)
    return _transition(ts, "Timesheet submitted to admin for final approval")
