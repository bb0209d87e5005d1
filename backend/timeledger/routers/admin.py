"""Admin router: batches, hour overrides and the dashboard."""

import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from timeledger.database import get_db
from timeledger.dependencies import get_current_actor, get_dashboard_engine
from timeledger.models.timesheet import BatchStatus, TimesheetBatch
from timeledger.models.user import User
from timeledger.schemas.batch import (
    BatchActionResponse,
    BatchCreate,
    BatchCreateResponse,
    BatchDetail,
    BatchHistoryResponse,
    BatchRejection,
    BatchResponse,
)
from timeledger.schemas.dashboard import DashboardStats
from timeledger.schemas.timesheet import HoursOverride, TimesheetEntryResponse, TimesheetResponse
from timeledger.services import batches, entries, permissions
from timeledger.services.dashboard import DashboardEngine
from timeledger.services.errors import Forbidden

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _batch_response(batch: TimesheetBatch) -> BatchResponse:
    return BatchResponse(
        id=batch.id,
        status=batch.status,
        team_lead_id=batch.team_lead_id,
        admin_id=batch.admin_id,
        created_at=batch.created_at,
        timesheet_count=len(batch.timesheets),
    )


# ── Batches ──


@router.post("/batches", response_model=BatchCreateResponse)
def create_batch(
    body: BatchCreate,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    result = batches.create_batch(db, actor, body.timesheet_ids, body.admin_id, body.team_lead_id)
    return BatchCreateResponse(
        batch_id=result.batch_id,
        succeeded=result.succeeded,
        failed=result.failed,
        summary=result.summary,
    )


@router.get("/batches", response_model=list[BatchResponse])
def list_batches(
    status: Optional[BatchStatus] = Query(None),
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return [_batch_response(b) for b in batches.list_batches(db, actor, status)]


@router.get("/batches/{batch_id}", response_model=BatchDetail)
def get_batch(
    batch_id: uuid.UUID,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    batch, history = batches.get_batch(db, actor, batch_id)
    return BatchDetail(
        **_batch_response(batch).model_dump(),
        timesheets=[TimesheetResponse.model_validate(ts) for ts in batch.timesheets],
        history=[BatchHistoryResponse.model_validate(h) for h in history],
    )


@router.post("/batches/{batch_id}/done", response_model=BatchActionResponse)
def mark_batch_done(
    batch_id: uuid.UUID,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    outcome = batches.mark_batch_done(db, actor, batch_id)
    return BatchActionResponse(
        message=f"Batch marked as done. {len(outcome.timesheet_ids)} timesheets finished.",
        batch=_batch_response(outcome.batch),
    )


@router.post("/batches/{batch_id}/reject", response_model=BatchActionResponse)
def reject_batch(
    batch_id: uuid.UUID,
    body: BatchRejection,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    outcome = batches.reject_batch(db, actor, batch_id, body.comment)
    return BatchActionResponse(
        message=f"Batch rejected. {len(outcome.timesheet_ids)} timesheets marked as Rejected.",
        batch=_batch_response(outcome.batch),
    )


# ── Hours override ──


@router.put("/entries/{entry_id}/hours", response_model=TimesheetEntryResponse)
def override_entry_hours(
    entry_id: uuid.UUID,
    body: HoursOverride,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    entry = entries.override_entry_hours(db, actor, entry_id, body.approved_hours, body.note)
    return TimesheetEntryResponse.model_validate(entry)


# ── Dashboard ──


@router.get("/dashboard", response_model=DashboardStats, response_model_by_alias=True)
def dashboard_stats(
    month: int = Query(...),
    year: int = Query(...),
    actor: User = Depends(get_current_actor),
    engine: DashboardEngine = Depends(get_dashboard_engine),
    db: Session = Depends(get_db),
):
    if not permissions.can_view_dashboard(actor.role):
        raise Forbidden(f"Only {permissions.describe_roles(permissions.can_view_dashboard)} can view the dashboard")
    return engine.get_dashboard_stats(db, month, year)
