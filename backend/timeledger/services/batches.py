"""
Admin batches: team-lead-approved timesheets handed to one admin as a unit.

``create_batch`` is partial-success: ineligible ids are reported, the rest
are batched. ``mark_batch_done`` and ``reject_batch`` are all-or-nothing.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from timeledger.database import unit_of_work
from timeledger.models.history import BatchAction, BatchHistory, HistoryAction
from timeledger.models.timesheet import BatchStatus, Timesheet, TimesheetBatch, TimesheetStatus
from timeledger.models.user import User
from timeledger.services import permissions
from timeledger.services.audit import record_batch_event, record_transition
from timeledger.services.errors import (
    Forbidden, InvalidTransition, NoEligibleItems, NoValidItems, NotFound, ValidationError,
)
from timeledger.services.workflow import REJECTABLE, get_user

logger = logging.getLogger(__name__)


@dataclass
class BatchCreateResult:
    batch_id: uuid.UUID
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        text = f"Bulk submit to Admin: {len(self.succeeded)} succeeded, {len(self.failed)} failed."
        if self.failed:
            return f"{text} Errors: {' | '.join(self.failed)}"
        return f"Batch submitted successfully. {text}"


@dataclass
class BatchOutcome:
    batch: TimesheetBatch
    timesheet_ids: list[uuid.UUID]


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_batch_admin(actor: User) -> None:
    if not permissions.can_administer_batches(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_administer_batches)} can process batches "
            f"(your role: {actor.role})"
        )


def _lock_batch(db: Session, batch_id: uuid.UUID) -> TimesheetBatch:
    batch = (
        db.query(TimesheetBatch)
        .filter(TimesheetBatch.id == batch_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not batch:
        raise NotFound(f"Batch {batch_id} not found")
    return batch


def _require_pending(batch: TimesheetBatch, verb: str) -> None:
    if batch.status != BatchStatus.pending:
        raise InvalidTransition(
            f'Cannot {verb} batch {batch.id}: status is "{batch.status.value}"',
            current_status=batch.status,
        )


def _lock_members(db: Session, batch_id: uuid.UUID, statuses=None) -> list[Timesheet]:
    # Filter on the parsed status: stored rows may still hold legacy spellings.
    members = (
        db.query(Timesheet)
        .filter(Timesheet.batch_id == batch_id)
        .with_for_update()
        .populate_existing()
        .order_by(Timesheet.id)
        .all()
    )
    if statuses is None:
        return members
    wanted = set(statuses)
    return [ts for ts in members if ts.status in wanted]


def _dedupe(ids: list[uuid.UUID]) -> list[uuid.UUID]:
    seen = set()
    out = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


# ──────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────

def create_batch(
    db: Session,
    actor: User,
    timesheet_ids: list[uuid.UUID],
    admin_id: uuid.UUID,
    team_lead_id: Optional[uuid.UUID] = None,
) -> BatchCreateResult:
    if not timesheet_ids:
        raise ValidationError("timesheet_ids must be a non-empty list")
    if not permissions.can_coordinate_batches(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_coordinate_batches)} "
            f"can submit timesheet batches to Admins"
        )
    team_lead_id = team_lead_id or actor.id
    if team_lead_id != actor.id and not permissions.can_administer_batches(actor.role):
        raise Forbidden("You can only create batches on your own behalf")

    with unit_of_work(db):
        team_lead = get_user(db, team_lead_id, "Team lead")
        admin = get_user(db, admin_id, "Admin")
        if not admin.is_active or not permissions.can_receive_escalation(admin.role):
            raise ValidationError(f"Selected user {admin.id} is not an Admin (role: {admin.role})")

        valid: list[Timesheet] = []
        failed: list[str] = []
        for timesheet_id in _dedupe(timesheet_ids):
            ts = (
                db.query(Timesheet)
                .filter(Timesheet.id == timesheet_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not ts:
                failed.append(f"{timesheet_id}: not found")
                continue
            if ts.status != TimesheetStatus.approved:
                failed.append(
                    f'{timesheet_id}: cannot submit: status is "{ts.status.value}". Expected Approved.'
                )
                continue
            if ts.batch_id is not None and ts.batch is not None and ts.batch.status == BatchStatus.pending:
                failed.append(f"{timesheet_id}: already in pending batch {ts.batch_id}")
                continue
            valid.append(ts)

        if not valid:
            raise NoValidItems(f"No valid timesheets to submit. Errors: {' | '.join(failed)}")

        now = _now_utc()
        batch = TimesheetBatch(team_lead_id=team_lead.id, admin_id=admin.id, status=BatchStatus.pending)
        db.add(batch)
        db.flush()
        record_batch_event(
            db, batch.id, actor.id, BatchAction.created, BatchStatus.pending,
            f"Batch created with {len(valid)} timesheets", now,
        )

        for ts in valid:
            ts.current_approver_id = admin.id
            ts.batch_id = batch.id
            record_transition(
                db, ts.id, actor.id, HistoryAction.submitted_to_admin,
                ts.status, ts.status, "Submitted to admin as part of batch", now,
            )

        result = BatchCreateResult(
            batch_id=batch.id,
            succeeded=[str(ts.id) for ts in valid],
            failed=failed,
        )

    logger.info("Batch %s created by %s: %s", result.batch_id, actor.id, result.summary)
    return result


# ──────────────────────────────────────────────
# Terminal actions (all-or-nothing)
# ──────────────────────────────────────────────

def mark_batch_done(db: Session, actor: User, batch_id: uuid.UUID) -> BatchOutcome:
    _require_batch_admin(actor)
    with unit_of_work(db):
        batch = _lock_batch(db, batch_id)
        _require_pending(batch, "mark done")

        members = _lock_members(db, batch.id, (TimesheetStatus.approved,))
        if not members:
            raise NoEligibleItems(f"No Approved timesheets found in batch {batch.id}")

        now = _now_utc()
        for ts in members:
            ts.status = TimesheetStatus.finished
            ts.finished_date = now
            ts.comment = "Batch marked as done by admin"
            record_transition(
                db, ts.id, actor.id, HistoryAction.finished,
                TimesheetStatus.approved, TimesheetStatus.finished, "Batch marked as done", now,
            )

        batch.status = BatchStatus.processed
        record_batch_event(
            db, batch.id, actor.id, BatchAction.finished, BatchStatus.processed,
            "Batch marked as done by admin", now,
        )
        outcome = BatchOutcome(batch=batch, timesheet_ids=[ts.id for ts in members])

    logger.info("Batch %s processed by %s (%d timesheets finished)", batch_id, actor.id, len(outcome.timesheet_ids))
    return outcome


def reject_batch(db: Session, actor: User, batch_id: uuid.UUID, comment: str) -> BatchOutcome:
    if not comment or not comment.strip():
        raise ValidationError("A comment (rejection reason) is required to reject a batch")
    comment = comment.strip()
    _require_batch_admin(actor)

    with unit_of_work(db):
        batch = _lock_batch(db, batch_id)
        _require_pending(batch, "reject")

        members = _lock_members(db, batch.id, REJECTABLE)
        if not members:
            raise NoEligibleItems(f"No Submitted or Approved timesheets found in batch {batch.id}")

        now = _now_utc()
        for ts in members:
            previous = ts.status
            ts.status = TimesheetStatus.rejected
            ts.comment = comment
            ts.approve_date = None
            record_transition(
                db, ts.id, actor.id, HistoryAction.rejected,
                previous, TimesheetStatus.rejected, f"Batch Rejected: {comment}", now,
            )

        batch.status = BatchStatus.rejected
        record_batch_event(db, batch.id, actor.id, BatchAction.rejected, BatchStatus.rejected, comment, now)
        outcome = BatchOutcome(batch=batch, timesheet_ids=[ts.id for ts in members])

    logger.info("Batch %s rejected by %s (%d timesheets)", batch_id, actor.id, len(outcome.timesheet_ids))
    return outcome


# ──────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────

def list_batches(db: Session, actor: User, status: Optional[BatchStatus] = None) -> list[TimesheetBatch]:
    q = db.query(TimesheetBatch).options(
        selectinload(TimesheetBatch.timesheets),
        selectinload(TimesheetBatch.team_lead),
        selectinload(TimesheetBatch.admin),
    )
    if permissions.can_administer_batches(actor.role):
        pass
    elif permissions.can_coordinate_batches(actor.role):
        q = q.filter(TimesheetBatch.team_lead_id == actor.id)
    else:
        raise Forbidden("Only Team Leads and Admins can view batches")
    if status is not None:
        q = q.filter(TimesheetBatch.status == status)
    return q.order_by(TimesheetBatch.created_at.desc()).all()


def get_batch(db: Session, actor: User, batch_id: uuid.UUID) -> tuple[TimesheetBatch, list[BatchHistory]]:
    batch = (
        db.query(TimesheetBatch)
        .options(selectinload(TimesheetBatch.timesheets).selectinload(Timesheet.entries))
        .filter(TimesheetBatch.id == batch_id)
        .first()
    )
    if not batch:
        raise NotFound(f"Batch {batch_id} not found")
    if not permissions.can_administer_batches(actor.role) and batch.team_lead_id != actor.id:
        raise Forbidden(f"You cannot view batch {batch.id}")
    history = (
        db.query(BatchHistory)
        .filter(BatchHistory.batch_id == batch.id)
        .order_by(BatchHistory.timestamp.asc())
        .all()
    )
    return batch, history
