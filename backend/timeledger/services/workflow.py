"""
Timesheet lifecycle.

    Draft/Rejected --submit--> Submitted --approve--> Approved   (team lead)
                                          --approve--> Finished   (admin/manager)
    Submitted/Approved --reject--> Rejected
    Submitted/Approved --finish--> Finished
    Approved --submit_to_admin--> Submitted (approver re-pointed at an admin)

Each public function is one unit of work: the status precondition is read
under a row lock, the mutation and its ApprovalHistory row commit together,
and a refused request leaves the row untouched.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from timeledger.database import unit_of_work
from timeledger.models.history import ApprovalHistory, HistoryAction
from timeledger.models.timesheet import Timesheet, TimesheetStatus
from timeledger.models.user import User
from timeledger.services import permissions
from timeledger.services.audit import record_transition
from timeledger.services.errors import (
    Forbidden, InvalidTransition, NotFound, ValidationError, WorkflowError,
)

logger = logging.getLogger(__name__)

SUBMITTABLE = (TimesheetStatus.draft, TimesheetStatus.rejected)
REJECTABLE = (TimesheetStatus.submitted, TimesheetStatus.approved)
FINISHABLE = (TimesheetStatus.approved, TimesheetStatus.submitted)


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def lock_timesheet(db: Session, timesheet_id: uuid.UUID) -> Timesheet:
    """Load a timesheet for writing, bypassing whatever the session cached."""
    ts = (
        db.query(Timesheet)
        .filter(Timesheet.id == timesheet_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not ts:
        raise NotFound(f"Timesheet {timesheet_id} not found")
    return ts


def get_user(db: Session, user_id: uuid.UUID, label: str = "User") -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound(f"{label} {user_id} not found")
    return user


def _require_status(ts: Timesheet, allowed: Iterable[TimesheetStatus], verb: str, hint: str = "") -> None:
    if ts.status not in allowed:
        message = f'Cannot {verb} timesheet {ts.id}: status is "{ts.status.value}"'
        if hint:
            message = f"{message}. {hint}"
        raise InvalidTransition(message, current_status=ts.status)


def _require_designated_approver(ts: Timesheet, actor: User) -> None:
    if ts.current_approver_id != actor.id:
        raise Forbidden(f"You are not the designated approver for timesheet {ts.id}")
    if not permissions.can_approve(actor.role):
        raise Forbidden(
            f"Role {actor.role} cannot approve timesheets "
            f"(requires {permissions.describe_roles(permissions.can_approve)})"
        )


def _require_comment(comment: Optional[str], what: str) -> str:
    if not comment or not comment.strip():
        raise ValidationError(f"A comment ({what}) is required")
    return comment.strip()


# ──────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────

def submit_timesheet(
    db: Session,
    actor: User,
    timesheet_id: uuid.UUID,
    approver_id: Optional[uuid.UUID] = None,
) -> Timesheet:
    with unit_of_work(db):
        ts = lock_timesheet(db, timesheet_id)
        if ts.user_id != actor.id:
            raise Forbidden(f"Only the owner can submit timesheet {ts.id}")
        _require_status(ts, SUBMITTABLE, "submit")

        if approver_id is not None:
            approver = get_user(db, approver_id, "Approver")
            if approver.id == ts.user_id:
                raise ValidationError("A timesheet cannot be submitted to its own owner for approval")
            if not approver.is_active or not permissions.can_approve(approver.role):
                raise ValidationError(
                    f"Selected approver {approver.id} cannot approve timesheets "
                    f"(requires an active {permissions.describe_roles(permissions.can_approve)})"
                )
            ts.current_approver_id = approver.id
        elif ts.current_approver_id is None:
            logger.info("Timesheet %s submitted without an approver", ts.id)

        previous = ts.status
        ts.status = TimesheetStatus.submitted
        ts.submit_date = _now_utc()
        # a resubmitted sheet is no longer part of the batch it was rejected from
        ts.batch_id = None
        record_transition(db, ts.id, actor.id, HistoryAction.submitted, previous, ts.status)

    logger.info("Timesheet %s %s -> %s by %s", ts.id, previous.value, ts.status.value, actor.id)
    return ts


def approve_timesheet(
    db: Session,
    actor: User,
    timesheet_id: uuid.UUID,
    comment: Optional[str] = None,
) -> Timesheet:
    with unit_of_work(db):
        ts = lock_timesheet(db, timesheet_id)
        _require_status(ts, (TimesheetStatus.submitted,), "approve")
        _require_designated_approver(ts, actor)

        now = _now_utc()
        previous = ts.status
        if permissions.is_final_approver(actor.role):
            ts.status = TimesheetStatus.finished
            ts.finished_date = now
        else:
            ts.status = TimesheetStatus.approved
        ts.approve_date = now
        ts.comment = comment or ts.comment
        record_transition(db, ts.id, actor.id, HistoryAction.approved, previous, ts.status, comment, now)

    logger.info("Timesheet %s %s -> %s by %s", ts.id, previous.value, ts.status.value, actor.id)
    return ts


def reject_timesheet(
    db: Session,
    actor: User,
    timesheet_id: uuid.UUID,
    comment: str,
) -> Timesheet:
    comment = _require_comment(comment, "rejection reason")
    with unit_of_work(db):
        ts = lock_timesheet(db, timesheet_id)
        _require_status(ts, REJECTABLE, "reject")
        _require_designated_approver(ts, actor)

        previous = ts.status
        ts.status = TimesheetStatus.rejected
        ts.comment = comment
        ts.approve_date = None
        record_transition(db, ts.id, actor.id, HistoryAction.rejected, previous, ts.status, comment)

    logger.info("Timesheet %s %s -> %s by %s", ts.id, previous.value, ts.status.value, actor.id)
    return ts


def finish_timesheet(
    db: Session,
    actor: User,
    timesheet_id: uuid.UUID,
    comment: Optional[str] = None,
) -> Timesheet:
    if not permissions.can_finish(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_finish)} can finish timesheets "
            f"(your role: {actor.role})"
        )
    with unit_of_work(db):
        ts = lock_timesheet(db, timesheet_id)
        _require_status(ts, FINISHABLE, "finish")

        now = _now_utc()
        previous = ts.status
        ts.status = TimesheetStatus.finished
        ts.finished_date = now
        record_transition(db, ts.id, actor.id, HistoryAction.finished, previous, ts.status, comment, now)

    logger.info("Timesheet %s %s -> %s by %s", ts.id, previous.value, ts.status.value, actor.id)
    return ts


def submit_to_admin(
    db: Session,
    actor: User,
    timesheet_id: uuid.UUID,
    admin_id: uuid.UUID,
) -> Timesheet:
    """Hand an approved timesheet to an admin for final sign-off.

    The row re-enters Submitted so the admin's ordinary approve applies,
    while the history row keeps recording it as Approved: the approval
    itself is not undone by the hand-off.
    """
    with unit_of_work(db):
        ts = lock_timesheet(db, timesheet_id)
        _require_status(ts, (TimesheetStatus.approved,), "submit to admin", "Must be Approved first.")
        if ts.user_id != actor.id and not permissions.can_coordinate_batches(actor.role):
            raise Forbidden(
                f"Only the owner or a {permissions.describe_roles(permissions.can_coordinate_batches)} "
                f"can forward timesheet {ts.id}"
            )

        admin = get_user(db, admin_id, "Admin")
        if not admin.is_active or not permissions.can_receive_escalation(admin.role):
            raise ValidationError(f"Selected user {admin.id} is not an Admin (role: {admin.role})")

        ts.status = TimesheetStatus.submitted
        ts.current_approver_id = admin.id
        record_transition(
            db, ts.id, actor.id, HistoryAction.submitted_to_admin,
            TimesheetStatus.approved, TimesheetStatus.approved,
            f"Submitted to admin {admin.full_name or admin.id} for final approval",
        )

    logger.info("Timesheet %s forwarded to admin %s by %s", ts.id, admin.id, actor.id)
    return ts


# ──────────────────────────────────────────────
# Bulk variants (partial success)
# ──────────────────────────────────────────────

@dataclass
class BulkResult:
    label: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        text = f"{self.label}: {len(self.succeeded)} succeeded, {len(self.failed)} failed."
        if self.failed:
            text = f"{text} Errors: {' | '.join(self.failed)}"
        return text


def _run_bulk(label: str, timesheet_ids: list[uuid.UUID], action) -> BulkResult:
    if not timesheet_ids:
        raise ValidationError("timesheet_ids must be a non-empty list")
    result = BulkResult(label=label)
    for timesheet_id in timesheet_ids:
        try:
            action(timesheet_id)
        except WorkflowError as e:
            result.failed.append(f"{timesheet_id}: {e.message}")
        else:
            result.succeeded.append(str(timesheet_id))
    logger.info(result.summary)
    return result


def bulk_approve_timesheets(
    db: Session,
    actor: User,
    timesheet_ids: list[uuid.UUID],
    comment: Optional[str] = None,
) -> BulkResult:
    if not permissions.can_approve(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_approve)} can bulk-approve timesheets"
        )
    return _run_bulk(
        "Bulk approve", timesheet_ids,
        lambda timesheet_id: approve_timesheet(db, actor, timesheet_id, comment),
    )


def bulk_reject_timesheets(
    db: Session,
    actor: User,
    timesheet_ids: list[uuid.UUID],
    comment: str,
) -> BulkResult:
    if not permissions.can_approve(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_approve)} can bulk-reject timesheets"
        )
    comment = _require_comment(comment, "rejection reason")
    return _run_bulk(
        "Bulk reject", timesheet_ids,
        lambda timesheet_id: reject_timesheet(db, actor, timesheet_id, comment),
    )


# ──────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────

def get_approvable_timesheets(db: Session, actor: User) -> list[Timesheet]:
    """Timesheets waiting on ``actor``, newest submission first.

    Submitted sheets await a decision and Approved ones await batching or
    finishing. Finished and Rejected sheets keep their last approver but
    need nothing more from them, so they are left out.
    """
    return (
        db.query(Timesheet)
        .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
        .filter(
            Timesheet.current_approver_id == actor.id,
            Timesheet.status.notin_([TimesheetStatus.finished, TimesheetStatus.rejected]),
        )
        .order_by(Timesheet.submit_date.desc().nulls_last(), Timesheet.created_at.desc())
        .all()
    )


def get_timesheet(db: Session, actor: User, timesheet_id: uuid.UUID) -> Timesheet:
    ts = (
        db.query(Timesheet)
        .options(selectinload(Timesheet.user), selectinload(Timesheet.entries))
        .filter(Timesheet.id == timesheet_id)
        .first()
    )
    if not ts:
        raise NotFound(f"Timesheet {timesheet_id} not found")
    if actor.id not in (ts.user_id, ts.current_approver_id) and not permissions.can_view_all_timesheets(actor.role):
        raise Forbidden(f"You cannot view timesheet {ts.id}")
    return ts


def get_timesheet_history(db: Session, actor: User, timesheet_id: uuid.UUID) -> list[ApprovalHistory]:
    get_timesheet(db, actor, timesheet_id)
    return (
        db.query(ApprovalHistory)
        .filter(ApprovalHistory.timesheet_id == timesheet_id)
        .order_by(ApprovalHistory.timestamp.asc())
        .all()
    )
