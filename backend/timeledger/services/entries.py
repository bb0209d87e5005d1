"""
Timesheet entries and the hours ledger.

Employees may create, change and delete entries only while the parent
timesheet is Draft or Rejected. The parent status is re-read under a row
lock inside the write transaction, never taken from an earlier read, so an
edit racing an approval loses.

Admin overrides (``approved_hours``) are the one mutation allowed in any
lifecycle stage; they leave ``logged_hours`` untouched and are what every
report reads from then on.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timeledger.database import unit_of_work
from timeledger.models.history import HistoryAction
from timeledger.models.timesheet import (
    EDITABLE_STATUSES, Timesheet, TimesheetEntry, TimesheetStatus,
)
from timeledger.models.user import Project, User
from timeledger.services import permissions
from timeledger.services.audit import log_action, record_transition
from timeledger.services.errors import (
    Forbidden, InvalidHours, NotEditable, NotFound, ValidationError,
)
from timeledger.services.workflow import lock_timesheet

logger = logging.getLogger(__name__)

MIN_HOURS = Decimal("0")
MAX_HOURS = Decimal("24")

EDITABLE_FIELDS = ("date", "logged_hours", "project_id", "task_id", "description")


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _fmt_hours(value) -> str:
    return f"{float(value):g}"


def validate_hours(value: Any, field: str = "hours") -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidHours(f"{field} is required")
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidHours(f"{field} must be a number (got {value!r})")
    if not hours.is_finite() or hours < MIN_HOURS or hours > MAX_HOURS:
        raise InvalidHours(f"{field} must be between {MIN_HOURS} and {MAX_HOURS} (got {value})")
    return hours


def _lock_entry(db: Session, entry_id: uuid.UUID) -> TimesheetEntry:
    entry = (
        db.query(TimesheetEntry)
        .filter(TimesheetEntry.id == entry_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not entry:
        raise NotFound(f"TimesheetEntry {entry_id} not found")
    return entry


def assert_timesheet_editable(ts: Timesheet) -> None:
    if ts.status not in EDITABLE_STATUSES:
        raise NotEditable(
            f'Cannot modify entries: timesheet {ts.id} is "{ts.status.value}". '
            f"Only Draft or Rejected timesheets can be edited.",
            current_status=ts.status,
        )


def _require_owner(ts: Timesheet, actor: User) -> None:
    if ts.user_id != actor.id:
        raise Forbidden(f"Only the owner of timesheet {ts.id} can change its entries")


def _require_project(db: Session, project_id: Optional[uuid.UUID]) -> None:
    if project_id is not None and not db.query(Project.id).filter(Project.id == project_id).first():
        raise NotFound(f"Project {project_id} not found")


def _find_period(db: Session, user_id: uuid.UUID, month: int, year: int) -> Optional[Timesheet]:
    return (
        db.query(Timesheet)
        .filter(Timesheet.user_id == user_id, Timesheet.month == month, Timesheet.year == year)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _lock_or_create_period(db: Session, actor: User, entry_date: date) -> Timesheet:
    ts = _find_period(db, actor.id, entry_date.month, entry_date.year)
    if ts:
        return ts
    ts = Timesheet(
        user_id=actor.id,
        month=entry_date.month,
        year=entry_date.year,
        status=TimesheetStatus.draft,
    )
    db.add(ts)
    try:
        db.flush()
    except IntegrityError:
        # A concurrent first entry opened the same period. Nothing else has
        # been written in this transaction yet, so start over and use theirs.
        db.rollback()
        ts = _find_period(db, actor.id, entry_date.month, entry_date.year)
        if ts is None:
            raise
        logger.info("Timesheet for user %s (%02d/%d) opened concurrently, reusing %s",
                    actor.id, entry_date.month, entry_date.year, ts.id)
        return ts
    logger.info("Opened timesheet %s for user %s (%02d/%d)", ts.id, actor.id, ts.month, ts.year)
    return ts


# ──────────────────────────────────────────────
# Entry CRUD (owner, Draft/Rejected only)
# ──────────────────────────────────────────────

def create_entry(
    db: Session,
    actor: User,
    entry_date: date,
    logged_hours: Any,
    project_id: Optional[uuid.UUID] = None,
    task_id: Optional[uuid.UUID] = None,
    description: str = "",
) -> TimesheetEntry:
    hours = validate_hours(logged_hours, "loggedHours")
    with unit_of_work(db):
        ts = _lock_or_create_period(db, actor, entry_date)
        assert_timesheet_editable(ts)
        _require_project(db, project_id)
        entry = TimesheetEntry(
            timesheet_id=ts.id,
            date=entry_date,
            logged_hours=hours,
            project_id=project_id,
            task_id=task_id,
            description=description or "",
        )
        db.add(entry)
    return entry


def update_entry(
    db: Session,
    actor: User,
    entry_id: uuid.UUID,
    changes: dict,
) -> TimesheetEntry:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "logged_hours" in changes:
        changes = {**changes, "logged_hours": validate_hours(changes["logged_hours"], "loggedHours")}

    with unit_of_work(db):
        entry = _lock_entry(db, entry_id)
        ts = lock_timesheet(db, entry.timesheet_id)
        _require_owner(ts, actor)
        assert_timesheet_editable(ts)

        new_date = changes.get("date")
        if new_date is not None and (new_date.month, new_date.year) != (ts.month, ts.year):
            raise ValidationError(
                f"Entry date {new_date.isoformat()} is outside timesheet period {ts.month:02d}/{ts.year}"
            )
        if "project_id" in changes:
            _require_project(db, changes["project_id"])

        for f, v in changes.items():
            if f == "date" and v is None:
                continue
            setattr(entry, f, v)
    return entry


def delete_entry(db: Session, actor: User, entry_id: uuid.UUID) -> None:
    with unit_of_work(db):
        entry = _lock_entry(db, entry_id)
        ts = lock_timesheet(db, entry.timesheet_id)
        _require_owner(ts, actor)
        assert_timesheet_editable(ts)
        db.delete(entry)


# ──────────────────────────────────────────────
# Admin hours override
# ──────────────────────────────────────────────

def override_entry_hours(
    db: Session,
    actor: User,
    entry_id: uuid.UUID,
    approved_hours: Any,
    note: Optional[str] = None,
) -> TimesheetEntry:
    if not permissions.can_override_hours(actor.role):
        raise Forbidden(
            f"Only {permissions.describe_roles(permissions.can_override_hours)} can override hours "
            f"(your role: {actor.role})"
        )
    hours = validate_hours(approved_hours, "approvedHours")
    note = (note or "").strip() or None

    with unit_of_work(db):
        entry = _lock_entry(db, entry_id)
        ts = lock_timesheet(db, entry.timesheet_id)

        before = entry.effective_hours
        now = _now_utc()
        entry.approved_hours = hours
        entry.hours_modified_by_id = actor.id
        entry.hours_modified_at = now

        log_action(
            db, actor.id, "Updated", "TimesheetEntry", entry.id,
            details={
                "approvedHours": f"{_fmt_hours(before)} → {_fmt_hours(hours)}",
                "before": float(before),
                "after": float(hours),
                "note": note,
                "modifiedBy": actor.full_name,
            },
        )
        comment = (
            f"Changed hours on {entry.date.isoformat()} from {_fmt_hours(before)} to {_fmt_hours(hours)}"
        )
        if note:
            comment = f"{comment} ({note})"
        record_transition(db, ts.id, actor.id, HistoryAction.modified, ts.status, ts.status, comment, now)

    logger.info("Entry %s hours %s -> %s by %s", entry_id, _fmt_hours(before), _fmt_hours(hours), actor.id)
    return entry
