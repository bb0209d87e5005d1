"""
Admin dashboard aggregates for one (month, year).

The sub-computations below are plain functions over already-loaded rows so
each can be run (and tested) on its own. Every hours figure they see is the
entry's effective hours: the admin override when present, else logged.
``DashboardEngine`` loads the rows and owns the only cache, the holiday
calendar.
"""

import logging
import os
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from timeledger.models.history import ApprovalHistory, BatchHistory, HistoryAction
from timeledger.models.timesheet import Timesheet, TimesheetEntry, TimesheetStatus
from timeledger.models.user import Project, User
from timeledger.schemas.dashboard import (
    ActivityItem, ChartPoint, DashboardStats, EmployeeHours, OvertimeUser, TrendPoint, UserSummary,
)
from timeledger.services.errors import ValidationError
from timeledger.services.holidays import HolidayCalendar

logger = logging.getLogger(__name__)

STANDARD_WORKDAY_HOURS = 8.0
TREND_MONTHS = 6
TOP_EMPLOYEES = 5
RECENT_ACTIVITY_LIMIT = int(os.getenv("RECENT_ACTIVITY_LIMIT", "15"))
SYSTEM_ACTOR_NAME = "System"

STATUS_BUCKETS = (
    TimesheetStatus.draft,
    TimesheetStatus.submitted,
    TimesheetStatus.approved,
    TimesheetStatus.finished,
    TimesheetStatus.rejected,
)


@dataclass(frozen=True)
class EntryRow:
    user_id: uuid.UUID
    date: date
    hours: float
    project_id: Optional[uuid.UUID]
    month: int
    year: int


def _user_summary(user: Optional[User], user_id: Optional[uuid.UUID] = None) -> UserSummary:
    if user is None:
        return UserSummary(id=user_id, name="Unknown")
    return UserSummary(id=user.id, name=user.full_name or user.email or str(user.id), email=user.email)


# ──────────────────────────────────────────────
# 1. Overtime
# ──────────────────────────────────────────────

def overtime_hours(day: date, hours: float, is_holiday: Callable[[date], bool]) -> float:
    if hours <= 0:
        return 0.0
    if day.weekday() >= 5 or is_holiday(day):
        return hours
    return max(0.0, hours - STANDARD_WORKDAY_HOURS)


def compute_overtime(
    rows: Iterable[EntryRow],
    is_holiday: Callable[[date], bool],
    users_by_id: dict[uuid.UUID, User],
) -> list[OvertimeUser]:
    totals: dict[uuid.UUID, float] = defaultdict(float)
    for row in rows:
        ot = overtime_hours(row.date, row.hours, is_holiday)
        if ot > 0:
            totals[row.user_id] += ot
    result = [
        OvertimeUser(user=_user_summary(users_by_id.get(uid), uid), ot_hours=round(hours, 1))
        for uid, hours in totals.items()
    ]
    result.sort(key=lambda o: o.ot_hours, reverse=True)
    return result


# ──────────────────────────────────────────────
# 2. Missing submissions
# ──────────────────────────────────────────────

def find_missing_submissions(users: Iterable[User], period_user_ids: Iterable[uuid.UUID]) -> list[UserSummary]:
    have = set(period_user_ids)
    missing = [u for u in users if u.is_active and u.id not in have]
    missing.sort(key=lambda u: (u.full_name.lower(), u.email or ""))
    return [_user_summary(u) for u in missing]


# ──────────────────────────────────────────────
# 3. Recent activity
# ──────────────────────────────────────────────

def _actor_name(users_by_id: dict[uuid.UUID, User], actor_id: Optional[uuid.UUID]) -> str:
    actor = users_by_id.get(actor_id) if actor_id else None
    if actor is None:
        return SYSTEM_ACTOR_NAME
    return actor.full_name or actor.email or SYSTEM_ACTOR_NAME


def build_recent_activity(
    batch_logs: Iterable[BatchHistory],
    approval_logs: Iterable[ApprovalHistory],
    users_by_id: dict[uuid.UUID, User],
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> list[ActivityItem]:
    items: list[ActivityItem] = []
    for log in batch_logs:
        items.append(ActivityItem(
            id=log.id,
            type="Batch",
            action=log.action,
            message=log.comment or f"Batch {log.action}",
            timestamp=log.timestamp,
            actor_name=_actor_name(users_by_id, log.actor_id),
            reference_id=log.batch_id,
        ))
    for log in approval_logs:
        msg = log.comment
        if not msg:
            if log.action == HistoryAction.modified.value:
                msg = "Modified a timesheet entry"
            else:
                msg = f"Timesheet {log.action}"
        items.append(ActivityItem(
            id=log.id,
            type="Timesheet",
            action=log.action,
            message=msg,
            timestamp=log.timestamp,
            actor_name=_actor_name(users_by_id, log.actor_id),
            reference_id=log.timesheet_id,
        ))
    items.sort(key=lambda i: i.timestamp, reverse=True)
    return items[:limit]


# ──────────────────────────────────────────────
# 4. Status breakdown
# ──────────────────────────────────────────────

def status_breakdown(statuses: Iterable) -> list[ChartPoint]:
    counts = {bucket: 0 for bucket in STATUS_BUCKETS}
    for raw in statuses:
        try:
            status = TimesheetStatus.parse(raw)
        except ValueError:
            logger.warning("Ignoring unknown timesheet status %r", raw)
            continue
        counts[status] += 1
    return [ChartPoint(name=s.value, value=n) for s, n in counts.items() if n > 0]


# ──────────────────────────────────────────────
# 5. Trend, per-project, top employees
# ──────────────────────────────────────────────

def trailing_periods(month: int, year: int, count: int = TREND_MONTHS) -> list[tuple[int, int]]:
    """The ``count`` (month, year) pairs ending at the given month, oldest first."""
    periods = []
    for back in range(count - 1, -1, -1):
        index = year * 12 + (month - 1) - back
        periods.append((index % 12 + 1, index // 12))
    return periods


def monthly_hours_trend(rows: Iterable[EntryRow], month: int, year: int) -> list[TrendPoint]:
    periods = trailing_periods(month, year)
    totals = {p: 0.0 for p in periods}
    for row in rows:
        key = (row.month, row.year)
        if key in totals:
            totals[key] += row.hours
    return [
        TrendPoint(name=f"{m:02d}/{str(y)[-2:]}", hours=round(totals[(m, y)], 1))
        for m, y in periods
    ]


def project_hours(rows: Iterable[EntryRow], projects_by_id: dict[uuid.UUID, str]) -> list[ChartPoint]:
    totals: dict[uuid.UUID, float] = defaultdict(float)
    for row in rows:
        if row.hours > 0 and row.project_id is not None:
            totals[row.project_id] += row.hours
    chart = [
        ChartPoint(name=projects_by_id.get(pid, "Unknown Project"), value=round(hours, 1))
        for pid, hours in totals.items()
    ]
    chart.sort(key=lambda p: p.value, reverse=True)
    return chart


def top_employees(
    rows: Iterable[EntryRow],
    users_by_id: dict[uuid.UUID, User],
    limit: int = TOP_EMPLOYEES,
) -> list[EmployeeHours]:
    totals: dict[uuid.UUID, float] = defaultdict(float)
    for row in rows:
        if row.hours > 0:
            totals[row.user_id] += row.hours
    ranked = []
    for uid, hours in totals.items():
        user = users_by_id.get(uid)
        ranked.append(EmployeeHours(
            name=user.full_name if user else "Unknown",
            hours=round(hours, 1),
            email=user.email if user else None,
        ))
    ranked.sort(key=lambda e: e.hours, reverse=True)
    return ranked[:limit]


# ──────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────

class DashboardEngine:
    def __init__(self, holidays: HolidayCalendar, activity_limit: int = RECENT_ACTIVITY_LIMIT):
        self.holidays = holidays
        self.activity_limit = activity_limit

    def _load_entry_rows(self, db: Session, month: int, year: int) -> list[EntryRow]:
        first_month, first_year = trailing_periods(month, year)[0]
        lo = first_year * 12 + (first_month - 1)
        hi = year * 12 + (month - 1)
        period_index = Timesheet.year * 12 + (Timesheet.month - 1)
        q = (
            db.query(TimesheetEntry, Timesheet.user_id, Timesheet.month, Timesheet.year)
            .join(Timesheet, TimesheetEntry.timesheet_id == Timesheet.id)
            .filter(period_index >= lo, period_index <= hi)
        )
        return [
            EntryRow(
                user_id=user_id,
                date=entry.date,
                hours=entry.effective_hours,
                project_id=entry.project_id,
                month=ts_month,
                year=ts_year,
            )
            for entry, user_id, ts_month, ts_year in q.all()
        ]

    def get_dashboard_stats(self, db: Session, month: int, year: int) -> DashboardStats:
        if not month or not year:
            raise ValidationError("month and year are required")
        if not 1 <= month <= 12:
            raise ValidationError(f"month must be between 1 and 12 (got {month})")

        users = db.query(User).all()
        users_by_id = {u.id: u for u in users}
        projects_by_id = {pid: name for pid, name in db.query(Project.id, Project.name).all()}

        period_timesheets = (
            db.query(Timesheet.user_id, Timesheet.status)
            .filter(Timesheet.month == month, Timesheet.year == year)
            .all()
        )

        rows = self._load_entry_rows(db, month, year)
        current = [r for r in rows if (r.month, r.year) == (month, year)]

        batch_logs = (
            db.query(BatchHistory).order_by(BatchHistory.timestamp.desc()).limit(self.activity_limit).all()
        )
        approval_logs = (
            db.query(ApprovalHistory).order_by(ApprovalHistory.timestamp.desc()).limit(self.activity_limit).all()
        )

        # one lookup per year for the whole request, even when the fetch fails
        holidays_by_year = {y: self.holidays.holidays_for(y) for y in {r.date.year for r in current}}

        def is_holiday(day: date) -> bool:
            return day in holidays_by_year.get(day.year, frozenset())

        stats = DashboardStats(
            overtime_users=compute_overtime(current, is_holiday, users_by_id),
            missing_timesheet_users=find_missing_submissions(users, (uid for uid, _ in period_timesheets)),
            recent_activity=build_recent_activity(batch_logs, approval_logs, users_by_id, self.activity_limit),
            timesheet_status_chart=status_breakdown(status for _, status in period_timesheets),
            monthly_hours_trend=monthly_hours_trend(rows, month, year),
            project_hours_chart=project_hours(current, projects_by_id),
            top_employees_chart=top_employees(current, users_by_id),
        )
        logger.info(
            "Dashboard %02d/%d: %d entries, %d OT users, %d missing",
            month, year, len(current), len(stats.overtime_users), len(stats.missing_timesheet_users),
        )
        return stats
