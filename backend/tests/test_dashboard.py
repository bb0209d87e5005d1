from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import text

from timeledger.models.history import ApprovalHistory, BatchHistory
from timeledger.models.timesheet import BatchStatus, TimesheetBatch, TimesheetStatus
from timeledger.models.user import Project, Role
from timeledger.services.dashboard import (
    DashboardEngine, overtime_hours, status_breakdown, trailing_periods,
)
from timeledger.services.errors import ValidationError

SATURDAY = date(2024, 6, 1)
TUESDAY = date(2024, 6, 4)
WEDNESDAY = date(2024, 6, 5)
HOLIDAY_MONDAY = date(2024, 6, 10)


@pytest.fixture
def engine_(holiday_calendar):
    return DashboardEngine(holiday_calendar, activity_limit=15)


def _ot(stats):
    return {o.user.id: o.ot_hours for o in stats.overtime_users}


# ── overtime ──


def test_weekend_weekday_and_standard_day(db, engine_, make_user, make_timesheet):
    weekend = make_user(Role.employee)
    long_day = make_user(Role.employee)
    normal_day = make_user(Role.employee)
    make_timesheet(weekend, entries=[(SATURDAY, 10)])
    make_timesheet(long_day, entries=[(TUESDAY, 9)])
    make_timesheet(normal_day, entries=[(TUESDAY, 8)])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert _ot(stats) == {weekend.id: 10.0, long_day.id: 1.0}
    assert [o.user.id for o in stats.overtime_users] == [weekend.id, long_day.id]


def test_public_holiday_counts_in_full(db, engine_, employee, make_timesheet, holiday_fetcher):
    make_timesheet(employee, entries=[(HOLIDAY_MONDAY, 3), (WEDNESDAY, 8), (SATURDAY, 2)])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert _ot(stats) == {employee.id: 5.0}
    assert holiday_fetcher.calls == [(2024, "VN")]


def test_overtime_sums_across_the_month(db, engine_, employee, make_timesheet):
    make_timesheet(employee, entries=[(SATURDAY, 10), (TUESDAY, 9.5), (WEDNESDAY, 8), (HOLIDAY_MONDAY, 4)])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert _ot(stats) == {employee.id: 15.5}


def test_failed_holiday_lookup_is_attempted_once_per_request(db, engine_, employee, make_timesheet,
                                                             holiday_fetcher):
    holiday_fetcher.fail_years.add(2024)
    make_timesheet(employee, entries=[(date(2024, 6, day), 9) for day in (3, 4, 5, 6, 7, 10, 11, 12, 13, 14)])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert holiday_fetcher.calls == [(2024, "VN")]
    # the holiday on the 10th is unknown, so it counts like any weekday
    assert _ot(stats) == {employee.id: 10.0}

    engine_.get_dashboard_stats(db, 6, 2024)
    assert holiday_fetcher.calls == [(2024, "VN"), (2024, "VN")]


def test_overtime_hours_rules():
    never = lambda d: False  # noqa: E731
    always = lambda d: True  # noqa: E731
    assert overtime_hours(SATURDAY, 10, never) == 10
    assert overtime_hours(TUESDAY, 9, never) == 1
    assert overtime_hours(TUESDAY, 8, never) == 0
    assert overtime_hours(TUESDAY, 3, always) == 3
    assert overtime_hours(SATURDAY, 0, never) == 0


# ── effective hours ──


def test_every_aggregate_uses_approved_hours(db, engine_, employee, project, make_timesheet):
    make_timesheet(
        employee, status=TimesheetStatus.finished,
        entries=[(SATURDAY, 10, {"approved_hours": 6, "project_id": project.id})],
    )

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert _ot(stats) == {employee.id: 6.0}
    assert stats.monthly_hours_trend[-1].hours == 6.0
    assert [(p.name, p.value) for p in stats.project_hours_chart] == [("Apollo", 6.0)]
    assert [(e.name, e.hours) for e in stats.top_employees_chart] == [(employee.full_name, 6.0)]


def test_zero_override_removes_the_entry_from_reports(db, engine_, employee, project, make_timesheet):
    make_timesheet(employee, entries=[(SATURDAY, 10, {"approved_hours": 0, "project_id": project.id})])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert stats.overtime_users == []
    assert stats.project_hours_chart == []
    assert stats.top_employees_chart == []


def test_recomputing_is_idempotent(db, engine_, employee, project, make_timesheet):
    make_timesheet(employee, entries=[(SATURDAY, 10, {"approved_hours": 7.5, "project_id": project.id}),
                                      (TUESDAY, 9)])

    first = engine_.get_dashboard_stats(db, 6, 2024)
    second = engine_.get_dashboard_stats(db, 6, 2024)

    assert first.model_dump() == second.model_dump()
    assert _ot(first) == {employee.id: 8.5}


# ── missing submissions ──


def test_missing_submissions_are_active_users_without_a_timesheet(
    db, engine_, employee, team_lead, admin, make_user, make_timesheet,
):
    make_user(Role.employee, is_active=False)
    make_timesheet(employee)  # an empty draft still counts as present
    make_timesheet(team_lead, month=5)

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert {u.id for u in stats.missing_timesheet_users} == {team_lead.id, admin.id}


# ── recent activity ──


def test_recent_activity_merges_both_logs_newest_first(db, holiday_calendar, employee, team_lead, admin,
                                                       make_timesheet):
    ts = make_timesheet(employee)
    batch = TimesheetBatch(team_lead_id=team_lead.id, admin_id=admin.id, status=BatchStatus.pending)
    db.add(batch)
    db.flush()
    base = datetime(2024, 6, 20, 9, 0, 0)
    db.add_all([
        ApprovalHistory(timesheet_id=ts.id, actor_id=employee.id, action="Submitted",
                        from_status=TimesheetStatus.draft, to_status=TimesheetStatus.submitted,
                        timestamp=base),
        BatchHistory(batch_id=batch.id, actor_id=team_lead.id, action="Created", status=BatchStatus.pending,
                     comment="Batch created with 1 timesheets", timestamp=base + timedelta(minutes=1)),
        ApprovalHistory(timesheet_id=ts.id, actor_id=None, action="Approved",
                        from_status=TimesheetStatus.submitted, to_status=TimesheetStatus.approved,
                        timestamp=base + timedelta(minutes=2)),
        ApprovalHistory(timesheet_id=ts.id, actor_id=admin.id, action="Modified",
                        from_status=TimesheetStatus.approved, to_status=TimesheetStatus.approved,
                        timestamp=base + timedelta(minutes=3)),
    ])
    db.commit()

    stats = DashboardEngine(holiday_calendar, activity_limit=3).get_dashboard_stats(db, 6, 2024)
    feed = stats.recent_activity

    assert [(i.type, i.action) for i in feed] == [
        ("Timesheet", "Modified"), ("Timesheet", "Approved"), ("Batch", "Created"),
    ]
    assert feed[0].message == "Modified a timesheet entry"
    assert feed[0].actor_name == admin.full_name
    assert feed[1].message == "Timesheet Approved"
    assert feed[1].actor_name == "System"
    assert feed[2].message == "Batch created with 1 timesheets"
    assert feed[2].reference_id == batch.id


# ── status breakdown ──


def test_status_chart_folds_legacy_values_and_drops_empty_buckets(db, engine_, make_user, make_timesheet):
    users = [make_user(Role.employee) for _ in range(4)]
    make_timesheet(users[0], status=TimesheetStatus.draft)
    make_timesheet(users[1], status=TimesheetStatus.approved)
    make_timesheet(users[2], status=TimesheetStatus.rejected)
    make_timesheet(users[3], status=TimesheetStatus.draft)
    db.execute(text(
        "UPDATE timesheets SET status = 'Approved_By_TeamLead' WHERE status = 'Rejected'"
    ))
    db.commit()
    assert db.execute(text("SELECT COUNT(*) FROM timesheets WHERE status = 'Approved_By_TeamLead'")).scalar() == 1

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert [(c.name, c.value) for c in stats.timesheet_status_chart] == [("Draft", 2), ("Approved", 2)]


def test_status_breakdown_keeps_bucket_order():
    chart = status_breakdown(["Rejected", "Finished", "Submitted", "Draft", "Approved_By_TeamLead", "Bogus"])
    assert [c.name for c in chart] == ["Draft", "Submitted", "Approved", "Finished", "Rejected"]


# ── trend, projects, top employees ──


def test_trailing_periods_wrap_the_year():
    assert trailing_periods(2, 2025) == [(9, 2024), (10, 2024), (11, 2024), (12, 2024), (1, 2025), (2, 2025)]
    assert trailing_periods(6, 2024)[0] == (1, 2024)


def test_trend_spans_six_months_across_new_year(db, engine_, employee, make_timesheet):
    make_timesheet(employee, month=8, year=2024, entries=[(date(2024, 8, 5), 8)])
    make_timesheet(employee, month=9, year=2024, entries=[(date(2024, 9, 2), 7.5)])
    make_timesheet(employee, month=12, year=2024, entries=[(date(2024, 12, 2), 6), (date(2024, 12, 3), 6)])
    make_timesheet(employee, month=2, year=2025, entries=[(date(2025, 2, 4), 4)])

    stats = engine_.get_dashboard_stats(db, 2, 2025)

    assert [(p.name, p.hours) for p in stats.monthly_hours_trend] == [
        ("09/24", 7.5), ("10/24", 0.0), ("11/24", 0.0), ("12/24", 12.0), ("01/25", 0.0), ("02/25", 4.0),
    ]
    # only the requested month feeds the per-month charts
    assert [(e.name, e.hours) for e in stats.top_employees_chart] == [(employee.full_name, 4.0)]


def test_project_hours_sorted_descending(db, engine_, employee, make_timesheet):
    apollo = Project(name="Apollo")
    gemini = Project(name="Gemini")
    db.add_all([apollo, gemini])
    db.commit()
    make_timesheet(employee, entries=[
        (TUESDAY, 3, {"project_id": apollo.id}),
        (WEDNESDAY, 5, {"project_id": gemini.id}),
        (date(2024, 6, 6), 4.5, {"project_id": apollo.id}),
        (date(2024, 6, 7), 2),
    ])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert [(p.name, p.value) for p in stats.project_hours_chart] == [("Apollo", 7.5), ("Gemini", 5.0)]


def test_top_employees_keeps_five(db, engine_, make_user, make_timesheet):
    users = [make_user(Role.employee) for _ in range(6)]
    for hours, user in enumerate(users, start=1):
        make_timesheet(user, entries=[(TUESDAY, hours)])

    stats = engine_.get_dashboard_stats(db, 6, 2024)

    assert [e.hours for e in stats.top_employees_chart] == [6.0, 5.0, 4.0, 3.0, 2.0]
    assert users[0].full_name not in {e.name for e in stats.top_employees_chart}


# ── input validation ──


@pytest.mark.parametrize("month", [0, 13])
def test_month_must_be_a_calendar_month(db, engine_, month):
    with pytest.raises(ValidationError):
        engine_.get_dashboard_stats(db, month, 2024)
