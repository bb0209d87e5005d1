from datetime import date
from decimal import Decimal

import pytest

from timeledger.models.audit_log import AuditLog
from timeledger.models.history import ApprovalHistory
from timeledger.models.timesheet import Timesheet, TimesheetEntry, TimesheetStatus
from timeledger.services import entries, workflow
from timeledger.services.errors import Forbidden, InvalidHours, NotEditable, ValidationError


def test_create_entry_opens_a_draft_timesheet_for_the_period(db, employee, project):
    entry = entries.create_entry(db, employee, date(2024, 6, 3), 7.5, project_id=project.id, description="planning")

    ts = db.query(Timesheet).filter(Timesheet.user_id == employee.id).one()
    assert (ts.month, ts.year, ts.status) == (6, 2024, TimesheetStatus.draft)
    assert entry.timesheet_id == ts.id
    assert entry.logged_hours == Decimal("7.5")
    assert entry.effective_hours == 7.5

    entries.create_entry(db, employee, date(2024, 6, 4), 8)
    assert db.query(Timesheet).filter(Timesheet.user_id == employee.id).count() == 1


def test_first_entry_reuses_a_period_opened_concurrently(db, employee, make_timesheet, monkeypatch):
    theirs = make_timesheet(employee)
    real_find = entries._find_period
    lookups = []

    def find_after_losing_the_race(*args):
        lookups.append(args[1:])
        # the first lookup runs before the other writer's commit lands
        return None if len(lookups) == 1 else real_find(*args)

    monkeypatch.setattr(entries, "_find_period", find_after_losing_the_race)

    entry = entries.create_entry(db, employee, date(2024, 6, 3), 8)

    assert len(lookups) == 2
    assert entry.timesheet_id == theirs.id
    assert db.query(Timesheet).filter(Timesheet.user_id == employee.id).count() == 1
    assert db.query(TimesheetEntry).count() == 1


@pytest.mark.parametrize("hours", [None, -1, 24.5, "abc", float("nan")])
def test_hours_must_be_within_a_day(db, employee, hours):
    with pytest.raises(InvalidHours):
        entries.create_entry(db, employee, date(2024, 6, 3), hours)
    assert db.query(TimesheetEntry).count() == 0


def test_bounds_are_inclusive(db, employee):
    entries.create_entry(db, employee, date(2024, 6, 1), 0)
    entries.create_entry(db, employee, date(2024, 6, 2), 24)
    assert db.query(TimesheetEntry).count() == 2


def test_entries_are_frozen_once_submitted(db, employee, team_lead, make_timesheet):
    ts = make_timesheet(employee, entries=[(date(2024, 6, 3), 8)])
    entry = ts.entries[0]
    workflow.submit_timesheet(db, employee, ts.id, approver_id=team_lead.id)

    with pytest.raises(NotEditable) as exc:
        entries.update_entry(db, employee, entry.id, {"logged_hours": 6})
    assert exc.value.current_status == TimesheetStatus.submitted
    with pytest.raises(NotEditable):
        entries.delete_entry(db, employee, entry.id)
    with pytest.raises(NotEditable):
        entries.create_entry(db, employee, date(2024, 6, 5), 4)

    assert db.query(TimesheetEntry).filter(TimesheetEntry.timesheet_id == ts.id).count() == 1
    assert entry.logged_hours == Decimal("8")


def test_rejected_timesheet_is_editable_again(db, employee, team_lead, make_timesheet):
    ts = make_timesheet(employee, status=TimesheetStatus.submitted, approver=team_lead,
                        entries=[(date(2024, 6, 3), 8)])
    workflow.reject_timesheet(db, team_lead, ts.id, "fix Monday")

    entry = entries.update_entry(db, employee, ts.entries[0].id, {"logged_hours": 6.5, "description": "fixed"})

    assert entry.logged_hours == Decimal("6.5")
    assert entry.description == "fixed"


def test_edit_racing_an_approval_is_refused(session_factory, employee, team_lead, make_timesheet):
    ts = make_timesheet(employee, entries=[(date(2024, 6, 3), 8)])

    # the employee's request reads the sheet while it is still a draft
    employee_session = session_factory()
    stale = employee_session.get(Timesheet, ts.id)
    stale_entry = stale.entries[0]
    entry_id = stale_entry.id
    actor = employee_session.get(type(employee), employee.id)
    assert stale.status == TimesheetStatus.draft

    # meanwhile the sheet is submitted from another session
    other_session = session_factory()
    workflow.submit_timesheet(other_session, other_session.get(type(employee), employee.id), ts.id, team_lead.id)
    other_session.close()

    with pytest.raises(NotEditable):
        entries.update_entry(employee_session, actor, entry_id, {"logged_hours": 2})

    employee_session.close()
    check = session_factory()
    assert check.get(TimesheetEntry, entry_id).logged_hours == Decimal("8")
    check.close()


def test_only_the_owner_edits_entries(db, employee, make_user, make_timesheet):
    ts = make_timesheet(employee, entries=[(date(2024, 6, 3), 8)])
    intruder = make_user()

    with pytest.raises(Forbidden):
        entries.update_entry(db, intruder, ts.entries[0].id, {"logged_hours": 1})
    with pytest.raises(Forbidden):
        entries.delete_entry(db, intruder, ts.entries[0].id)


def test_update_keeps_the_entry_inside_its_period(db, employee, make_timesheet):
    ts = make_timesheet(employee, entries=[(date(2024, 6, 3), 8)])

    with pytest.raises(ValidationError):
        entries.update_entry(db, employee, ts.entries[0].id, {"date": date(2024, 7, 1)})
    with pytest.raises(ValidationError):
        entries.update_entry(db, employee, ts.entries[0].id, {"approved_hours": 1})

    moved = entries.update_entry(db, employee, ts.entries[0].id, {"date": date(2024, 6, 28)})
    assert moved.date == date(2024, 6, 28)


def test_delete_entry(db, employee, make_timesheet):
    ts = make_timesheet(employee, entries=[(date(2024, 6, 3), 8), (date(2024, 6, 4), 8)])

    entries.delete_entry(db, employee, ts.entries[0].id)

    assert db.query(TimesheetEntry).filter(TimesheetEntry.timesheet_id == ts.id).count() == 1


# ── admin override ──


def test_override_round_trip(db, employee, admin, make_timesheet):
    ts = make_timesheet(employee, status=TimesheetStatus.finished, approver=admin,
                        entries=[(date(2024, 6, 3), 10)])
    entry_id = ts.entries[0].id

    entries.override_entry_hours(db, admin, entry_id, 8, note="capped")

    db.expire_all()
    entry = db.get(TimesheetEntry, entry_id)
    assert entry.approved_hours == Decimal("8")
    assert entry.logged_hours == Decimal("10")
    assert entry.effective_hours == 8.0
    assert entry.hours_modified_by_id == admin.id
    assert entry.hours_modified_at is not None

    audits = db.query(AuditLog).filter(AuditLog.resource_id == str(entry_id)).all()
    assert len(audits) == 1
    assert audits[0].action == "Updated"
    assert audits[0].resource_type == "TimesheetEntry"
    assert audits[0].details["approvedHours"] == "10 → 8"
    assert audits[0].details["note"] == "capped"

    rows = db.query(ApprovalHistory).filter(ApprovalHistory.timesheet_id == ts.id).all()
    assert len(rows) == 1
    assert rows[0].action == "Modified"
    assert rows[0].from_status == rows[0].to_status == TimesheetStatus.finished
    assert rows[0].comment == "Changed hours on 2024-06-03 from 10 to 8 (capped)"

    # the owner's timesheet status is untouched by an override
    assert db.get(Timesheet, ts.id).status == TimesheetStatus.finished


def test_second_override_reports_previous_effective_hours(db, employee, admin, make_timesheet):
    ts = make_timesheet(employee, status=TimesheetStatus.approved, entries=[(date(2024, 6, 3), 10)])
    entry_id = ts.entries[0].id

    entries.override_entry_hours(db, admin, entry_id, 8)
    entries.override_entry_hours(db, admin, entry_id, 7.5)

    rows = (
        db.query(ApprovalHistory)
        .filter(ApprovalHistory.timesheet_id == ts.id)
        .order_by(ApprovalHistory.timestamp.asc())
        .all()
    )
    assert [r.comment for r in rows] == [
        "Changed hours on 2024-06-03 from 10 to 8",
        "Changed hours on 2024-06-03 from 8 to 7.5",
    ]


def test_override_is_admin_only_and_validated(db, employee, team_lead, admin, make_timesheet):
    ts = make_timesheet(employee, status=TimesheetStatus.approved, entries=[(date(2024, 6, 3), 10)])
    entry_id = ts.entries[0].id

    with pytest.raises(Forbidden):
        entries.override_entry_hours(db, team_lead, entry_id, 8)
    with pytest.raises(InvalidHours):
        entries.override_entry_hours(db, admin, entry_id, 30)

    db.expire_all()
    assert db.get(TimesheetEntry, entry_id).approved_hours is None
    assert db.query(AuditLog).count() == 0
    assert db.query(ApprovalHistory).count() == 0
