import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_MODE"] = "demo"

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from timeledger.database import Base, get_db
from timeledger.dependencies import get_holiday_calendar
from timeledger.models import audit_log, history  # noqa: F401
from timeledger.models.timesheet import Timesheet, TimesheetEntry, TimesheetStatus
from timeledger.models.user import Project, Role, User
from timeledger.services.holidays import HolidayCalendar


class FakeHolidayFetcher:
    """Stands in for the Nager.Date client; records every lookup."""

    def __init__(self, holidays=(), fail_years=()):
        self.holidays = set(holidays)
        self.fail_years = set(fail_years)
        self.calls = []

    def __call__(self, year, country_code):
        self.calls.append((year, country_code))
        if year in self.fail_years:
            raise ValueError(f"holiday service unavailable for {year}")
        return {d for d in self.holidays if d.year == year}


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'timeledger.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.employee, first_name=None, last_name="Tester", is_active=True):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"user{n}@example.com",
            first_name=first_name or f"{role.value}{n}",
            last_name=last_name,
            role=role.value,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def employee(make_user):
    return make_user(Role.employee, first_name="Emma")


@pytest.fixture
def team_lead(make_user):
    return make_user(Role.team_lead, first_name="Liam")


@pytest.fixture
def admin(make_user):
    return make_user(Role.admin, first_name="Ada")


@pytest.fixture
def project(db):
    p = Project(name="Apollo", code="APL")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_timesheet(db):
    def _make(user, month=6, year=2024, status=TimesheetStatus.draft, approver=None, entries=()):
        ts = Timesheet(
            user_id=user.id,
            month=month,
            year=year,
            status=status,
            current_approver_id=approver.id if approver else None,
        )
        db.add(ts)
        db.flush()
        for row in entries:
            day, hours = row[0], row[1]
            extra = row[2] if len(row) > 2 else {}
            db.add(TimesheetEntry(timesheet_id=ts.id, date=day, logged_hours=Decimal(str(hours)), **extra))
        db.commit()
        return ts

    return _make


@pytest.fixture
def holiday_fetcher():
    return FakeHolidayFetcher(holidays={date(2024, 6, 10)})


@pytest.fixture
def holiday_calendar(holiday_fetcher):
    return HolidayCalendar(country_code="VN", fetcher=holiday_fetcher)


@pytest.fixture
def client(session_factory, holiday_calendar):
    from main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_holiday_calendar] = lambda: holiday_calendar
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    def _headers(user):
        return {"X-User-Id": str(user.id)}

    return _headers
