"""
Seed script for Timeledger: one user per role plus a demo project.

Run: python -m timeledger.seed

Safe to re-run; existing rows (matched by email / project code) are kept.
The printed user ids go in the X-User-Id header in demo auth mode.
"""
import logging
import sys

from timeledger.database import Base, SessionLocal, engine
from timeledger.models import audit_log, history, timesheet  # noqa: F401
from timeledger.models.user import Project, Role, User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("employee@timeledger.local", "Emma", "Employee", Role.employee),
    ("lead@timeledger.local", "Liam", "Lead", Role.team_lead),
    ("admin@timeledger.local", "Ada", "Admin", Role.admin),
    ("manager@timeledger.local", "Max", "Manager", Role.manager),
]
DEMO_PROJECT_NAME = "Internal Operations"
DEMO_PROJECT_CODE = "OPS"


def seed_users(db) -> list[User]:
    users = []
    for email, first_name, last_name, role in DEMO_USERS:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(email=email, first_name=first_name, last_name=last_name, role=role.value, is_active=True)
            db.add(user)
            db.flush()
            logger.info("Created %s user: %s", role.value, email)
        else:
            logger.info("User %s already exists, skipping.", email)
        users.append(user)
    return users


def seed_project(db) -> Project:
    project = db.query(Project).filter(Project.code == DEMO_PROJECT_CODE).first()
    if not project:
        project = Project(name=DEMO_PROJECT_NAME, code=DEMO_PROJECT_CODE)
        db.add(project)
        db.flush()
        logger.info("Created project: %s (%s)", DEMO_PROJECT_NAME, DEMO_PROJECT_CODE)
    else:
        logger.info("Project %s already exists, skipping.", DEMO_PROJECT_CODE)
    return project


def run_seed():
    # no-op on a database already migrated with alembic
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = seed_users(db)
        project = seed_project(db)
        db.commit()
        for user in users:
            logger.info("  %-9s %s  %s", user.role, user.id, user.email)
        logger.info("  project   %s  %s", project.id, project.name)
        logger.info("Seed complete.")
    except Exception:
        db.rollback()
        logger.exception("Seed failed")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
