import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Date, Numeric, ForeignKey,
    CheckConstraint, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator

from timeledger.database import Base


# ---------------------------------------------------
# Status enums
# ---------------------------------------------------

class TimesheetStatus(str, enum.Enum):
    draft = "Draft"
    submitted = "Submitted"
    approved = "Approved"
    finished = "Finished"
    rejected = "Rejected"

    @classmethod
    def parse(cls, value) -> "TimesheetStatus":
        if isinstance(value, cls):
            return value
        return cls(_LEGACY_TIMESHEET_STATUSES.get(value, value))


# Values written by older releases, folded into the current set on read.
_LEGACY_TIMESHEET_STATUSES = {
    "Approved_By_TeamLead": TimesheetStatus.approved.value,
}

EDITABLE_STATUSES = frozenset({TimesheetStatus.draft, TimesheetStatus.rejected})


class BatchStatus(str, enum.Enum):
    pending = "Pending"
    processed = "Processed"
    rejected = "Rejected"

    @classmethod
    def parse(cls, value) -> "BatchStatus":
        if isinstance(value, cls):
            return value
        return cls(value)


class StatusColumn(TypeDecorator):
    """Text column holding a closed status enum.

    Raw database values go through ``enum_cls.parse`` on the way out, so
    legacy spellings never reach the services.
    """

    impl = String
    cache_ok = True

    def __init__(self, enum_cls, length: int = 30):
        super().__init__(length)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls.parse(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls.parse(value)


# ---------------------------------------------------
# Timesheet (one per user / month / year)
# ---------------------------------------------------

class Timesheet(Base):
    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_timesheet_user_period"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_timesheet_month"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(StatusColumn(TimesheetStatus), nullable=False, default=TimesheetStatus.draft)

    submit_date = Column(DateTime(timezone=True), nullable=True)
    approve_date = Column(DateTime(timezone=True), nullable=True)
    finished_date = Column(DateTime(timezone=True), nullable=True)
    comment = Column(Text, nullable=True)

    # weak references: who must act next, and the admin batch once batched
    current_approver_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_id = Column(Uuid, ForeignKey("timesheet_batches.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    current_approver = relationship("User", foreign_keys=[current_approver_id])
    batch = relationship("TimesheetBatch", back_populates="timesheets")
    entries = relationship(
        "TimesheetEntry",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimesheetEntry.date",
    )

    @property
    def total_hours(self) -> float:
        return round(sum(e.effective_hours for e in self.entries), 1)


# ---------------------------------------------------
# TimesheetEntry (owned by exactly one timesheet)
# ---------------------------------------------------

class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        CheckConstraint("logged_hours >= 0 AND logged_hours <= 24", name="ck_entry_logged_hours"),
        CheckConstraint(
            "approved_hours IS NULL OR (approved_hours >= 0 AND approved_hours <= 24)",
            name="ck_entry_approved_hours",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    timesheet_id = Column(Uuid, ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    logged_hours = Column(Numeric(4, 1), nullable=False, default=0)
    approved_hours = Column(Numeric(4, 1), nullable=True)
    hours_modified_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    hours_modified_at = Column(DateTime(timezone=True), nullable=True)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    task_id = Column(Uuid, nullable=True)
    description = Column(Text, nullable=True, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    timesheet = relationship("Timesheet", back_populates="entries")
    hours_modified_by = relationship("User", foreign_keys=[hours_modified_by_id])
    project = relationship("Project")

    @property
    def effective_hours(self) -> float:
        if self.approved_hours is not None:
            return float(self.approved_hours)
        return float(self.logged_hours or 0)


# ---------------------------------------------------
# TimesheetBatch (team lead -> admin hand-off)
# ---------------------------------------------------

class TimesheetBatch(Base):
    __tablename__ = "timesheet_batches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    status = Column(StatusColumn(BatchStatus), nullable=False, default=BatchStatus.pending)
    team_lead_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    team_lead = relationship("User", foreign_keys=[team_lead_id])
    admin = relationship("User", foreign_keys=[admin_id])
    timesheets = relationship("Timesheet", back_populates="batch")
