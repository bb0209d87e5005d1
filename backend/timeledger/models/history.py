import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid, event

from timeledger.database import Base
from timeledger.models.timesheet import StatusColumn, TimesheetStatus, BatchStatus
from timeledger.services.errors import HistoryImmutable


class HistoryAction(str, enum.Enum):
    submitted = "Submitted"
    approved = "Approved"
    rejected = "Rejected"
    finished = "Finished"
    submitted_to_admin = "SubmittedToAdmin"
    modified = "Modified"


class BatchAction(str, enum.Enum):
    created = "Created"
    finished = "Finished"
    rejected = "Rejected"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalHistory(Base):
    __tablename__ = "approval_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    timesheet_id = Column(Uuid, ForeignKey("timesheets.id"), nullable=False, index=True)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    from_status = Column(StatusColumn(TimesheetStatus), nullable=True)
    to_status = Column(StatusColumn(TimesheetStatus), nullable=False)
    comment = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_now_utc, index=True)


class BatchHistory(Base):
    __tablename__ = "batch_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    batch_id = Column(Uuid, ForeignKey("timesheet_batches.id"), nullable=False, index=True)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    status = Column(StatusColumn(BatchStatus), nullable=False)
    comment = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_now_utc, index=True)


def _reject_rewrite(mapper, connection, target):
    raise HistoryImmutable(f"{type(target).__name__} rows are append-only")


for _model in (ApprovalHistory, BatchHistory):
    event.listen(_model, "before_update", _reject_rewrite)
    event.listen(_model, "before_delete", _reject_rewrite)
