"""
Append-only history writers.

None of these commit. They add rows to the caller's session so the row
lands in the same transaction as the mutation it describes.
"""

import uuid
from datetime import datetime
from typing import Any, Optional
from sqlalchemy.orm import Session

from timeledger.models.audit_log import AuditLog
from timeledger.models.history import ApprovalHistory, BatchHistory, HistoryAction, BatchAction
from timeledger.models.timesheet import BatchStatus, TimesheetStatus


def _as_uuid_or_none(value: Any) -> Optional[uuid.UUID]:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def record_transition(
    db: Session,
    timesheet_id: uuid.UUID,
    actor_id: Optional[uuid.UUID],
    action: HistoryAction,
    from_status: Optional[TimesheetStatus],
    to_status: TimesheetStatus,
    comment: str | None = None,
    timestamp: datetime | None = None,
) -> ApprovalHistory:
    row = ApprovalHistory(
        timesheet_id=timesheet_id,
        actor_id=_as_uuid_or_none(actor_id),
        action=HistoryAction(action).value,
        from_status=from_status,
        to_status=to_status,
        comment=comment or None,
    )
    if timestamp is not None:
        row.timestamp = timestamp
    db.add(row)
    return row


def record_batch_event(
    db: Session,
    batch_id: uuid.UUID,
    actor_id: Optional[uuid.UUID],
    action: BatchAction,
    status: BatchStatus,
    comment: str | None = None,
    timestamp: datetime | None = None,
) -> BatchHistory:
    row = BatchHistory(
        batch_id=batch_id,
        actor_id=_as_uuid_or_none(actor_id),
        action=BatchAction(action).value,
        status=status,
        comment=comment or None,
    )
    if timestamp is not None:
        row.timestamp = timestamp
    db.add(row)
    return row


def log_action(
    db: Session,
    user_id: Any,
    action: str,
    resource_type: str,
    resource_id: Any = None,
    details: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=_as_uuid_or_none(user_id),
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details.copy() if isinstance(details, dict) else None,
    )
    db.add(entry)
    return entry
