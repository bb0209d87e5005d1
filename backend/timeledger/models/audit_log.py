import uuid

from sqlalchemy import Column, String, DateTime, JSON, Uuid, event
from sqlalchemy.sql import func

from timeledger.database import Base
from timeledger.services.errors import HistoryImmutable


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    user_id = Column(Uuid, nullable=True, index=True)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


@event.listens_for(AuditLog, "before_update")
@event.listens_for(AuditLog, "before_delete")
def _reject_rewrite(mapper, connection, target):
    raise HistoryImmutable("AuditLog rows are append-only")
