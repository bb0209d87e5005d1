import enum
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from sqlalchemy.sql import func

from timeledger.database import Base


# ---------------------------------------------------
# Enums
# ---------------------------------------------------

class Role(str, enum.Enum):
    employee = "Employee"
    team_lead = "TeamLead"
    admin = "Admin"
    manager = "Manager"


USER_ROLE_ENUM = String(50)  # keep String to avoid enum migration issues


# ---------------------------------------------------
# User
# ---------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    email = Column(String(255), nullable=True, unique=True, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")

    role = Column(USER_ROLE_ENUM, nullable=False, default=Role.employee.value)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


# ---------------------------------------------------
# Project (read-only here; maintained by the project screens)
# ---------------------------------------------------

class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
