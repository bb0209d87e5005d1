import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSummary(_CamelModel):
    id: Optional[uuid.UUID] = None
    name: str
    email: Optional[str] = None


class OvertimeUser(_CamelModel):
    user: UserSummary
    ot_hours: float


class ActivityItem(_CamelModel):
    id: uuid.UUID
    type: str  # "Batch" | "Timesheet"
    action: str
    message: str
    timestamp: datetime
    actor_name: str
    reference_id: uuid.UUID


class ChartPoint(_CamelModel):
    name: str
    value: float


class TrendPoint(_CamelModel):
    name: str  # MM/YY
    hours: float


class EmployeeHours(_CamelModel):
    name: str
    hours: float
    email: Optional[str] = None


class DashboardStats(_CamelModel):
    overtime_users: list[OvertimeUser]
    missing_timesheet_users: list[UserSummary]
    recent_activity: list[ActivityItem]
    timesheet_status_chart: list[ChartPoint]
    monthly_hours_trend: list[TrendPoint]
    project_hours_chart: list[ChartPoint]
    top_employees_chart: list[EmployeeHours]
