"""
Request-scoped dependencies.

Identity comes from the X-User-Id header when AUTH_MODE=demo (the only mode
wired today). The resolved user is re-read from the database on every
request, so role changes and deactivation apply immediately.
"""

import os
import uuid
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from typing import Optional

from timeledger.database import get_db
from timeledger.models.user import User
from timeledger.services.dashboard import DashboardEngine
from timeledger.services.holidays import HolidayCalendar

AUTH_MODE = os.getenv("AUTH_MODE", "demo")


def _as_uuid(value) -> uuid.UUID:
    if value is None:
        raise ValueError("None is not a UUID")
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> uuid.UUID:
    if AUTH_MODE != "demo":
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated (missing X-User-Id)")
    try:
        return _as_uuid(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id (must be UUID)")


def get_current_actor(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_active is False:
        raise HTTPException(status_code=401, detail="User not found or disabled")
    return user


def get_holiday_calendar(request: Request) -> HolidayCalendar:
    return request.app.state.holiday_calendar


def get_dashboard_engine(holidays: HolidayCalendar = Depends(get_holiday_calendar)) -> DashboardEngine:
    return DashboardEngine(holidays)
