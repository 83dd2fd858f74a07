# services/attendance_service.py
"""
Session bookkeeping behind login, logout and the evening close-out job.
Callers own the transaction; nothing here commits.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from config import STANDARD_LOGOUT_TIME
from db.models import Attendance, AttendanceSession, UserDetails, UserRole
from utils.attendance_rules import (
    close_open_session,
    first_login,
    last_logout,
    office_clock_on,
    record_status,
)
from utils.time_and_ids import to_office

logger = logging.getLogger(__name__)


def office_day(moment: datetime) -> str:
    return to_office(moment).strftime("%Y-%m-%d")


def tracks_attendance(user: UserDetails) -> bool:
    return user.role != UserRole.admin.value


def get_day_record(db: Session, user_id: str, day: str) -> Optional[Attendance]:
    return (
        db.query(Attendance)
        .filter(Attendance.user_id == user_id, Attendance.date == day)
        .first()
    )


def close_stale_sessions(db: Session, before_day: str, user_id: str = None, logout_clock: str = STANDARD_LOGOUT_TIME) -> int:
    """
    Close sessions still open on days before ``before_day`` at the standard
    logout time of their own day. Returns how many were closed.
    """
    query = db.query(Attendance).filter(Attendance.date < before_day)
    if user_id:
        query = query.filter(Attendance.user_id == user_id)

    closed = 0
    for record in query.all():
        if close_open_session(record, office_clock_on(record.date, logout_clock)):
            closed += 1
    return closed


def close_sessions_for_day(db: Session, day: str, logout_clock: str = STANDARD_LOGOUT_TIME) -> int:
    closed = 0
    for record in db.query(Attendance).filter(Attendance.date == day).all():
        if close_open_session(record, office_clock_on(day, logout_clock)):
            closed += 1
    return closed


def start_session(db: Session, user: UserDetails, now: datetime) -> Optional[Attendance]:
    """Open a session on today's record, creating the record on first login."""
    if not tracks_attendance(user):
        return None

    today = office_day(now)
    stale = close_stale_sessions(db, today, user_id=user.employee_code)
    if stale:
        logger.info(f"Auto-closed {stale} forgotten session(s) for {user.employee_code}")

    record = get_day_record(db, user.employee_code, today)
    if record is None:
        record = Attendance(user_id=user.employee_code, date=today, total_hours=0)
        db.add(record)
        db.flush()

    if record.sessions and record.sessions[-1].logout_time is None:
        # already logged in today
        return record

    record.sessions.append(AttendanceSession(login_time=now, duration_hours=0))
    return record


def end_session(
    db: Session,
    user: UserDetails,
    now: datetime,
    auto_logout: bool = False,
    last_login_date: Optional[str] = None,
    static_logout_time: str = STANDARD_LOGOUT_TIME,
) -> Optional[Attendance]:
    """
    Close the open session. With ``auto_logout`` the session of
    ``last_login_date`` is closed at ``static_logout_time`` on that day.
    """
    if not tracks_attendance(user):
        return None

    if auto_logout and last_login_date:
        record = get_day_record(db, user.employee_code, last_login_date)
        logout_at = office_clock_on(last_login_date, static_logout_time)
    else:
        record = get_day_record(db, user.employee_code, office_day(now))
        logout_at = now

    if record is None or not close_open_session(record, logout_at):
        return None
    return record


def serialize_attendance(record: Attendance, user_name: str = None) -> Dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "user_name": user_name or (record.employee.name if record.employee else None),
        "date": record.date,
        "sessions": [
            {
                "id": s.id,
                "login_time": s.login_time,
                "logout_time": s.logout_time,
                "duration_hours": round(s.duration_hours or 0, 2),
            }
            for s in record.sessions
        ],
        "total_hours": round(record.total_hours or 0, 2),
        "status": record_status(record),
        "login_time": first_login(record),
        "logout_time": last_logout(record),
    }


def serialize_many(records: List[Attendance]) -> List[Dict[str, Any]]:
    return [serialize_attendance(r) for r in records]
