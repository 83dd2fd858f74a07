# utils/attendance_rules.py
"""
Attendance status and summary rules.

Times are compared in the office timezone so that a 09:30 IST login is
``Late`` regardless of the server clock.
"""

from datetime import datetime, time
from typing import Iterable, Optional, Dict, Any, List

from utils.time_and_ids import OFFICE_TZ, as_utc, to_office

PRESENT = "Present"
ABSENT = "Absent"
LATE = "Late"
HALF_DAY = "Half Day"

LATE_AFTER = time(9, 0)
HALF_DAY_AFTER = time(13, 0)


def determine_status(login_time: Optional[datetime], logout_time: Optional[datetime] = None) -> str:
    if login_time is None:
        return ABSENT
    local = to_office(login_time).time()
    if local > HALF_DAY_AFTER:
        return HALF_DAY
    if local > LATE_AFTER:
        return LATE
    return PRESENT


def session_hours(login_time: datetime, logout_time: datetime) -> float:
    seconds = (as_utc(logout_time) - as_utc(login_time)).total_seconds()
    return max(seconds, 0) / 3600


def parse_clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def office_clock_on(day: str, clock: str) -> datetime:
    """``day`` (YYYY-MM-DD) at ``clock`` (HH:MM) in the office timezone, as UTC."""
    local = datetime.combine(datetime.strptime(day, "%Y-%m-%d").date(), parse_clock(clock), tzinfo=OFFICE_TZ)
    return as_utc(local)


def close_open_session(attendance, logout_at: datetime) -> bool:
    """
    Close the last open session of ``attendance`` at ``logout_at`` and
    recompute the day total. Returns False when nothing was open.
    """
    if not attendance.sessions:
        return False
    last = attendance.sessions[-1]
    if last.logout_time is not None:
        return False

    login_at = as_utc(last.login_time)
    logout_at = as_utc(logout_at)
    if logout_at < login_at:
        logout_at = login_at
    last.logout_time = logout_at
    last.duration_hours = session_hours(login_at, logout_at)
    attendance.total_hours = sum(s.duration_hours or 0 for s in attendance.sessions)
    return True


def first_login(attendance) -> Optional[datetime]:
    if not attendance.sessions:
        return None
    return attendance.sessions[0].login_time


def last_logout(attendance) -> Optional[datetime]:
    if not attendance.sessions:
        return None
    return attendance.sessions[-1].logout_time


def record_status(attendance) -> str:
    return determine_status(first_login(attendance), last_logout(attendance))


def get_attendance_summary(records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Aggregate day counts over serialized records (each with ``status`` and
    ``total_hours``). Empty input yields zeros and a 0 percentage.
    """
    records: List[Dict[str, Any]] = list(records)
    total_days = len(records)
    present = sum(1 for r in records if r["status"] == PRESENT)
    absent = sum(1 for r in records if r["status"] == ABSENT)
    half = sum(1 for r in records if r["status"] == HALF_DAY)
    late = sum(1 for r in records if r["status"] == LATE)
    total_hours = sum(r.get("total_hours") or 0 for r in records)
    avg_hours = total_hours / total_days if total_days else 0
    percentage = round((present + late + half * 0.5) / total_days * 100) if total_days else 0

    return {
        "total_days": total_days,
        "present_days": present,
        "absent_days": absent,
        "half_days": half,
        "late_days": late,
        "total_hours": round(total_hours, 2),
        "avg_hours": round(avg_hours, 2),
        "attendance_percentage": percentage,
    }
