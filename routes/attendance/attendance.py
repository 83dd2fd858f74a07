import logging
from calendar import monthrange
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from db.connection import get_db
from db.models import Attendance as AttendanceModel, AttendanceSession, UserDetails, UserRole
from db.Schema.attendance import AttendanceOut, AttendanceSummary, MonthlyAttendance
from routes.auth.auth_dependency import get_current_user, require_role, is_bd_executive
from services.attendance_service import get_day_record, serialize_attendance, serialize_many
from utils.attendance_rules import get_attendance_summary, ABSENT
from utils.time_and_ids import office_today

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/attendance",
    tags=["Attendance"],
)


def _scope(current_user: UserDetails, user_id: Optional[str]) -> Optional[str]:
    """BD Executives only ever read their own attendance."""
    if is_bd_executive(current_user):
        if user_id and user_id != current_user.employee_code:
            raise HTTPException(status_code=403, detail="You can only view your own attendance")
        return current_user.employee_code
    return user_id


def _query(db: Session, user_id: Optional[str], date_from: Optional[str], date_to: Optional[str]):
    q = db.query(AttendanceModel)
    if user_id:
        q = q.filter(AttendanceModel.user_id == user_id)
    if date_from:
        q = q.filter(AttendanceModel.date >= date_from)
    if date_to:
        q = q.filter(AttendanceModel.date <= date_to)
    return q.order_by(AttendanceModel.date.desc(), AttendanceModel.id.desc())


@router.get(
    "/all",
    response_model=List[AttendanceOut],
    summary="List attendance records (with optional filters)",
)
def list_attendances(
    user_id: Optional[str] = Query(None, description="Filter by employee code"),
    date_from: Optional[str] = Query(None, description="Start date YYYY-MM-DD (inclusive)"),
    date_to: Optional[str] = Query(None, description="End date YYYY-MM-DD (inclusive)"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    user_id = _scope(current_user, user_id)
    return serialize_many(_query(db, user_id, date_from, date_to).all())


@router.get(
    "/summary",
    response_model=AttendanceSummary,
    summary="Day counts and attendance percentage",
)
def attendance_summary(
    user_id: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    user_id = _scope(current_user, user_id)
    records = serialize_many(_query(db, user_id, date_from, date_to).all())
    return get_attendance_summary(records)


@router.get(
    "/today/{user_id}",
    response_model=Optional[AttendanceOut],
    summary="Today's record for a user, null when they have not logged in",
)
def today_attendance(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    user_id = _scope(current_user, user_id)
    record = get_day_record(db, user_id, office_today().isoformat())
    return serialize_attendance(record) if record else None


@router.get(
    "/monthly/{user_id}/{month}",
    response_model=MonthlyAttendance,
    summary="Records of one month (YYYY-MM) with present days and hours",
)
def monthly_attendance(
    user_id: str,
    month: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    user_id = _scope(current_user, user_id)
    try:
        first = datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Month must be in YYYY-MM format")

    last_day = monthrange(first.year, first.month)[1]
    records = serialize_many(
        _query(db, user_id, first.isoformat(), first.replace(day=last_day).isoformat()).all()
    )
    return {
        "user_id": user_id,
        "month": month,
        "records": records,
        "present_days": sum(1 for r in records if r["status"] != ABSENT),
        "total_hours": round(sum(r["total_hours"] for r in records), 2),
    }


@router.delete(
    "/clear",
    status_code=status.HTTP_200_OK,
    summary="Delete every attendance record",
)
def clear_attendance(
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(require_role(UserRole.admin)),
):
    try:
        db.query(AttendanceSession).delete(synchronize_session=False)
        deleted = db.query(AttendanceModel).delete(synchronize_session=False)
        db.commit()
        logger.warning(f"Attendance cleared by {current_user.employee_code}: {deleted} record(s)")
        return {"message": "All attendance records cleared", "deleted": deleted}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error clearing attendance: {str(e)}")
