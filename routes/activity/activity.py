from datetime import datetime, timedelta
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from db.connection import get_db
from db.models import ActivityLog, Lead, UserDetails
from db.Schema.activity import ActivityOut
from routes.auth.auth_dependency import get_current_user, is_bd_executive
from utils.activity_format import format_updated_fields
from utils.time_and_ids import OFFICE_TZ, as_utc

router = APIRouter(
    prefix="/activitylogs",
    tags=["activity"],
)

LATEST_LIMIT = 20


def serialize_activity(log: ActivityLog) -> dict:
    return {
        "id": log.id,
        "entity_id": log.entity_id,
        "entity_name": log.entity_name,
        "entity": log.entity,
        "action": log.action,
        "lead_id": log.lead_id,
        "user_id": log.user_id,
        "changes": log.changes or [],
        "summary": format_updated_fields(log.changes),
        "timestamp": log.timestamp,
    }


def _day(value: str) -> datetime:
    try:
        return as_utc(datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=OFFICE_TZ))
    except ValueError:
        raise HTTPException(status_code=400, detail="Dates must be in YYYY-MM-DD format")


def _visible(q, db: Session, current_user: UserDetails):
    """BD Executives see activity on their own leads and their own actions."""
    if not is_bd_executive(current_user):
        return q
    own_leads = select(Lead.id).where(Lead.assigned_by == current_user.employee_code)
    return q.filter(
        (ActivityLog.lead_id.in_(own_leads)) | (ActivityLog.user_id == current_user.employee_code)
    )


@router.get("/activities", response_model=List[ActivityOut])
def get_all_activities(
    entity: Optional[str] = Query(None, description="Lead, Task or Proposal"),
    entity_id: Optional[str] = Query(None),
    lead_id: Optional[int] = Query(None),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Full audit trail, newest first."""
    q = _visible(db.query(ActivityLog), db, current_user)
    if entity:
        q = q.filter(ActivityLog.entity == entity)
    if entity_id:
        q = q.filter(ActivityLog.entity_id == entity_id)
    if lead_id is not None:
        q = q.filter((ActivityLog.lead_id == lead_id) | (
            (ActivityLog.entity == "Lead") & (ActivityLog.entity_id == str(lead_id))
        ))
    if date_from:
        q = q.filter(ActivityLog.timestamp >= _day(date_from))
    if date_to:
        q = q.filter(ActivityLog.timestamp < _day(date_to) + timedelta(days=1))

    logs = q.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc()).all()
    return [serialize_activity(l) for l in logs]


@router.get("/latest", response_model=List[ActivityOut])
def get_latest_activities(
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    logs = (
        _visible(db.query(ActivityLog), db, current_user)
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .limit(LATEST_LIMIT)
        .all()
    )
    return [serialize_activity(l) for l in logs]
