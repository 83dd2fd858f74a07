# routes/users/calls.py
import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from db.connection import get_db
from db.models import CallActivity, Lead, UserDetails
from db.Schema.register import CallLogCreate
from routes.auth.auth_dependency import get_current_user, is_bd_executive

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["calls"],
)


def _serialize_call(call: CallActivity, users: Dict[str, UserDetails], leads: Dict[int, Lead]) -> Dict[str, Any]:
    user = users.get(call.user_id)
    lead = leads.get(call.lead_id)
    return {
        "id": call.id,
        "user_id": call.user_id,
        "user_name": user.name if user else None,
        "lead_id": call.lead_id,
        "company_name": lead.company_name if lead else None,
        "phone": call.phone,
        "timestamp": call.timestamp,
    }


def _serialize_calls(db: Session, calls: List[CallActivity]) -> List[Dict[str, Any]]:
    user_ids = {c.user_id for c in calls}
    lead_ids = {c.lead_id for c in calls}
    users = {u.employee_code: u for u in db.query(UserDetails).filter(UserDetails.employee_code.in_(user_ids)).all()} if user_ids else {}
    leads = {l.id: l for l in db.query(Lead).filter(Lead.id.in_(lead_ids)).all()} if lead_ids else {}
    return [_serialize_call(c, users, leads) for c in calls]


@router.post("/log", status_code=status.HTTP_201_CREATED)
def log_call(
    payload: CallLogCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Record an outgoing call by the current user against a lead."""
    lead = db.get(Lead, payload.lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    try:
        call = CallActivity(user_id=current_user.employee_code, lead_id=lead.id, phone=payload.phone)
        db.add(call)
        db.commit()
        db.refresh(call)
        return {"message": "Call logged successfully", "call": _serialize_calls(db, [call])[0]}
    except Exception as e:
        db.rollback()
        logger.error(f"Error logging call: {e}")
        raise HTTPException(status_code=500, detail=f"Error logging call: {str(e)}")


@router.get("/calls/all")
def all_calls(
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    q = db.query(CallActivity)
    if is_bd_executive(current_user):
        q = q.filter(CallActivity.user_id == current_user.employee_code)
    calls = q.order_by(CallActivity.timestamp.desc()).limit(limit).all()
    return {"calls": _serialize_calls(db, calls)}


@router.get("/calls/{user_id}")
def user_calls(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    if is_bd_executive(current_user) and user_id != current_user.employee_code:
        raise HTTPException(status_code=403, detail="You can only view your own calls")
    calls = (
        db.query(CallActivity)
        .filter(CallActivity.user_id == user_id)
        .order_by(CallActivity.timestamp.desc())
        .all()
    )
    return {"calls": _serialize_calls(db, calls)}


@router.get("/calls-batch")
def calls_batch(
    user_ids: Optional[str] = Query(None, description="Comma separated employee codes"),
    recent: int = Query(5, ge=0, le=50),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Call counts and the most recent calls for several users at once."""
    ids = [u.strip() for u in (user_ids or "").split(",") if u.strip()]
    if is_bd_executive(current_user):
        ids = [current_user.employee_code]
    if not ids:
        return {"results": {}}

    counts = dict(
        db.query(CallActivity.user_id, func.count(CallActivity.id))
        .filter(CallActivity.user_id.in_(ids))
        .group_by(CallActivity.user_id)
        .all()
    )

    results = {}
    for uid in ids:
        latest = (
            db.query(CallActivity)
            .filter(CallActivity.user_id == uid)
            .order_by(CallActivity.timestamp.desc())
            .limit(recent)
            .all()
        ) if recent else []
        results[uid] = {"count": counts.get(uid, 0), "recent": _serialize_calls(db, latest)}
    return {"results": results}
