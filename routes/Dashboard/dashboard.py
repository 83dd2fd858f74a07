# routes/Dashboard/dashboard.py
from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, Dict, Any, Tuple
from datetime import datetime, timedelta

from db.connection import get_db
from db.models import Lead, UserDetails, CallActivity, EmailRecord, EmailType
from routes.auth.auth_dependency import get_current_user, is_bd_executive, is_privileged
from utils.lead_metrics import (
    stage_counts, total_revenue, conversion_rate, avg_deal_size,
    active_proposals, monthly_stats, daily_stats, user_stats,
)
from utils.time_and_ids import OFFICE_TZ, as_utc, now_utc, to_office

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# ----------------- time/window helpers -----------------
def _parse_day(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=OFFICE_TZ)
    except ValueError:
        raise HTTPException(status_code=400, detail="Dates must be in YYYY-MM-DD format")


def _window(date: Optional[str], start_date: Optional[str], end_date: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """[start, end) in UTC. A missing bound leaves that side open."""
    if start_date or end_date:
        start = _parse_day(start_date) if start_date else None
        end = _parse_day(end_date) + timedelta(days=1) if end_date else None
    elif date:
        start = _parse_day(date)
        end = start + timedelta(days=1)
    else:
        return None, None
    return (as_utc(start) if start else None), (as_utc(end) if end else None)


def _in_window(column, start: Optional[datetime], end: Optional[datetime]) -> list:
    conditions = []
    if start:
        conditions.append(column >= start)
    if end:
        conditions.append(column < end)
    return conditions


def _week_start() -> datetime:
    """Start of the current office week (Sunday)."""
    today = to_office(now_utc()).replace(hour=0, minute=0, second=0, microsecond=0)
    return as_utc(today - timedelta(days=(today.weekday() + 1) % 7))


# ----------------- route -----------------
@router.get("/stats")
def dashboard_stats(
    assigned_by: Optional[str] = Query(None, description="All, Unassigned or an employee code"),
    date: Optional[str] = Query(None, description="Single day, YYYY-MM-DD"),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
) -> Dict[str, Any]:
    start, end = _window(date, start_date, end_date)

    q = db.query(Lead)
    if is_bd_executive(current_user):
        q = q.filter(Lead.assigned_by == current_user.employee_code)
    elif assigned_by and assigned_by != "All":
        if assigned_by == "Unassigned":
            q = q.filter(Lead.assigned_by.is_(None))
        else:
            q = q.filter(Lead.assigned_by == assigned_by)
    q = q.filter(*_in_window(Lead.created_at, start, end))
    leads = q.all()

    calls_q = db.query(CallActivity)
    emails_q = db.query(EmailRecord).filter(EmailRecord.type == EmailType.sent.value)
    if is_bd_executive(current_user):
        calls_q = calls_q.filter(CallActivity.user_id == current_user.employee_code)
        emails_q = emails_q.filter(EmailRecord.user_email == current_user.email.lower())
    calls_q = calls_q.filter(*_in_window(CallActivity.timestamp, start, end))
    emails_q = emails_q.filter(*_in_window(EmailRecord.date, start, end))

    call_stats = dict(
        calls_q.with_entities(CallActivity.user_id, func.count(CallActivity.id))
        .group_by(CallActivity.user_id)
        .all()
    )
    call_times = [ts for (ts,) in calls_q.with_entities(CallActivity.timestamp).all()]

    week_start = _week_start()
    new_this_week = sum(1 for l in leads if as_utc(l.created_at) >= week_start)

    per_user = []
    if is_privileged(current_user):
        names = {u.employee_code: u.name for u in db.query(UserDetails.employee_code, UserDetails.name).all()}
        per_user = user_stats(leads, names)

    return {
        "totalLeads": len(leads),
        "stageStats": stage_counts(leads),
        "totalRevenue": total_revenue(leads),
        "conversionRate": conversion_rate(leads),
        "activeProposals": active_proposals(leads),
        "avgDealSize": avg_deal_size(leads),
        "monthlyStats": monthly_stats(leads),
        "dailyStats": daily_stats(leads, call_times),
        "userStats": per_user,
        "newLeadsThisWeek": new_this_week,
        "totalCalls": sum(call_stats.values()),
        "callStats": call_stats,
        "totalEmails": emails_q.count(),
    }
