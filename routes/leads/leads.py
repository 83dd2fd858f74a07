import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from db.connection import get_db
from db.models import (
    Lead, LeadStage, LeadRemark, PointOfContact, Task, UserDetails, UserRole,
    ActivityEntity, ActivityAction,
)
from db.Schema.lead import (
    LeadCreate, LeadUpdate, LeadOut, LeadListResponse,
    BulkAssignRequest, BulkAssignResponse, RemarkCreate,
)
from routes.auth.auth_dependency import get_current_user, require_role, is_bd_executive
from utils.activity_logger import (
    record_activity, snapshot, compute_changes, creation_changes,
    deletion_changes, remark_change,
)
from utils.stage_machine import ensure_transition, InvalidStageTransition
from utils.time_and_ids import OFFICE_TZ, as_utc, now_utc
from utils.validation_utils import normalize_url, has_duplicate_phones, lead_conflict, drop_null_required

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/leads",
    tags=["leads"],
)


# ----------------- helpers -----------------
def lead_query(db: Session, current_user: UserDetails):
    """Leads the user may see. BD Executives only see their own."""
    q = db.query(Lead).options(
        selectinload(Lead.points_of_contact),
        selectinload(Lead.remarks),
    )
    if is_bd_executive(current_user):
        q = q.filter(Lead.assigned_by == current_user.employee_code)
    return q


def get_lead_or_404(db: Session, lead_id: int, current_user: UserDetails) -> Lead:
    lead = db.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    if is_bd_executive(current_user) and lead.assigned_by != current_user.employee_code:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this lead")
    return lead


def _validate_assignee(db: Session, employee_code: Optional[str], current_user: UserDetails) -> Optional[str]:
    if not employee_code:
        return None
    if is_bd_executive(current_user) and employee_code != current_user.employee_code:
        raise HTTPException(status_code=403, detail="BD Executives can only assign leads to themselves")
    if not db.get(UserDetails, employee_code):
        raise HTTPException(status_code=400, detail=f"User {employee_code} not found")
    return employee_code


def _contacts(points_of_contact: List[Dict[str, Any]]) -> List[PointOfContact]:
    if has_duplicate_phones(points_of_contact):
        raise HTTPException(status_code=400, detail="Duplicate phone numbers found in points of contact")
    return [PointOfContact(**poc) for poc in points_of_contact]


def _contacts_snapshot(lead: Lead) -> List[Dict[str, Any]]:
    return [
        {"name": p.name, "phone": p.phone, "alternate_phone": p.alternate_phone, "stage": p.stage}
        for p in lead.points_of_contact
    ]


def _new_remark(remark_in: RemarkCreate, current_user: UserDetails) -> LeadRemark:
    if not (remark_in.content or remark_in.file_url or remark_in.voice_url):
        raise HTTPException(status_code=400, detail="Remark content is required")
    return LeadRemark(
        content=remark_in.content,
        type=remark_in.type,
        file_url=remark_in.file_url,
        voice_url=remark_in.voice_url,
        author_id=current_user.employee_code,
        author_name=current_user.name,
    )


def log_remark(db: Session, lead: Lead, changes: List[Dict[str, Any]], user_id: str, removed: bool = False):
    record_activity(
        db,
        entity=ActivityEntity.lead,
        entity_id=lead.id,
        entity_name=lead.company_name,
        action=ActivityAction.remark_deleted if removed else ActivityAction.remark_added,
        changes=changes,
        lead_id=lead.id,
        user_id=user_id,
    )


def build_lead(db: Session, data: Dict[str, Any], current_user: UserDetails) -> Lead:
    """
    Validate a create payload and return an unsaved Lead. Shared by the
    create endpoint and the bulk importer.
    """
    data = dict(data)
    data.pop("remark", None)
    data["website_url"] = normalize_url(data["website_url"])

    conflict = lead_conflict(db, data["website_url"])
    if conflict:
        raise HTTPException(status_code=400, detail=conflict["message"])

    contacts = _contacts(data.pop("points_of_contact", None) or [])

    if is_bd_executive(current_user):
        data["assigned_by"] = current_user.employee_code
    else:
        data["assigned_by"] = _validate_assignee(db, data.get("assigned_by"), current_user)

    lead = Lead(**data)
    lead.points_of_contact = contacts
    if lead.stage == LeadStage.proposal_sent.value:
        lead.stage_proposal_updated_at = now_utc()
    return lead


def _office_day_bounds(day: str):
    try:
        start = as_utc(datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=OFFICE_TZ))
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be in YYYY-MM-DD format")
    return start, start + timedelta(days=1)


# ----------------- routes -----------------
@router.post("/", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
def create_lead(
    lead_in: LeadCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Create a lead; an embedded remark becomes its first remark."""
    try:
        lead = build_lead(db, lead_in.model_dump(), current_user)
        remark = _new_remark(lead_in.remark, current_user) if lead_in.remark else None
        if remark:
            lead.remarks.append(remark)

        db.add(lead)
        db.commit()
        db.refresh(lead)

        record_activity(
            db,
            entity=ActivityEntity.lead,
            entity_id=lead.id,
            entity_name=lead.company_name,
            action=ActivityAction.create,
            changes=creation_changes(snapshot(lead)),
            lead_id=lead.id,
            user_id=current_user.employee_code,
        )
        if remark:
            log_remark(db, lead, remark_change(remark), current_user.employee_code)

        logger.info(f"Lead {lead.id} created by {current_user.employee_code}")
        db.refresh(lead)
        return lead

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating lead: {str(e)}"
        )


@router.get("/", response_model=LeadListResponse)
def get_all_leads(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    stage: Optional[str] = Query(None),
    assigned_by: Optional[str] = Query(None, description="All, Unassigned or an employee code"),
    search: Optional[str] = Query(None, description="Company name, email or contact phone"),
    poc_stage: Optional[str] = Query(None, description="Stage of any point of contact"),
    date: Optional[str] = Query(None, description="Creation day, YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    q = lead_query(db, current_user)

    if stage and stage != "All":
        q = q.filter(Lead.stage == stage)

    if not is_bd_executive(current_user) and assigned_by and assigned_by != "All":
        if assigned_by == "Unassigned":
            q = q.filter(Lead.assigned_by.is_(None))
        else:
            q = q.filter(Lead.assigned_by == assigned_by)

    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Lead.company_name.ilike(like),
            Lead.company_email.ilike(like),
            Lead.points_of_contact.any(PointOfContact.phone.ilike(like)),
            Lead.points_of_contact.any(PointOfContact.alternate_phone.ilike(like)),
        ))

    if poc_stage:
        q = q.filter(Lead.points_of_contact.any(PointOfContact.stage == poc_stage))

    if date:
        start, end = _office_day_bounds(date)
        q = q.filter(Lead.created_at >= start, Lead.created_at < end)

    total = q.count()
    leads = (
        q.order_by(Lead.created_at.desc(), Lead.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "leads": leads,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.put("/bulk-assign", response_model=BulkAssignResponse)
def bulk_assign(
    payload: BulkAssignRequest,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(require_role(UserRole.admin, UserRole.manager)),
):
    """Reassign and/or restage many leads; each lead is validated on its own."""
    if payload.assigned_by is None and payload.stage is None:
        raise HTTPException(status_code=400, detail="Provide assigned_by and/or stage")

    assignee = _validate_assignee(db, payload.assigned_by, current_user)
    updated, failed = [], []

    for lead_id in payload.lead_ids:
        lead = db.get(Lead, lead_id)
        if not lead:
            failed.append({"lead_id": lead_id, "error": "Lead not found"})
            continue
        try:
            before = snapshot(lead)
            if payload.stage:
                ensure_transition(lead.stage, payload.stage)
                if payload.stage == LeadStage.proposal_sent.value and lead.stage != payload.stage:
                    lead.stage_proposal_updated_at = now_utc()
                lead.stage = payload.stage
            if assignee:
                lead.assigned_by = assignee
            db.commit()
        except InvalidStageTransition as e:
            db.rollback()
            failed.append({"lead_id": lead_id, "error": str(e)})
            continue
        except StaleDataError:
            db.rollback()
            failed.append({"lead_id": lead_id, "error": "Lead was modified concurrently"})
            continue

        changes = compute_changes(before, snapshot(lead))
        if changes:
            record_activity(
                db,
                entity=ActivityEntity.lead,
                entity_id=lead.id,
                entity_name=lead.company_name,
                action=ActivityAction.update,
                changes=changes,
                lead_id=lead.id,
                user_id=current_user.employee_code,
            )
        updated.append(lead_id)

    return {"updated": updated, "failed": failed}


@router.get("/{lead_id}", response_model=LeadOut)
def get_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    return get_lead_or_404(db, lead_id, current_user)


@router.put("/{lead_id}", response_model=LeadOut)
def update_lead(
    lead_id: int,
    lead_in: LeadUpdate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """
    Partial update guarded by ``version``. The change set is computed from the
    stored row, not taken from the caller.
    """
    try:
        lead = get_lead_or_404(db, lead_id, current_user)
        if lead_in.version != lead.version:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Lead was modified by someone else (current version {lead.version})"
            )

        update_data = lead_in.model_dump(exclude_unset=True)
        update_data.pop("version")
        drop_null_required(Lead, update_data)
        remark_in = lead_in.remark if "remark" in update_data else None
        update_data.pop("remark", None)

        before = snapshot(lead)
        contacts_before = _contacts_snapshot(lead)

        if "website_url" in update_data:
            update_data["website_url"] = normalize_url(update_data["website_url"])
            conflict = lead_conflict(db, update_data["website_url"], exclude_lead_id=lead.id)
            if conflict:
                raise HTTPException(status_code=400, detail=conflict["message"])

        if "stage" in update_data:
            ensure_transition(lead.stage, update_data["stage"])
            if update_data["stage"] == LeadStage.proposal_sent.value and lead.stage != update_data["stage"]:
                lead.stage_proposal_updated_at = now_utc()

        if "assigned_by" in update_data:
            update_data["assigned_by"] = _validate_assignee(db, update_data["assigned_by"], current_user)
            if is_bd_executive(current_user) and update_data["assigned_by"] is None:
                raise HTTPException(status_code=403, detail="BD Executives cannot unassign leads")

        if "points_of_contact" in update_data:
            lead.points_of_contact = _contacts(update_data.pop("points_of_contact") or [])

        for field, value in update_data.items():
            setattr(lead, field, value)

        remark = _new_remark(remark_in, current_user) if remark_in else None
        if remark:
            lead.remarks.append(remark)

        db.commit()
        db.refresh(lead)

        changes = compute_changes(before, snapshot(lead))
        contacts_after = _contacts_snapshot(lead)
        if contacts_after != contacts_before:
            changes.append({"field": "points_of_contact", "old_value": contacts_before, "new_value": contacts_after})
        if changes:
            record_activity(
                db,
                entity=ActivityEntity.lead,
                entity_id=lead.id,
                entity_name=lead.company_name,
                action=ActivityAction.update,
                changes=changes,
                lead_id=lead.id,
                user_id=current_user.employee_code,
            )
        if remark:
            log_remark(db, lead, remark_change(remark), current_user.employee_code)

        db.refresh(lead)
        return lead

    except HTTPException:
        raise
    except InvalidStageTransition as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StaleDataError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Lead was modified by someone else")
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error updating lead: {str(e)}"
        )


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(require_role(UserRole.admin, UserRole.manager)),
):
    """Delete a lead with its contacts, remarks and proposals. Linked tasks are kept unlinked."""
    try:
        lead = get_lead_or_404(db, lead_id, current_user)
        before = snapshot(lead)
        name = lead.company_name

        for task in db.query(Task).filter(Task.lead_id == lead_id).all():
            task.lead_id = None
        db.delete(lead)
        db.commit()

        record_activity(
            db,
            entity=ActivityEntity.lead,
            entity_id=lead_id,
            entity_name=name,
            action=ActivityAction.delete,
            changes=deletion_changes(before),
            lead_id=lead_id,
            user_id=current_user.employee_code,
        )
        return {"message": "Lead deleted successfully"}

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error deleting lead: {str(e)}"
        )
