import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session, joinedload

from db.connection import get_db
from db.models import Proposal, Lead, UserDetails, ActivityEntity, ActivityAction
from db.Schema.proposal import ProposalCreate, ProposalUpdate, ProposalOut
from routes.auth.auth_dependency import get_current_user, is_bd_executive
from routes.leads.leads import get_lead_or_404
from utils.activity_logger import (
    record_activity, snapshot, compute_changes, creation_changes, deletion_changes,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/proposals",
    tags=["proposals"],
)


def serialize_proposal(p: Proposal) -> Dict[str, Any]:
    return {
        "id": p.id,
        "lead_id": p.lead_id,
        "template_id": p.template_id,
        "template_used": p.template_used,
        "rate_card_version": p.rate_card_version,
        "sent_via": p.sent_via,
        "status": p.status,
        "user_id": p.user_id,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
        "company_name": p.lead.company_name if p.lead else None,
    }


def _proposal_query(db: Session, current_user: UserDetails):
    q = db.query(Proposal).options(joinedload(Proposal.lead))
    if is_bd_executive(current_user):
        q = q.join(Lead, Proposal.lead_id == Lead.id).filter(
            (Proposal.user_id == current_user.employee_code)
            | (Lead.assigned_by == current_user.employee_code)
        )
    return q


def _get_proposal_or_404(db: Session, proposal_id: int, current_user: UserDetails) -> Proposal:
    proposal = _proposal_query(db, current_user).filter(Proposal.id == proposal_id).first()
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


def _log(db: Session, proposal_id: int, lead: Lead, action: ActivityAction, changes, user_id: str):
    record_activity(
        db,
        entity=ActivityEntity.proposal,
        entity_id=proposal_id,
        entity_name=lead.company_name if lead else None,
        action=action,
        changes=changes,
        lead_id=lead.id if lead else None,
        user_id=user_id,
    )


@router.post("/", response_model=ProposalOut, status_code=status.HTTP_201_CREATED)
def create_proposal(
    proposal_in: ProposalCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    try:
        lead = get_lead_or_404(db, proposal_in.lead_id, current_user)
        proposal = Proposal(**proposal_in.model_dump(), user_id=current_user.employee_code)
        db.add(proposal)
        db.commit()
        db.refresh(proposal)

        _log(db, proposal.id, lead, ActivityAction.create, creation_changes(snapshot(proposal)),
             current_user.employee_code)
        return serialize_proposal(proposal)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error creating proposal: {str(e)}")


@router.get("/", response_model=List[ProposalOut])
def list_proposals(
    user_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    q = _proposal_query(db, current_user)
    if user_id:
        q = q.filter(Proposal.user_id == user_id)
    if status_filter:
        q = q.filter(Proposal.status == status_filter)
    return [serialize_proposal(p) for p in q.order_by(Proposal.created_at.desc(), Proposal.id.desc()).all()]


@router.get("/lead/{lead_id}", response_model=List[ProposalOut])
def proposals_for_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    get_lead_or_404(db, lead_id, current_user)
    proposals = (
        db.query(Proposal)
        .filter(Proposal.lead_id == lead_id)
        .order_by(Proposal.created_at.desc(), Proposal.id.desc())
        .all()
    )
    return [serialize_proposal(p) for p in proposals]


@router.get("/{proposal_id}", response_model=ProposalOut)
def get_proposal(
    proposal_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    return serialize_proposal(_get_proposal_or_404(db, proposal_id, current_user))


@router.put("/{proposal_id}", response_model=ProposalOut)
def update_proposal(
    proposal_id: int,
    proposal_in: ProposalUpdate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    try:
        proposal = _get_proposal_or_404(db, proposal_id, current_user)
        before = snapshot(proposal)
        for field, value in proposal_in.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(proposal, field, value)
        db.commit()
        db.refresh(proposal)

        changes = compute_changes(before, snapshot(proposal))
        if changes:
            _log(db, proposal.id, proposal.lead, ActivityAction.update, changes, current_user.employee_code)
        return serialize_proposal(proposal)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error updating proposal: {str(e)}")


@router.delete("/{proposal_id}")
def delete_proposal(
    proposal_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    try:
        proposal = _get_proposal_or_404(db, proposal_id, current_user)
        before = snapshot(proposal)
        lead = proposal.lead

        db.delete(proposal)
        db.commit()

        _log(db, proposal_id, lead, ActivityAction.delete, deletion_changes(before), current_user.employee_code)
        return {"message": "Proposal deleted successfully"}

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting proposal: {str(e)}")
