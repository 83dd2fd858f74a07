import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, File, UploadFile
from sqlalchemy.orm import Session

from db.connection import get_db
from db.models import LeadRemark, RemarkType, UserDetails, UserRole
from db.Schema.lead import RemarkCreate, RemarkOut
from routes.auth.auth_dependency import get_current_user
from routes.leads.leads import get_lead_or_404, log_remark, _new_remark
from utils.activity_logger import remark_change
from utils.files import save_upload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/leads",
    tags=["lead remarks"],
)

VOICE_SUBDIR = "voice"
ALLOWED_AUDIO = ("audio/",)


def _remarks(db: Session, lead_id: int) -> List[LeadRemark]:
    return (
        db.query(LeadRemark)
        .filter(LeadRemark.lead_id == lead_id)
        .order_by(LeadRemark.id)
        .all()
    )


@router.get("/{lead_id}/remarks", response_model=List[RemarkOut])
def list_remarks(
    lead_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    get_lead_or_404(db, lead_id, current_user)
    return _remarks(db, lead_id)


@router.post(
    "/{lead_id}/addnewremark",
    response_model=List[RemarkOut],
    status_code=status.HTTP_201_CREATED,
)
def add_remark(
    lead_id: int,
    remark_in: RemarkCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Append a remark and return every remark of the lead."""
    try:
        lead = get_lead_or_404(db, lead_id, current_user)
        remark = _new_remark(remark_in, current_user)
        lead.remarks.append(remark)
        db.commit()
        db.refresh(remark)

        log_remark(db, lead, remark_change(remark), current_user.employee_code)
        return _remarks(db, lead_id)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error adding remark: {str(e)}")


@router.delete("/{lead_id}/remarks/{remark_id}", response_model=List[RemarkOut])
def delete_remark(
    lead_id: int,
    remark_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Remove one remark and return the remaining ones."""
    try:
        lead = get_lead_or_404(db, lead_id, current_user)
        remark = (
            db.query(LeadRemark)
            .filter(LeadRemark.id == remark_id, LeadRemark.lead_id == lead_id)
            .first()
        )
        if not remark:
            raise HTTPException(status_code=404, detail="Remark not found")
        if current_user.role == UserRole.bd_executive.value and remark.author_id != current_user.employee_code:
            raise HTTPException(status_code=403, detail="You can only delete your own remarks")

        changes = remark_change(remark, removed=True)
        lead.remarks.remove(remark)
        db.commit()

        log_remark(db, lead, changes, current_user.employee_code, removed=True)
        return _remarks(db, lead_id)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting remark: {str(e)}")


@router.post(
    "/{lead_id}/upload-remark-voice",
    response_model=List[RemarkOut],
    status_code=status.HTTP_201_CREATED,
)
async def upload_voice_remark(
    lead_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    lead = get_lead_or_404(db, lead_id, current_user)
    if file.content_type and not file.content_type.startswith(ALLOWED_AUDIO):
        raise HTTPException(status_code=400, detail="Only audio files are allowed")

    url, original, size = await save_upload(file, f"{VOICE_SUBDIR}/{lead_id}")
    try:
        remark = LeadRemark(
            type=RemarkType.voice.value,
            voice_url=url,
            content=original,
            author_id=current_user.employee_code,
            author_name=current_user.name,
        )
        lead.remarks.append(remark)
        db.commit()
        db.refresh(remark)
        logger.info(f"Voice remark {remark.id} ({size} bytes) added to lead {lead_id}")

        log_remark(db, lead, remark_change(remark), current_user.employee_code)
        return _remarks(db, lead_id)

    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error saving voice remark: {str(e)}")
