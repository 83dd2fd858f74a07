# routes/mail_service/Internal_Mailing.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query
from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from db.connection import get_db
from db.models import (
    InternalMessage, MessageStatus, MessageType, UserDetails, UserRole, UserStatus,
    BROADCAST_RECIPIENT,
)
from db.Schema.message import MessageCreate, MessageOut, RecipientOut
from routes.auth.auth_dependency import get_current_user, is_bd_executive
from utils.files import save_upload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/messages",
    tags=["Internal Messages"],
)

SUPERIOR_ROLES = (UserRole.admin.value, UserRole.manager.value)


# ---------------- helpers ----------------
def _visible_filter(current_user: UserDetails):
    """Sent by me, addressed to me, or broadcast."""
    me = current_user.employee_code
    return or_(
        InternalMessage.sender_id == me,
        InternalMessage.recipient_id == me,
        and_(
            InternalMessage.recipient_id == BROADCAST_RECIPIENT,
            InternalMessage.sender_role.in_(SUPERIOR_ROLES),
        ),
    )


def _unread_filter(current_user: UserDetails):
    me = current_user.employee_code
    return and_(
        InternalMessage.status == MessageStatus.sent.value,
        InternalMessage.sender_id != me,
        or_(
            InternalMessage.recipient_id == me,
            InternalMessage.recipient_id == BROADCAST_RECIPIENT,
        ),
    )


def _check_recipient(db: Session, current_user: UserDetails, recipient_id: str) -> Optional[UserDetails]:
    if recipient_id == BROADCAST_RECIPIENT:
        if is_bd_executive(current_user):
            raise HTTPException(status_code=403, detail="BD Executives cannot send broadcast messages")
        return None

    if recipient_id == current_user.employee_code:
        raise HTTPException(status_code=400, detail="You cannot message yourself")

    recipient = db.get(UserDetails, recipient_id)
    if not recipient or recipient.status != UserStatus.active.value:
        raise HTTPException(status_code=404, detail="Recipient not found")
    if is_bd_executive(current_user) and recipient.role not in SUPERIOR_ROLES:
        raise HTTPException(status_code=403, detail="BD Executives can only message Admins and Managers")
    return recipient


# ---------------- routes ----------------
@router.post("/", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    _check_recipient(db, current_user, payload.recipient_id)
    try:
        message = InternalMessage(
            sender_id=current_user.employee_code,
            sender_name=current_user.name,
            sender_role=current_user.role,
            recipient_id=payload.recipient_id,
            message_type=(
                MessageType.broadcast.value
                if payload.recipient_id == BROADCAST_RECIPIENT
                else MessageType.direct.value
            ),
            subject=payload.subject,
            content=payload.content,
            attachments=payload.attachments,
            status=MessageStatus.sent.value,
        )
        db.add(message)
        db.commit()
        db.refresh(message)
        return message
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error sending message: {str(e)}")


@router.get("/", response_model=List[MessageOut])
def list_messages(
    box: str = Query("all", pattern="^(all|inbox|sent)$"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    q = db.query(InternalMessage).filter(_visible_filter(current_user))
    if box == "inbox":
        q = q.filter(InternalMessage.sender_id != current_user.employee_code)
    elif box == "sent":
        q = q.filter(InternalMessage.sender_id == current_user.employee_code)
    return q.order_by(InternalMessage.created_at.desc(), InternalMessage.id.desc()).all()


@router.get("/recipients", response_model=List[RecipientOut])
def list_recipients(
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """Users the caller is allowed to message."""
    q = db.query(UserDetails).filter(
        UserDetails.status == UserStatus.active.value,
        UserDetails.employee_code != current_user.employee_code,
    )
    if is_bd_executive(current_user):
        q = q.filter(UserDetails.role.in_(SUPERIOR_ROLES))
    return q.order_by(UserDetails.name).all()


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    count = (
        db.query(InternalMessage)
        .filter(_visible_filter(current_user), _unread_filter(current_user))
        .count()
    )
    return {"unread": count}


@router.post("/attachments", status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    current_user: UserDetails = Depends(get_current_user),
):
    """Store a file and return the URL to put in a message's attachments."""
    url, original, size = await save_upload(file, f"messages/{current_user.employee_code}")
    return {"url": url, "filename": original, "size": size}


@router.patch("/{message_id}/read", response_model=MessageOut)
def mark_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    message = (
        db.query(InternalMessage)
        .filter(InternalMessage.id == message_id, _visible_filter(current_user))
        .first()
    )
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.sender_id == current_user.employee_code:
        raise HTTPException(status_code=400, detail="Only recipients can mark a message as read")

    message.status = MessageStatus.read.value
    db.commit()
    db.refresh(message)
    return message
