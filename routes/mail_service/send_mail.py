# routes/mail_service/send_mail.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Form, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from config import IMAP_USER, IMAP_PASSWORD, IMAP_FETCH_LIMIT
from db.connection import get_db
from db.models import EmailRecord, EmailType, UserDetails
from db.Schema.email import EmailOut, InboxSyncRequest, InboxSyncResponse
from routes.auth.auth_dependency import get_current_user, is_privileged
from services.imap_inbox import fetch_recent, InboxError
from services.mail import send_mail, clean_recipients, MailValidationError
from utils.files import read_capped, MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/emails",
    tags=["emails"],
)


# ---------------- helpers ----------------
def _mailbox(current_user: UserDetails, user_email: Optional[str]) -> str:
    """Admins and Managers may read any mailbox; everyone else their own."""
    if user_email and user_email.lower() != current_user.email.lower():
        if not is_privileged(current_user):
            raise HTTPException(status_code=403, detail="You can only access your own mailbox")
        return user_email.lower()
    return current_user.email.lower()


async def _read_attachments(files: Optional[List[UploadFile]]):
    """Read uploads into memory; the combined size is capped."""
    remaining = MAX_UPLOAD_BYTES
    out = []
    for f in files or []:
        if not f or not f.filename:
            continue
        content = await read_capped(f, remaining)
        remaining -= len(content)
        out.append((f.filename, content))
    return out


# ---------------- routes ----------------
@router.post("/send-email", status_code=status.HTTP_200_OK)
async def send_email(
    from_email: str = Form(...),
    app_password: str = Form(...),
    to: List[str] = Form(default=[]),
    subject: str = Form(...),
    content: str = Form(...),
    sender_name: Optional[str] = Form(None),
    receiver_name: Optional[str] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """
    Send an email with the sender's own app password and keep a copy as a
    ``sent`` record. The app password is used once and never stored.
    """
    recipients = clean_recipients(to)
    if not recipients:
        raise HTTPException(status_code=400, detail="At least one recipient is required")

    files = await _read_attachments(attachments)

    try:
        result = await run_in_threadpool(
            send_mail,
            from_email,
            app_password,
            recipients,
            subject,
            content,
            sender_name,
            files,
        )
    except MailValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result["status"] == "error":
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{result['message']}: {result.get('error', '')}".rstrip(": "),
        )

    try:
        record = EmailRecord(
            user_email=from_email.lower(),
            type=EmailType.sent.value,
            to_address=", ".join(recipients),
            from_address=from_email,
            subject=subject,
            content=content,
            sender_name=sender_name,
            receiver_name=receiver_name,
            attachments=[name for name, _ in files],
        )
        db.add(record)
        db.commit()
        db.refresh(record)
    except Exception as e:
        db.rollback()
        logger.error(f"Email sent but could not be stored: {e}")
        raise HTTPException(status_code=500, detail=f"Email sent but could not be stored: {str(e)}")

    return {
        "message": "Email sent successfully",
        "status": result["status"],
        "rejected_recipients": result.get("rejected_recipients", []),
        "email": EmailOut.model_validate(record),
    }


@router.post("/inbox/sync", response_model=InboxSyncResponse)
async def sync_inbox(
    body: Optional[InboxSyncRequest] = None,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    """
    Pull the most recent messages of a mailbox over IMAP and store the ones not
    seen before (matched on Message-ID).
    """
    body = body or InboxSyncRequest()
    user = body.email or IMAP_USER
    password = body.app_password or IMAP_PASSWORD
    limit = max(1, min(body.limit or IMAP_FETCH_LIMIT, IMAP_FETCH_LIMIT))

    if not user or not password:
        raise HTTPException(status_code=400, detail="Mailbox credentials are required")
    mailbox = _mailbox(current_user, user)

    try:
        messages = await run_in_threadpool(fetch_recent, user, password, limit)
    except InboxError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Inbox sync failed: {str(e)}")

    ids = [m["message_id"] for m in messages if m["message_id"]]
    known = {
        mid for (mid,) in db.query(EmailRecord.message_id).filter(
            EmailRecord.user_email == mailbox,
            EmailRecord.type == EmailType.inbox.value,
            EmailRecord.message_id.in_(ids),
        ).all()
    } if ids else set()

    stored = 0
    try:
        for m in messages:
            if m["message_id"] and m["message_id"] in known:
                continue
            record = EmailRecord(user_email=mailbox, type=EmailType.inbox.value, **{k: v for k, v in m.items() if k != "date"})
            if m["date"]:
                record.date = m["date"]
            db.add(record)
            if m["message_id"]:
                known.add(m["message_id"])
            stored += 1
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error storing inbox messages: {str(e)}")

    logger.info(f"Inbox sync for {mailbox}: {len(messages)} fetched, {stored} stored")
    return {"fetched": len(messages), "stored": stored, "skipped_duplicates": len(messages) - stored}


@router.get("/{type}", response_model=List[EmailOut])
def list_emails(
    type: EmailType,
    user_email: Optional[str] = Query(None, description="Mailbox to read, defaults to your own"),
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    mailbox = _mailbox(current_user, user_email)
    return (
        db.query(EmailRecord)
        .filter(EmailRecord.user_email == mailbox, EmailRecord.type == type.value)
        .order_by(EmailRecord.date.desc(), EmailRecord.id.desc())
        .all()
    )


@router.delete("/{email_id}")
def delete_email(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: UserDetails = Depends(get_current_user),
):
    record = db.get(EmailRecord, email_id)
    if not record:
        raise HTTPException(status_code=404, detail="Email not found")
    _mailbox(current_user, record.user_email)

    try:
        db.delete(record)
        db.commit()
        return {"message": "Email deleted successfully"}
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error deleting email: {str(e)}")
