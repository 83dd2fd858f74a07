from typing import List, Optional
from pydantic import BaseModel, EmailStr, ConfigDict
from datetime import datetime


class EmailOut(BaseModel):
    id: int
    user_email: str
    type: str
    to_address: Optional[str] = None
    from_address: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    sender_name: Optional[str] = None
    receiver_name: Optional[str] = None
    attachments: Optional[List[str]] = None
    message_id: Optional[str] = None
    date: datetime

    model_config = ConfigDict(from_attributes=True)


class InboxSyncRequest(BaseModel):
    email: Optional[EmailStr] = None          # falls back to IMAP_USER
    app_password: Optional[str] = None        # falls back to IMAP_PASSWORD
    limit: Optional[int] = None


class InboxSyncResponse(BaseModel):
    fetched: int
    stored: int
    skipped_duplicates: int
