# db/Schema/message.py

from pydantic import BaseModel, ConfigDict, Field, constr
from typing import List, Optional
from datetime import datetime


class MessageCreate(BaseModel):
    recipient_id: constr(strip_whitespace=True, min_length=1)   # employee_code or "ALL"
    subject: constr(strip_whitespace=True, min_length=1, max_length=200)
    content: constr(strip_whitespace=True, min_length=1)
    attachments: List[str] = Field(default_factory=list)


class MessageOut(BaseModel):
    id: int
    sender_id: str
    sender_name: str
    sender_role: str
    recipient_id: str
    message_type: str
    subject: str
    content: str
    attachments: Optional[List[str]] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecipientOut(BaseModel):
    employee_code: str
    name: str
    role: str
