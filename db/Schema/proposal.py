# db/Schema/proposal.py

from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from db.models import ProposalChannel, ProposalStatus


class ProposalCreate(BaseModel):
    lead_id: int
    template_id: Optional[str] = None
    template_used: Optional[str] = None
    rate_card_version: str = "v1.0"
    sent_via: ProposalChannel = ProposalChannel.email
    status: ProposalStatus = ProposalStatus.draft

    model_config = ConfigDict(use_enum_values=True)


class ProposalUpdate(BaseModel):
    template_id: Optional[str] = None
    template_used: Optional[str] = None
    rate_card_version: Optional[str] = None
    sent_via: Optional[ProposalChannel] = None
    status: Optional[ProposalStatus] = None

    model_config = ConfigDict(use_enum_values=True)


class ProposalOut(BaseModel):
    id: int
    lead_id: int
    template_id: Optional[str] = None
    template_used: Optional[str] = None
    rate_card_version: str
    sent_via: str
    status: str
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    company_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
