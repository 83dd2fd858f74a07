# db/Schema/lead.py

from pydantic import BaseModel, Field, ConfigDict, constr
from typing import Optional, List, Dict, Any
from datetime import datetime

from db.models import LeadStage, ContactStage, RemarkType


class PointOfContactBase(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    designation: Optional[str] = None
    phone: constr(strip_whitespace=True, min_length=1, max_length=20)
    alternate_phone: Optional[str] = ""
    email: Optional[str] = None
    linkedin_url: Optional[str] = None
    stage: ContactStage = ContactStage.new

    model_config = ConfigDict(use_enum_values=True)


class PointOfContactOut(PointOfContactBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class RemarkCreate(BaseModel):
    content: Optional[str] = None
    type: RemarkType = RemarkType.text
    file_url: Optional[str] = None
    voice_url: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class RemarkOut(BaseModel):
    id: int
    content: Optional[str] = None
    type: str
    file_url: Optional[str] = None
    voice_url: Optional[str] = None
    author_id: Optional[str] = None
    author_name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeadBase(BaseModel):
    company_name: constr(strip_whitespace=True, min_length=1, max_length=200)
    company_email: Optional[str] = None
    company_info: Optional[str] = None
    company_size: Optional[str] = None
    website_url: constr(strip_whitespace=True, min_length=1, max_length=255)
    hiring_needs: List[str] = Field(default_factory=list)
    lead_source: Optional[str] = None
    linkedin_link: Optional[str] = None
    industry_name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    no_of_designations: Optional[int] = Field(None, ge=0)
    no_of_positions: Optional[int] = Field(None, ge=0)
    stage: LeadStage = LeadStage.new
    value: float = Field(0, ge=0)
    assigned_by: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class LeadCreate(LeadBase):
    points_of_contact: List[PointOfContactBase] = Field(default_factory=list)
    remark: Optional[RemarkCreate] = None


class LeadUpdate(BaseModel):
    """Partial update. ``version`` must match the stored row."""
    version: int
    company_name: Optional[constr(strip_whitespace=True, min_length=1, max_length=200)] = None
    company_email: Optional[str] = None
    company_info: Optional[str] = None
    company_size: Optional[str] = None
    website_url: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    hiring_needs: Optional[List[str]] = None
    lead_source: Optional[str] = None
    linkedin_link: Optional[str] = None
    industry_name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    no_of_designations: Optional[int] = Field(None, ge=0)
    no_of_positions: Optional[int] = Field(None, ge=0)
    stage: Optional[LeadStage] = None
    value: Optional[float] = Field(None, ge=0)
    assigned_by: Optional[str] = None
    points_of_contact: Optional[List[PointOfContactBase]] = None
    remark: Optional[RemarkCreate] = None

    model_config = ConfigDict(use_enum_values=True)


class LeadOut(LeadBase):
    id: int
    version: int
    stage: str
    stage_proposal_updated_at: Optional[datetime] = None
    hiring_needs: Optional[List[str]] = None
    points_of_contact: List[PointOfContactOut] = []
    remarks: List[RemarkOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class LeadListResponse(BaseModel):
    leads: List[LeadOut]
    pagination: Pagination


class BulkAssignRequest(BaseModel):
    lead_ids: List[int] = Field(..., min_length=1)
    assigned_by: Optional[str] = None
    stage: Optional[LeadStage] = None

    model_config = ConfigDict(use_enum_values=True)


class BulkAssignResponse(BaseModel):
    updated: List[int]
    failed: List[Dict[str, Any]]


class BulkUploadResponse(BaseModel):
    total_rows: int
    successful_uploads: int
    skipped_duplicates: int
    failed_uploads: int
    errors: List[Dict[str, Any]]
    uploaded_leads: List[int]
