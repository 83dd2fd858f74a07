from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Float, Boolean,
    JSON, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from db.connection import Base
import enum

from utils.time_and_ids import now_utc


class UserRole(str, enum.Enum):
    admin = "Admin"
    manager = "Manager"
    bd_executive = "BD Executive"


class UserStatus(str, enum.Enum):
    active = "Active"
    inactive = "Inactive"


class LeadStage(str, enum.Enum):
    new = "New"
    contacted = "Contacted"
    proposal_sent = "Proposal Sent"
    negotiation = "Negotiation"
    won = "Won"
    lost = "Lost"
    onboarded = "Onboarded"
    no_vendor = "No vendor"
    future_reference = "Future Reference"


class ContactStage(str, enum.Enum):
    new = "New"
    contacted = "Contacted"
    busy = "Busy"
    no_answer = "No Answer"
    wrong_number = "Wrong Number"


class RemarkType(str, enum.Enum):
    text = "text"
    voice = "voice"
    file = "file"


class TaskType(str, enum.Enum):
    email = "email"
    call = "call"
    meeting = "meeting"


class ProposalChannel(str, enum.Enum):
    email = "Email"
    whatsapp = "WhatsApp"
    both = "Both"


class ProposalStatus(str, enum.Enum):
    draft = "Draft"
    sent = "Sent"
    viewed = "Viewed"
    accepted = "Accepted"
    rejected = "Rejected"


class ActivityEntity(str, enum.Enum):
    lead = "Lead"
    task = "Task"
    proposal = "Proposal"


class ActivityAction(str, enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"
    remark_added = "remark_added"
    remark_deleted = "remark_deleted"


class EmailType(str, enum.Enum):
    inbox = "inbox"
    sent = "sent"


class MessageType(str, enum.Enum):
    direct = "direct"
    broadcast = "broadcast"


class MessageStatus(str, enum.Enum):
    sent = "sent"
    read = "read"


BROADCAST_RECIPIENT = "ALL"


class UserDetails(Base):
    __tablename__ = "crm_user_details"

    employee_code = Column(String(100), primary_key=True, index=True)
    name          = Column(String(100), nullable=False)
    email         = Column(String(100), nullable=False, unique=True, index=True)
    password      = Column(String(255), nullable=False)
    role          = Column(String(20), nullable=False, index=True)
    status        = Column(String(10), nullable=False, default=UserStatus.active.value)
    phone         = Column(String(20), nullable=True)

    last_login    = Column(DateTime(timezone=True), nullable=True)
    last_logout   = Column(DateTime(timezone=True), nullable=True)

    created_at    = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at    = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    attendance_records = relationship(
        "Attendance",
        back_populates="employee",
        cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.active.value


class Lead(Base):
    __tablename__ = "crm_lead"

    id                 = Column(Integer, primary_key=True, autoincrement=True)
    company_name       = Column(String(200), nullable=False, index=True)
    company_email      = Column(String(200), nullable=True)
    company_info       = Column(Text, nullable=True)
    company_size       = Column(String(50), nullable=True)
    website_url        = Column(String(255), nullable=False, unique=True)
    hiring_needs       = Column(JSON, nullable=True, default=list)
    lead_source        = Column(String(100), nullable=True)
    linkedin_link      = Column(String(255), nullable=True)
    industry_name      = Column(String(100), nullable=True)
    contact_name       = Column(String(100), nullable=True)
    contact_email      = Column(String(200), nullable=True)
    no_of_designations = Column(Integer, nullable=True)
    no_of_positions    = Column(Integer, nullable=True)

    stage              = Column(String(30), nullable=False, default=LeadStage.new.value, index=True)
    value              = Column(Float, nullable=False, default=0)
    stage_proposal_updated_at = Column(DateTime(timezone=True), nullable=True)

    assigned_by        = Column(String(100), ForeignKey("crm_user_details.employee_code", ondelete="SET NULL"), nullable=True, index=True)
    version            = Column(Integer, nullable=False, default=1)

    created_at         = Column(DateTime(timezone=True), default=now_utc, nullable=False, index=True)
    updated_at         = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    points_of_contact  = relationship(
        "PointOfContact",
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="PointOfContact.id",
    )
    remarks            = relationship(
        "LeadRemark",
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="LeadRemark.id",
    )
    proposals          = relationship("Proposal", back_populates="lead", cascade="all, delete-orphan")
    assigned_user      = relationship("UserDetails", foreign_keys=[assigned_by])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_crm_lead_assigned_stage", "assigned_by", "stage"),
    )


class PointOfContact(Base):
    __tablename__ = "crm_lead_contacts"

    id              = Column(Integer, primary_key=True, autoincrement=True)
    lead_id         = Column(Integer, ForeignKey("crm_lead.id", ondelete="CASCADE"), nullable=False, index=True)
    name            = Column(String(100), nullable=False)
    designation     = Column(String(100), nullable=True)
    phone           = Column(String(20), nullable=False)
    alternate_phone = Column(String(20), nullable=True, default="")
    email           = Column(String(200), nullable=True)
    linkedin_url    = Column(String(255), nullable=True)
    stage           = Column(String(20), nullable=False, default=ContactStage.new.value)

    lead            = relationship("Lead", back_populates="points_of_contact")


class LeadRemark(Base):
    __tablename__ = "crm_lead_remarks"

    id          = Column(Integer, primary_key=True, autoincrement=True)
    lead_id     = Column(Integer, ForeignKey("crm_lead.id", ondelete="CASCADE"), nullable=False, index=True)
    content     = Column(Text, nullable=True)
    type        = Column(String(10), nullable=False, default=RemarkType.text.value)
    file_url    = Column(String(255), nullable=True)
    voice_url   = Column(String(255), nullable=True)
    author_id   = Column(String(100), nullable=True)
    author_name = Column(String(100), nullable=False)
    created_at  = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    lead        = relationship("Lead", back_populates="remarks")


class Task(Base):
    __tablename__ = "crm_tasks"

    id          = Column(Integer, primary_key=True, autoincrement=True)
    title       = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type        = Column(String(20), nullable=True)
    due_date    = Column(DateTime(timezone=True), nullable=False, index=True)
    completed   = Column(Boolean, nullable=False, default=False)
    user_id     = Column(String(100), ForeignKey("crm_user_details.employee_code", ondelete="SET NULL"), nullable=True, index=True)
    lead_id     = Column(Integer, ForeignKey("crm_lead.id", ondelete="SET NULL"), nullable=True, index=True)
    version     = Column(Integer, nullable=False, default=1)
    created_at  = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    user        = relationship("UserDetails")
    lead        = relationship("Lead")

    __mapper_args__ = {"version_id_col": version}


class Proposal(Base):
    __tablename__ = "crm_proposals"

    id                = Column(Integer, primary_key=True, autoincrement=True)
    lead_id           = Column(Integer, ForeignKey("crm_lead.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id       = Column(String(100), nullable=True)
    template_used     = Column(String(200), nullable=True)
    rate_card_version = Column(String(20), nullable=False, default="v1.0")
    sent_via          = Column(String(20), nullable=False, default=ProposalChannel.email.value)
    status            = Column(String(20), nullable=False, default=ProposalStatus.draft.value)
    user_id           = Column(String(100), ForeignKey("crm_user_details.employee_code", ondelete="SET NULL"), nullable=True, index=True)

    created_at        = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at        = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    lead              = relationship("Lead", back_populates="proposals")
    user              = relationship("UserDetails")


class ActivityLog(Base):
    """Append-only audit row. Ids are stored as plain values so history outlives the entity."""
    __tablename__ = "crm_activity_logs"

    id          = Column(Integer, primary_key=True, autoincrement=True)
    entity_id   = Column(String(100), nullable=False, index=True)
    entity_name = Column(String(200), nullable=True)
    entity      = Column(String(20), nullable=False, index=True)
    action      = Column(String(20), nullable=False)
    lead_id     = Column(Integer, nullable=True, index=True)
    user_id     = Column(String(100), nullable=True)
    changes     = Column(JSON, nullable=False, default=list)
    timestamp   = Column(DateTime(timezone=True), default=now_utc, nullable=False, index=True)


class CallActivity(Base):
    __tablename__ = "crm_call_activity"

    id        = Column(Integer, primary_key=True, autoincrement=True)
    user_id   = Column(String(100), nullable=False, index=True)
    lead_id   = Column(Integer, nullable=False, index=True)
    phone     = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False, index=True)


class Attendance(Base):
    __tablename__ = "crm_attendance"

    id          = Column(Integer, primary_key=True, autoincrement=True)
    user_id     = Column(String(100), ForeignKey("crm_user_details.employee_code", ondelete="CASCADE"), nullable=False)
    date        = Column(String(10), nullable=False)  # YYYY-MM-DD, office timezone
    total_hours = Column(Float, nullable=False, default=0)

    created_at  = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at  = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    employee    = relationship("UserDetails", back_populates="attendance_records")
    sessions    = relationship(
        "AttendanceSession",
        back_populates="attendance",
        cascade="all, delete-orphan",
        order_by="AttendanceSession.id",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
    )


class AttendanceSession(Base):
    __tablename__ = "crm_attendance_sessions"

    id             = Column(Integer, primary_key=True, autoincrement=True)
    attendance_id  = Column(Integer, ForeignKey("crm_attendance.id", ondelete="CASCADE"), nullable=False, index=True)
    login_time     = Column(DateTime(timezone=True), nullable=False)
    logout_time    = Column(DateTime(timezone=True), nullable=True)
    duration_hours = Column(Float, nullable=False, default=0)

    attendance     = relationship("Attendance", back_populates="sessions")


class EmailRecord(Base):
    __tablename__ = "crm_emails"

    id            = Column(Integer, primary_key=True, autoincrement=True)
    user_email    = Column(String(320), nullable=False, index=True)
    type          = Column(String(10), nullable=False, index=True)
    to_address    = Column(Text, nullable=True)
    from_address  = Column(String(320), nullable=True)
    subject       = Column(String(500), nullable=True)
    content       = Column(Text, nullable=True)
    sender_name   = Column(String(100), nullable=True)
    receiver_name = Column(String(100), nullable=True)
    attachments   = Column(JSON, nullable=True, default=list)
    message_id    = Column(String(500), nullable=True, index=True)
    date          = Column(DateTime(timezone=True), default=now_utc, nullable=False)


class InternalMessage(Base):
    __tablename__ = "crm_internal_messages"

    id           = Column(Integer, primary_key=True, autoincrement=True)
    sender_id    = Column(String(100), nullable=False, index=True)
    sender_name  = Column(String(100), nullable=False)
    sender_role  = Column(String(20), nullable=False)
    recipient_id = Column(String(100), nullable=False, index=True)  # employee_code or "ALL"
    message_type = Column(String(10), nullable=False, default=MessageType.direct.value)
    subject      = Column(String(200), nullable=False)
    content      = Column(Text, nullable=False)
    attachments  = Column(JSON, nullable=True, default=list)
    status       = Column(String(10), nullable=False, default=MessageStatus.sent.value)
    created_at   = Column(DateTime(timezone=True), default=now_utc, nullable=False, index=True)
