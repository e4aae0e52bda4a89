"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TIMESTAMP,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from courtdesk.db.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_column(enum_cls, name: str) -> SQLEnum:
    # Persist the human-readable value ("Pending Approval"), not the member name.
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )

# ============================================================================
# Enums
# ============================================================================

class Role(str, enum.Enum):
    """Actor roles"""
    judge = "judge"
    registrar = "registrar"
    admin = "admin"
    court_admin = "court_admin"
    lawyer = "lawyer"
    clerk = "clerk"


class CaseStatus(str, enum.Enum):
    """Case lifecycle states"""
    pending_approval = "Pending Approval"
    filed = "Filed"
    assigned = "Assigned"
    in_progress = "In Progress"
    adjourned = "Adjourned"
    review = "Review"
    pending_judgment = "Pending Judgment"
    closed = "Closed"
    disposed = "Disposed"


class CaseType(str, enum.Enum):
    criminal = "Criminal"
    civil = "Civil"
    family = "Family"
    commercial = "Commercial"
    appeal = "Appeal"


class CasePriority(str, enum.Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
    urgent = "Urgent"


class AssignmentRequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class MotionStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class OrderStatus(str, enum.Enum):
    draft = "Draft"
    signed = "Signed"


class TimelineEventType(str, enum.Enum):
    """Timeline category tags"""
    filing = "filing"
    approval = "approval"
    assignment = "assignment"
    hearing = "hearing"
    motion = "motion"
    order = "order"
    status = "status"
    document = "document"


class OutboxKind(str, enum.Enum):
    timeline = "timeline"
    notification = "notification"
    audit = "audit"


class OutboxStatus(str, enum.Enum):
    pending = "pending"
    delivered = "delivered"
    failed = "failed"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """Portal user. Provisioned by the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(_enum_column(Role, "user_role"), nullable=False, index=True)
    department = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class Case(Base):
    """Judicial case, the aggregate root"""
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_number = Column(String(50), unique=True, nullable=False, index=True)

    title = Column(String(500), nullable=False)
    case_type = Column(_enum_column(CaseType, "case_type"), nullable=False)
    status = Column(_enum_column(CaseStatus, "case_status"), nullable=False, default=CaseStatus.pending_approval, index=True)
    priority = Column(_enum_column(CasePriority, "case_priority"), nullable=False, default=CasePriority.medium)
    description = Column(Text, nullable=False, default="")

    filed_date = Column(Date, nullable=False)
    next_hearing = Column(Date, nullable=True, index=True)

    # Court Assignment
    court = Column(String(255), nullable=True)
    judge_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    judge = relationship("User", foreign_keys=[judge_id])
    lawyer = relationship("User", foreign_keys=[lawyer_id])
    creator = relationship("User", foreign_keys=[created_by])

    parties = relationship("CaseParty", back_populates="case", cascade="all, delete-orphan")
    documents = relationship("CaseDocument", back_populates="case", cascade="all, delete-orphan")
    timeline = relationship("TimelineEvent", back_populates="case", cascade="all, delete-orphan")
    motions = relationship("Motion", back_populates="case", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="case", cascade="all, delete-orphan")
    assignment_requests = relationship("AssignmentRequest", back_populates="case", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_cases_hearing_status", "next_hearing", "status"),
    )


class CaseParty(Base):
    """Party to a case"""
    __tablename__ = "case_parties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    lawyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    case = relationship("Case", back_populates="parties")


class CaseDocument(Base):
    """Reference to a document held by the storage service"""
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    storage_url = Column(String(1000), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    case = relationship("Case", back_populates="documents")


class TimelineEvent(Base):
    """Append-only case timeline"""
    __tablename__ = "case_timeline"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    event_type = Column(_enum_column(TimelineEventType, "timeline_event_type"), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    case = relationship("Case", back_populates="timeline")

    __table_args__ = (
        Index("ix_case_timeline_case_date", "case_id", "date"),
    )


class AssignmentRequest(Base):
    """A lawyer's bid to represent an unassigned case"""
    __tablename__ = "assignment_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    lawyer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        _enum_column(AssignmentRequestStatus, "assignment_request_status"),
        nullable=False,
        default=AssignmentRequestStatus.pending,
    )
    notes = Column(Text, nullable=True)
    requested_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)

    case = relationship("Case", back_populates="assignment_requests")
    lawyer = relationship("User", foreign_keys=[lawyer_id])

    __table_args__ = (
        Index(
            "uq_assignment_requests_pending",
            "case_id",
            "lawyer_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )


class Motion(Base):
    """Formal request filed against a case"""
    __tablename__ = "motions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    filed_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    filed_date = Column(Date, nullable=False)
    status = Column(_enum_column(MotionStatus, "motion_status"), nullable=False, default=MotionStatus.pending, index=True)
    document_url = Column(String(1000), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(TIMESTAMP, nullable=True)
    notes = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="motions")
    filer = relationship("User", foreign_keys=[filed_by])

    __mapper_args__ = {"version_id_col": version}


class Order(Base):
    """Judicial directive awaiting or bearing a signature"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False, default="")
    drafted_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    drafted_date = Column(Date, nullable=False)
    status = Column(_enum_column(OrderStatus, "order_status"), nullable=False, default=OrderStatus.draft, index=True)
    signed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    signed_at = Column(TIMESTAMP, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="orders")
    drafter = relationship("User", foreign_keys=[drafted_by])
    signer = relationship("User", foreign_keys=[signed_by])

    __mapper_args__ = {"version_id_col": version}


class Notification(Base):
    """In-app notification, owned by its recipient"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_resource_type = Column(String(50), nullable=True)
    related_resource_id = Column(Integer, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )


class AuditRecord(Base):
    """Immutable audit trail entry"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    user_name = Column(String(255), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(50), nullable=False)
    resource_id = Column(Integer, nullable=True)
    details = Column(JSONType, nullable=False, default=dict)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_audit_logs_resource", "resource", "resource_id"),
    )


class OutboxEvent(Base):
    """
    Durable fan-out task written in the same transaction as the state change
    it describes. Delivered after commit; retried by the outbox worker.
    """
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(_enum_column(OutboxKind, "outbox_kind"), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    status = Column(_enum_column(OutboxStatus, "outbox_status"), nullable=False, default=OutboxStatus.pending)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    processed_at = Column(TIMESTAMP, nullable=True)

    __table_args__ = (
        Index("ix_outbox_status_created", "status", "created_at"),
    )
