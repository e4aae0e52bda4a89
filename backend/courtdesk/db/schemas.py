"""
Pydantic validation schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import date, datetime

from courtdesk.db.models import (
    AssignmentRequestStatus,
    CasePriority,
    CaseStatus,
    CaseType,
    MotionStatus,
    OrderStatus,
    Role,
    TimelineEventType,
)

CaseRefField = Union[int, str]

# ============================================================================
# User Schemas
# ============================================================================

class UserBrief(BaseModel):
    id: int
    name: str
    role: Role

    class Config:
        from_attributes = True


class UserResponse(UserBrief):
    email: str
    department: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


# ============================================================================
# Case Schemas
# ============================================================================

class PartyIn(BaseModel):
    role: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    lawyer_id: Optional[int] = None


class PartyResponse(BaseModel):
    id: int
    role: str
    name: str
    lawyer_id: Optional[int] = None

    class Config:
        from_attributes = True


class CaseCreate(BaseModel):
    """New case filing"""
    title: str = Field(..., min_length=1, max_length=500)
    type: CaseType
    priority: Optional[CasePriority] = None
    description: Optional[str] = None
    parties: List[PartyIn] = []
    next_hearing: Optional[str] = Field(None, description="YYYY-MM-DD")


class VersionedRequest(BaseModel):
    """Optional optimistic-concurrency guard for transitions"""
    expected_version: Optional[int] = Field(None, ge=1)


class CaseUpdate(VersionedRequest):
    """
    Administrative edit. Only the fields present in the body are applied;
    an explicit null next_hearing clears the hearing.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[CasePriority] = None
    status: Optional[str] = None
    next_hearing: Optional[str] = Field(None, description="YYYY-MM-DD")


class AssignCourtRequest(VersionedRequest):
    court: Optional[str] = None
    judge_id: Optional[int] = None


class AssignLawyerRequest(VersionedRequest):
    lawyer_id: int


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    storage_url: str = Field(..., min_length=1, max_length=1000)


class DocumentResponse(BaseModel):
    id: int
    case_id: int
    name: str
    storage_url: str
    uploaded_by: int
    uploaded_at: datetime

    class Config:
        from_attributes = True


class TimelineEventResponse(BaseModel):
    id: int
    date: date
    title: str
    description: str
    event_type: TimelineEventType
    created_by: Optional[int] = None

    class Config:
        from_attributes = True


class CaseBrief(BaseModel):
    id: int
    case_number: str
    title: str

    class Config:
        from_attributes = True


class CaseResponse(BaseModel):
    id: int
    case_number: str
    title: str
    case_type: CaseType
    status: CaseStatus
    priority: CasePriority
    description: str
    filed_date: date
    next_hearing: Optional[date] = None
    court: Optional[str] = None
    judge_id: Optional[int] = None
    lawyer_id: Optional[int] = None
    created_by: int
    judge: Optional[UserBrief] = None
    lawyer: Optional[UserBrief] = None
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CaseDetailResponse(CaseResponse):
    parties: List[PartyResponse] = []
    documents: List[DocumentResponse] = []
    timeline: List[TimelineEventResponse] = []


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignmentRequestCreate(BaseModel):
    notes: Optional[str] = None


class AssignmentReview(BaseModel):
    decision: str = Field(..., description="approve | reject")
    notes: Optional[str] = None


class AssignmentRequestResponse(BaseModel):
    id: int
    case_id: int
    case_number: Optional[str] = None
    lawyer_id: int
    lawyer_name: Optional[str] = None
    status: AssignmentRequestStatus
    notes: Optional[str] = None
    requested_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None


# ============================================================================
# Motion Schemas
# ============================================================================

class MotionCreate(BaseModel):
    case_id: CaseRefField
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    document_url: Optional[str] = None


class MotionReview(VersionedRequest):
    status: str = Field(..., description="Approved | Rejected")
    notes: Optional[str] = None


class MotionResponse(BaseModel):
    id: int
    case_id: int
    case: Optional[CaseBrief] = None
    title: str
    description: str
    filed_by: int
    filer: Optional[UserBrief] = None
    filed_date: date
    status: MotionStatus
    document_url: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    notes: str
    version: int

    class Config:
        from_attributes = True


# ============================================================================
# Order Schemas
# ============================================================================

class OrderCreate(BaseModel):
    case_id: CaseRefField
    title: str = Field(..., min_length=1, max_length=500)
    content: Optional[str] = None


class OrderResponse(BaseModel):
    id: int
    case_id: int
    case: Optional[CaseBrief] = None
    title: str
    content: str
    drafted_by: int
    drafter: Optional[UserBrief] = None
    drafted_date: date
    status: OrderStatus
    signed_by: Optional[int] = None
    signed_at: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True


# ============================================================================
# Calendar Schemas
# ============================================================================

class HearingCreate(BaseModel):
    """Schedule a hearing from the calendar"""
    case_id: CaseRefField
    hearing_date: str = Field(..., description="YYYY-MM-DD")
    hearing_time: Optional[str] = Field(None, description="HH:MM")
    court: Optional[str] = None


# ============================================================================
# Notification & Audit Schemas
# ============================================================================

class NotificationReadUpdate(BaseModel):
    is_read: bool = True


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    related_resource_type: Optional[str] = None
    related_resource_id: Optional[int] = None
    case_number: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AuditRecordResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[int] = None
    details: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True
