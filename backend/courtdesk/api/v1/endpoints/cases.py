"""
Case lifecycle endpoints

Case references in paths are a numeric id or a case number. Case numbers
contain slashes (KDH/2026/001), so they are captured with the ``path``
converter; routes with a suffix are declared before the bare ones.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import (
    AssignCourtRequest,
    AssignLawyerRequest,
    AssignmentRequestCreate,
    AssignmentRequestResponse,
    CaseCreate,
    CaseDetailResponse,
    CaseResponse,
    CaseUpdate,
    DocumentCreate,
    DocumentResponse,
    TimelineEventResponse,
    VersionedRequest,
)
from courtdesk.services import assignment_service, case_service

router = APIRouter()

# ============================================================================
# List & Create
# ============================================================================

@router.get("")
def list_cases(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    type: Optional[str] = Query(None, description="Filter by case type"),
    search: Optional[str] = Query(None, description="Case number or title"),
    judge_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = case_service.list_cases(
        db, current_user,
        status=status_filter, case_type=type, search=search, judge_id=judge_id,
        page=page, limit=limit,
    )
    return envelope(
        [CaseResponse.model_validate(c) for c in result["items"]],
        pagination={
            "total": result["total"],
            "page": result["page"],
            "limit": result["limit"],
            "total_pages": result["total_pages"],
        },
    )


@router.get("/unassigned")
def list_unassigned_cases(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open cases without a lawyer"""
    result = case_service.list_unassigned_cases(db, current_user, page=page, limit=limit)
    return envelope(
        [CaseResponse.model_validate(c) for c in result["items"]],
        requested_case_ids=result["requested_case_ids"],
        pagination={"total": result["total"], "page": result["page"], "limit": result["limit"]},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_case(
    body: CaseCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case = case_service.create_case(
        db, current_user,
        title=body.title,
        case_type=body.type,
        priority=body.priority,
        description=body.description,
        parties=[p.model_dump() for p in body.parties],
        next_hearing=body.next_hearing,
    )
    return envelope(
        {"id": case.id, "case_number": case.case_number, "status": case.status.value},
        message="Case created successfully",
    )


# ============================================================================
# Transitions (suffix routes first)
# ============================================================================

@router.post("/{case_ref:path}/approve")
def approve_case(
    case_ref: str,
    body: Optional[VersionedRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case = case_service.approve_case(
        db, current_user, case_ref,
        expected_version=body.expected_version if body else None,
    )
    return envelope(CaseResponse.model_validate(case), message="Case approved successfully")


@router.post("/{case_ref:path}/assign-court")
def assign_court(
    case_ref: str,
    body: AssignCourtRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case = case_service.assign_court(
        db, current_user, case_ref,
        court=body.court, judge_id=body.judge_id,
        expected_version=body.expected_version,
    )
    return envelope(CaseResponse.model_validate(case), message="Court assigned successfully")


@router.post("/{case_ref:path}/assign-lawyer")
def assign_lawyer(
    case_ref: str,
    body: AssignLawyerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    case = assignment_service.assign_lawyer(
        db, current_user, case_ref, body.lawyer_id,
        expected_version=body.expected_version,
    )
    return envelope(CaseResponse.model_validate(case), message="Lawyer assigned successfully")


@router.post("/{case_ref:path}/request-assignment", status_code=status.HTTP_201_CREATED)
def request_assignment(
    case_ref: str,
    body: Optional[AssignmentRequestCreate] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    request = assignment_service.request_assignment(
        db, current_user, case_ref, notes=body.notes if body else None,
    )
    return envelope(
        AssignmentRequestResponse(**assignment_service.get_request_summary(request)),
        message="Assignment request submitted",
    )


@router.post("/{case_ref:path}/documents", status_code=status.HTTP_201_CREATED)
def attach_document(
    case_ref: str,
    body: DocumentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = case_service.attach_document(
        db, current_user, case_ref, name=body.name, storage_url=body.storage_url,
    )
    return envelope(DocumentResponse.model_validate(document), message="Document recorded")


@router.get("/{case_ref:path}/timeline")
def get_timeline(
    case_ref: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    events = case_service.get_timeline(db, current_user, case_ref)
    return envelope([TimelineEventResponse.model_validate(e) for e in events])


# ============================================================================
# Read / Edit / Delete
# ============================================================================

@router.patch("/{case_ref:path}")
def update_case(
    case_ref: str,
    body: CaseUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fields = body.model_dump(exclude_unset=True)
    expected_version = fields.pop("expected_version", None)
    case = case_service.update_case(
        db, current_user, case_ref, fields, expected_version=expected_version,
    )
    return envelope(CaseResponse.model_validate(case), message="Case updated successfully")


@router.delete("/{case_ref:path}")
def delete_case(
    case_ref: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    deleted = case_service.delete_case(db, current_user, case_ref)
    return envelope(deleted, message="Case deleted successfully")


@router.get("/{case_ref:path}")
def get_case(
    case_ref: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get case by numeric id or case number (KDH/2026/001, raw or encoded)
    """
    case = case_service.get_case(db, current_user, case_ref)
    detail = CaseDetailResponse.model_validate(case)
    detail.timeline = [
        TimelineEventResponse.model_validate(e)
        for e in case_service.get_timeline(db, current_user, case.id)
    ]
    return envelope(detail)
