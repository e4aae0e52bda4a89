"""
Lawyer assignment request endpoints

  GET    /api/v1/assignment-requests                     list (own / all)
  POST   /api/v1/assignment-requests/{request_id}/review approve or reject

Requests are created on the case: POST /api/v1/cases/{case_ref}/request-assignment
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import AssignmentRequestResponse, AssignmentReview
from courtdesk.services import assignment_service

router = APIRouter()


@router.get("")
def list_assignment_requests(
    case_id: Optional[str] = Query(None, description="Case id or case number"),
    status: Optional[str] = Query(None, description="pending | approved | rejected"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    requests = assignment_service.list_assignment_requests(
        db, current_user, case_ref=case_id, status=status,
    )
    return envelope([
        AssignmentRequestResponse(**assignment_service.get_request_summary(r))
        for r in requests
    ])


@router.post("/{request_id}/review")
def review_assignment_request(
    request_id: int,
    body: AssignmentReview,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    request = assignment_service.review_assignment_request(
        db, current_user, request_id, body.decision, notes=body.notes,
    )
    summary = assignment_service.get_request_summary(request)
    return envelope(
        AssignmentRequestResponse(**summary),
        message=f"Assignment request {summary['status']}",
    )
