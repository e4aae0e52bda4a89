"""
services/assignment_service.py

Lawyer-assignment negotiation.

A lawyer asks to represent a case that has no counsel; the bench approves or
rejects. At most one pending request exists per (case, lawyer), backed by the
uq_assignment_requests_pending partial index. Once a case has a lawyer every
other request for it is moot and gets rejected, never silently approved.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from courtdesk.db.models import (
    AssignmentRequest,
    AssignmentRequestStatus,
    Case,
    Role,
    TimelineEventType,
    User,
)
from courtdesk.services import fanout_service
from courtdesk.services.case_resolver import CaseRef, check_version, get_case_or_404
from courtdesk.services.fanout_service import Fanout
from courtdesk.services.roles import Action, is_privileged, require_role
from courtdesk.utils.exceptions import (
    AlreadyAssignedError,
    AlreadyReviewedError,
    ForbiddenError,
    NotFoundError,
    RequestExistsError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

_DECISIONS = {
    "approve": AssignmentRequestStatus.approved,
    "approved": AssignmentRequestStatus.approved,
    "reject": AssignmentRequestStatus.rejected,
    "rejected": AssignmentRequestStatus.rejected,
}


def _pending_for_case(db: Session, case_id: int) -> list[AssignmentRequest]:
    return (
        db.query(AssignmentRequest)
        .filter(
            AssignmentRequest.case_id == case_id,
            AssignmentRequest.status == AssignmentRequestStatus.pending,
        )
        .all()
    )


def _close(
    request:  AssignmentRequest,
    status:   AssignmentRequestStatus,
    reviewer: User,
    notes:    Optional[str] = None,
) -> None:
    request.status = status
    request.reviewed_by = reviewer.id
    request.reviewed_at = datetime.utcnow()
    if notes:
        request.notes = notes


def _settle_others(
    fx:        Fanout,
    case:      Case,
    lawyer_id: int,
    keep:      Optional[AssignmentRequest] = None,
) -> list[int]:
    """
    Resolve the remaining pending requests once ``lawyer_id`` is on the case:
    that lawyer's own request is approved, the rest rejected.
    """
    rejected: list[int] = []
    for other in _pending_for_case(fx.db, case.id):
        if keep is not None and other.id == keep.id:
            continue
        if other.lawyer_id == lawyer_id:
            _close(other, AssignmentRequestStatus.approved, fx.actor)
            continue
        _close(other, AssignmentRequestStatus.rejected, fx.actor, "Case assigned to another lawyer")
        fanout_service.notify_assignment_reviewed(fx, other.lawyer_id, case, approved=False)
        rejected.append(other.id)
    return rejected


# ============================================================================
# Transitions
# ============================================================================

def request_assignment(
    db:       Session,
    actor:    User,
    case_ref: CaseRef,
    notes:    Optional[str] = None,
) -> AssignmentRequest:
    require_role(actor, Action.request_assignment)
    case = get_case_or_404(db, case_ref)

    if case.lawyer_id is not None:
        raise AlreadyAssignedError(f"Case {case.case_number} already has an assigned lawyer")

    existing = (
        db.query(AssignmentRequest)
        .filter(
            AssignmentRequest.case_id == case.id,
            AssignmentRequest.lawyer_id == actor.id,
            AssignmentRequest.status == AssignmentRequestStatus.pending,
        )
        .first()
    )
    if existing is not None:
        raise RequestExistsError()

    request = AssignmentRequest(
        case_id=case.id,
        lawyer_id=actor.id,
        status=AssignmentRequestStatus.pending,
        notes=notes,
    )
    db.add(request)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise RequestExistsError() from exc

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Assignment Requested",
        f"{actor.name} requested to represent this case",
        TimelineEventType.assignment,
    )
    fanout_service.notify_assignment_requested(fx, case, actor)
    fx.audit("request_assignment", "assignment_request", request.id, {
        "case_id": case.id,
        "case_number": case.case_number,
    })
    try:
        fx.commit()
    except IntegrityError as exc:
        raise RequestExistsError() from exc

    db.refresh(request)
    logger.info("Lawyer %s requested assignment to %s", actor.id, case.case_number)
    return request


def review_assignment_request(
    db:         Session,
    actor:      User,
    request_id: int,
    decision:   str,
    notes:      Optional[str] = None,
) -> AssignmentRequest:
    """
    Approve or reject a pending request. Approving a request for a case that
    meanwhile got a lawyer rejects it instead and reports ALREADY_ASSIGNED.
    """
    require_role(actor, Action.review_assignment)
    status = _DECISIONS.get((decision or "").strip().lower())
    if status is None:
        raise ValidationFailedError("Decision must be approve or reject")

    request = db.get(AssignmentRequest, request_id)
    if request is None:
        raise NotFoundError(f"Assignment request {request_id} not found")
    if request.status != AssignmentRequestStatus.pending:
        raise AlreadyReviewedError(
            f"Assignment request {request_id} is already {AssignmentRequestStatus(request.status).value}"
        )

    case = request.case
    lawyer = request.lawyer
    fx = Fanout(db, actor)

    if status == AssignmentRequestStatus.approved and case.lawyer_id is not None:
        _close(request, AssignmentRequestStatus.rejected, actor, notes or "Case already has a lawyer")
        fanout_service.notify_assignment_reviewed(fx, request.lawyer_id, case, approved=False)
        fx.audit("reject", "assignment_request", request.id, {
            "case_id": case.id,
            "reason": "already_assigned",
        })
        fx.commit()
        raise AlreadyAssignedError(f"Case {case.case_number} already has an assigned lawyer")

    _close(request, status, actor, notes)

    if status == AssignmentRequestStatus.approved:
        case.lawyer_id = request.lawyer_id
        rejected = _settle_others(fx, case, request.lawyer_id, keep=request)
        fx.timeline(
            case,
            "Lawyer Assigned",
            f"{lawyer.name} assigned as counsel by {actor.name}",
            TimelineEventType.assignment,
        )
        fanout_service.notify_assignment_reviewed(fx, request.lawyer_id, case, approved=True)
        fx.audit("approve", "assignment_request", request.id, {
            "case_id": case.id,
            "lawyer_id": request.lawyer_id,
            "auto_rejected": rejected,
        })
    else:
        fx.timeline(
            case,
            "Assignment Request Rejected",
            f"Request from {lawyer.name} rejected by {actor.name}",
            TimelineEventType.assignment,
        )
        fanout_service.notify_assignment_reviewed(fx, request.lawyer_id, case, approved=False)
        fx.audit("reject", "assignment_request", request.id, {"case_id": case.id})

    fx.commit()
    db.refresh(request)
    logger.info("Assignment request %s %s by user %s", request.id, status.value, actor.id)
    return request


def assign_lawyer(
    db:               Session,
    actor:            User,
    case_ref:         CaseRef,
    lawyer_id:        int,
    expected_version: Optional[int] = None,
) -> Case:
    """
    Direct assignment by the bench. Overwrites any current lawyer and settles
    the case's pending requests.
    """
    require_role(actor, Action.assign_lawyer)
    lawyer = db.get(User, lawyer_id) if lawyer_id else None
    if lawyer is None or not lawyer.is_active or Role(lawyer.role) != Role.lawyer:
        raise ValidationFailedError(f"User {lawyer_id} is not an active lawyer")

    case = get_case_or_404(db, case_ref)
    check_version(case, expected_version)

    previous = case.lawyer_id
    case.lawyer_id = lawyer.id

    fx = Fanout(db, actor)
    rejected = _settle_others(fx, case, lawyer.id)
    fx.timeline(
        case,
        "Lawyer Assigned",
        f"{lawyer.name} assigned as counsel by {actor.name}",
        TimelineEventType.assignment,
    )
    fanout_service.notify_case_assigned(fx, lawyer.id, case)
    fx.audit("assign_lawyer", "case", case.id, {
        "case_number": case.case_number,
        "lawyer_id": lawyer.id,
        "previous_lawyer_id": previous,
        "auto_rejected": rejected,
    })
    fx.commit()

    db.refresh(case)
    logger.info("Lawyer %s assigned to %s by user %s", lawyer.id, case.case_number, actor.id)
    return case


# ============================================================================
# Reads
# ============================================================================

def list_assignment_requests(
    db:       Session,
    actor:    User,
    case_ref: Optional[CaseRef] = None,
    status:   Optional[str] = None,
) -> list[AssignmentRequest]:
    """Lawyers see their own requests; the bench sees all."""
    query = db.query(AssignmentRequest)

    role = Role(actor.role)
    if role == Role.lawyer:
        query = query.filter(AssignmentRequest.lawyer_id == actor.id)
    elif not is_privileged(actor):
        raise ForbiddenError("Only lawyers and the bench can view assignment requests")

    if case_ref:
        case = get_case_or_404(db, case_ref)
        query = query.filter(AssignmentRequest.case_id == case.id)
    if status:
        try:
            query = query.filter(AssignmentRequest.status == AssignmentRequestStatus(status))
        except ValueError:
            raise ValidationFailedError(f"Invalid status: {status}")

    return query.order_by(AssignmentRequest.requested_at.desc(), AssignmentRequest.id.desc()).all()


def get_request_summary(request: AssignmentRequest) -> dict[str, Any]:
    return {
        "id": request.id,
        "case_id": request.case_id,
        "case_number": request.case.case_number if request.case else None,
        "lawyer_id": request.lawyer_id,
        "lawyer_name": request.lawyer.name if request.lawyer else None,
        "status": AssignmentRequestStatus(request.status).value,
        "notes": request.notes,
        "requested_at": request.requested_at,
        "reviewed_by": request.reviewed_by,
        "reviewed_at": request.reviewed_at,
    }
