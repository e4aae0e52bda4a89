"""
services/case_service.py

Case status engine.

    Pending Approval -> Filed -> Assigned -> In Progress -> Pending Judgment
                                              |  ^                 |
                                              v  |                 v
                                       Adjourned / Review    Closed | Disposed

create_case, approve_case and assign_court drive the first three states.
update_case is the administrative override for everything after Assigned.
Each successful transition enqueues its timeline entry, notifications and
audit record through fanout_service in the same transaction.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import exists, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from courtdesk.core.config import settings
from courtdesk.db.models import (
    AssignmentRequest,
    AssignmentRequestStatus,
    Case,
    CaseDocument,
    CaseParty,
    CasePriority,
    CaseStatus,
    CaseType,
    Role,
    TimelineEvent,
    TimelineEventType,
    User,
)
from courtdesk.services import fanout_service, timeline_service
from courtdesk.services.case_resolver import CaseRef, check_version, get_case_or_404
from courtdesk.services.fanout_service import Fanout
from courtdesk.services.hearing_service import UNSCHEDULABLE, apply_next_hearing
from courtdesk.services.roles import Action, require_role
from courtdesk.utils.exceptions import (
    AlreadyApprovedError,
    ForbiddenError,
    InvalidTransitionError,
    ValidationFailedError,
    VersionConflictError,
)
from courtdesk.utils.validators import parse_hearing_date, require_text

logger = logging.getLogger(__name__)

# Reachable through update_case. The first three states are only entered via
# create_case, approve_case and assign_court.
OVERRIDE_TARGETS = frozenset({
    CaseStatus.in_progress,
    CaseStatus.pending_judgment,
    CaseStatus.adjourned,
    CaseStatus.review,
    CaseStatus.closed,
    CaseStatus.disposed,
})

COURT_ASSIGNABLE = frozenset({CaseStatus.filed, CaseStatus.assigned})

EDITABLE_FIELDS = frozenset({"title", "description", "priority", "status", "next_hearing"})
CLERK_FIELDS = frozenset({"next_hearing"})


def _enum_or_400(enum_cls, value: Any, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationFailedError(f"Invalid {field}: {value}. Allowed: {allowed}")


# ============================================================================
# Case numbers
# ============================================================================

def next_case_number(db: Session, year: Optional[int] = None) -> str:
    """
    <prefix>/<year>/<seq>, seq zero-padded to 3 digits.

    Uses the highest sequence issued for the year rather than a row count,
    so a gap left by a deleted case is never filled.
    """
    year = year or date.today().year
    stem = f"{settings.CASE_NUMBER_PREFIX}/{year}/"
    numbers = db.query(Case.case_number).filter(Case.case_number.like(f"{stem}%")).all()

    highest = 0
    for (number,) in numbers:
        tail = number[len(stem):]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return f"{stem}{highest + 1:03d}"


# ============================================================================
# Transitions
# ============================================================================

def create_case(
    db:           Session,
    actor:        User,
    title:        Optional[str],
    case_type:    Any,
    priority:     Any = None,
    description:  Optional[str] = None,
    parties:      Optional[Iterable[dict]] = None,
    next_hearing: Any = None,
) -> Case:
    """
    File a new case. A judge's filing is self-approved: the case starts at
    Filed with the judge on it. Anyone else's starts at Pending Approval.
    """
    require_role(actor, Action.create_case)
    if not title or not str(title).strip() or not case_type:
        raise ValidationFailedError("Title and type are required")

    case_type = _enum_or_400(CaseType, case_type, "type")
    priority = _enum_or_400(CasePriority, priority, "priority") if priority else CasePriority.medium
    hearing = parse_hearing_date(next_hearing, field="next_hearing") if next_hearing else None

    party_rows = []
    for party in parties or []:
        name = (party.get("name") or "").strip()
        role = (party.get("role") or "").strip()
        if not name or not role:
            raise ValidationFailedError("Each party needs a name and a role")
        party_rows.append(CaseParty(role=role, name=name, lawyer_id=party.get("lawyer_id")))

    is_judge = Role(actor.role) == Role.judge
    case = Case(
        case_number=next_case_number(db),
        title=str(title).strip(),
        case_type=case_type,
        status=CaseStatus.filed if is_judge else CaseStatus.pending_approval,
        priority=priority,
        description=description or "",
        filed_date=date.today(),
        next_hearing=hearing,
        court=actor.department or None,
        judge_id=actor.id if is_judge else None,
        created_by=actor.id,
    )
    case.parties.extend(party_rows)
    db.add(case)
    db.flush()

    fx = Fanout(db, actor)
    fx.timeline(case, "Case Filed", f"Case {case.case_number} has been filed", TimelineEventType.filing)
    fx.audit("create", "case", case.id, {
        "case_number": case.case_number,
        "status": case.status.value,
    })
    try:
        fx.commit()
    except IntegrityError as exc:
        # Two filings raced for the same sequence number.
        logger.warning("Case number collision on %s", case.case_number)
        raise VersionConflictError("Case number already taken; retry the filing") from exc

    db.refresh(case)
    logger.info("Case %s created by user %s (%s)", case.case_number, actor.id, case.status.value)
    return case


def approve_case(
    db:               Session,
    actor:            User,
    case_ref:         CaseRef,
    expected_version: Optional[int] = None,
) -> Case:
    """Pending Approval -> Filed. Anything else is ALREADY_APPROVED."""
    require_role(actor, Action.approve_case)
    case = get_case_or_404(db, case_ref)
    check_version(case, expected_version)

    if CaseStatus(case.status) != CaseStatus.pending_approval:
        raise AlreadyApprovedError(
            f"Case {case.case_number} is already approved (status: {CaseStatus(case.status).value})"
        )

    case.status = CaseStatus.filed

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Case Approved",
        f"Case {case.case_number} approved by {actor.name}",
        TimelineEventType.approval,
    )
    fanout_service.notify_case_approved(fx, case)
    fx.audit("approve", "case", case.id, {"case_number": case.case_number})
    fx.commit()

    db.refresh(case)
    logger.info("Case %s approved by user %s", case.case_number, actor.id)
    return case


def assign_court(
    db:               Session,
    actor:            User,
    case_ref:         CaseRef,
    court:            Optional[str],
    judge_id:         Optional[int],
    expected_version: Optional[int] = None,
) -> Case:
    """Filed (or Assigned, for reassignment) -> Assigned."""
    require_role(actor, Action.assign_court)
    if not court or not court.strip() or not judge_id:
        raise ValidationFailedError("Court and judge are required together")

    judge = db.get(User, judge_id)
    if judge is None or not judge.is_active or Role(judge.role) != Role.judge:
        raise ValidationFailedError(f"User {judge_id} is not an active judge")

    case = get_case_or_404(db, case_ref)
    check_version(case, expected_version)

    current = CaseStatus(case.status)
    if current not in COURT_ASSIGNABLE:
        raise InvalidTransitionError(
            f"Cannot assign a court to a case in status {current.value}"
        )

    case.court = court.strip()
    case.judge_id = judge.id
    case.status = CaseStatus.assigned

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Court Assigned",
        f"Case assigned to {case.court} before {judge.name}",
        TimelineEventType.assignment,
    )
    fanout_service.notify_case_assigned(fx, judge.id, case)
    fx.audit("assign_court", "case", case.id, {
        "case_number": case.case_number,
        "court": case.court,
        "judge_id": judge.id,
        "previous_status": current.value,
    })
    fx.commit()

    db.refresh(case)
    logger.info("Case %s assigned to %s (judge %s)", case.case_number, case.court, judge.id)
    return case


def update_case(
    db:               Session,
    actor:            User,
    case_ref:         CaseRef,
    fields:           dict[str, Any],
    expected_version: Optional[int] = None,
) -> Case:
    """
    Administrative edit.

    A status change here is an override: no predecessor check, but only the
    states in OVERRIDE_TARGETS may be set. Clerks may only move the hearing.
    """
    require_role(actor, Action.update_case)

    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if not fields:
        raise ValidationFailedError("No fields to update")
    if Role(actor.role) == Role.clerk and set(fields) - CLERK_FIELDS:
        raise ForbiddenError("Clerks may only change the next hearing date")

    # Validate everything before touching the row.
    title = require_text(fields["title"], "title") if "title" in fields else None
    priority = _enum_or_400(CasePriority, fields["priority"], "priority") if "priority" in fields else None
    hearing = fields.get("next_hearing")
    if hearing not in (None, ""):
        hearing = parse_hearing_date(hearing, field="next_hearing")
    target = None
    if "status" in fields:
        target = _enum_or_400(CaseStatus, fields["status"], "status")
        if target not in OVERRIDE_TARGETS:
            raise ValidationFailedError(
                f"Status {target.value} can only be reached through filing, approval or court assignment"
            )

    case = get_case_or_404(db, case_ref)
    check_version(case, expected_version)

    fx = Fanout(db, actor)
    changes: dict[str, dict[str, Any]] = {}

    if title is not None and title != case.title:
        changes["title"] = {"from": case.title, "to": title}
        case.title = title

    if "description" in fields:
        description = fields["description"] or ""
        if description != case.description:
            changes["description"] = {"from": case.description, "to": description}
            case.description = description

    if priority is not None and priority != case.priority:
        changes["priority"] = {"from": CasePriority(case.priority).value, "to": priority.value}
        case.priority = priority

    # Status lands first so the hearing check sees the case's new state.
    if target is not None:
        current = CaseStatus(case.status)
        if target != current:
            case.status = target
            changes["status"] = {"from": current.value, "to": target.value}
            fx.timeline(
                case,
                "Status Updated",
                f"Status changed from {current.value} to {target.value} by {actor.name}",
                TimelineEventType.status,
            )

    if "next_hearing" in fields:
        previous = case.next_hearing
        if hearing in (None, ""):
            if previous is not None:
                case.next_hearing = None
                changes["next_hearing"] = {"from": previous.isoformat(), "to": None}
        elif hearing != previous:
            try:
                apply_next_hearing(fx, case, hearing)
            except InvalidTransitionError:
                db.rollback()
                raise
            changes["next_hearing"] = {
                "from": previous.isoformat() if previous else None,
                "to": hearing.isoformat(),
            }

    if not changes:
        db.rollback()
        return case

    fx.audit("update", "case", case.id, {"case_number": case.case_number, "changes": changes})
    fx.commit()

    db.refresh(case)
    logger.info("Case %s updated by user %s: %s", case.case_number, actor.id, ", ".join(changes))
    return case


def delete_case(db: Session, actor: User, case_ref: CaseRef) -> dict[str, Any]:
    """
    Delete a case with its parties, documents, timeline, motions, orders and
    assignment requests. Notifications and audit records are kept.
    """
    require_role(actor, Action.delete_case)
    case = get_case_or_404(db, case_ref)

    deleted = {"id": case.id, "case_number": case.case_number}

    fx = Fanout(db, actor)
    fx.audit("delete", "case", case.id, {
        "case_number": case.case_number,
        "title": case.title,
        "status": CaseStatus(case.status).value,
    })
    db.delete(case)
    fx.commit()

    logger.info("Case %s deleted by user %s", deleted["case_number"], actor.id)
    return deleted


# ============================================================================
# Documents
# ============================================================================

def attach_document(
    db:          Session,
    actor:       User,
    case_ref:    CaseRef,
    name:        Optional[str],
    storage_url: Optional[str],
) -> CaseDocument:
    """Record a reference to a document already held by the storage service."""
    require_role(actor, Action.attach_document)
    name = require_text(name, "name")
    storage_url = require_text(storage_url, "storage_url")

    case = get_case_or_404(db, case_ref)
    if Role(actor.role) == Role.lawyer and case.lawyer_id != actor.id:
        raise ForbiddenError("You can only upload documents to cases you represent")

    document = CaseDocument(
        case_id=case.id,
        name=name,
        storage_url=storage_url,
        uploaded_by=actor.id,
    )
    db.add(document)
    db.flush()

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Document Uploaded",
        f'Document "{name}" uploaded by {actor.name}',
        TimelineEventType.document,
    )
    fx.audit("upload", "document", document.id, {
        "case_id": case.id,
        "case_number": case.case_number,
        "name": name,
    })
    fx.commit()

    db.refresh(document)
    return document


# ============================================================================
# Reads
# ============================================================================

def get_case(db: Session, actor: User, case_ref: CaseRef) -> Case:
    return get_case_or_404(db, case_ref)


def get_timeline(db: Session, actor: User, case_ref: CaseRef) -> list[TimelineEvent]:
    case = get_case_or_404(db, case_ref)
    return timeline_service.get_timeline(db, case)


def _scope_for(query, actor: User):
    role = Role(actor.role)
    if role == Role.judge:
        return query.filter(Case.judge_id == actor.id)
    if role == Role.lawyer:
        party_lawyer = exists().where(
            CaseParty.case_id == Case.id,
            CaseParty.lawyer_id == actor.id,
        )
        return query.filter(or_(Case.lawyer_id == actor.id, party_lawyer))
    return query


def list_cases(
    db:        Session,
    actor:     User,
    status:    Optional[str] = None,
    case_type: Optional[str] = None,
    search:    Optional[str] = None,
    judge_id:  Optional[int] = None,
    page:      int = 1,
    limit:     int = 20,
) -> dict[str, Any]:
    """
    Judges see the cases before them, lawyers the cases they represent or
    appear on as party counsel. Other roles see every case.
    """
    query = _scope_for(db.query(Case), actor)

    if status and status != "all":
        query = query.filter(Case.status == _enum_or_400(CaseStatus, status, "status"))
    if case_type:
        query = query.filter(Case.case_type == _enum_or_400(CaseType, case_type, "type"))
    if judge_id:
        query = query.filter(Case.judge_id == judge_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Case.case_number.ilike(term), Case.title.ilike(term)))

    total = query.count()
    items = (
        query.order_by(Case.filed_date.desc(), Case.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, (total + limit - 1) // limit),
    }


def list_unassigned_cases(
    db:    Session,
    actor: User,
    page:  int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    """Open cases without a lawyer, plus which of them the actor already asked for."""
    query = db.query(Case).filter(
        Case.lawyer_id.is_(None),
        Case.status.notin_(list(UNSCHEDULABLE)),
    )
    total = query.count()
    items = (
        query.order_by(Case.filed_date.desc(), Case.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    requested: list[int] = []
    if Role(actor.role) == Role.lawyer and items:
        rows = (
            db.query(AssignmentRequest.case_id)
            .filter(
                AssignmentRequest.lawyer_id == actor.id,
                AssignmentRequest.status == AssignmentRequestStatus.pending,
                AssignmentRequest.case_id.in_([c.id for c in items]),
            )
            .all()
        )
        requested = sorted(row.case_id for row in rows)

    return {
        "items": items,
        "requested_case_ids": requested,
        "total": total,
        "page": page,
        "limit": limit,
    }
