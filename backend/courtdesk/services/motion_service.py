"""
services/motion_service.py

Motion filing and disposition. Status only moves Pending -> Approved or
Pending -> Rejected.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from courtdesk.db.models import Case, Motion, MotionStatus, Role, TimelineEventType, User
from courtdesk.services import fanout_service
from courtdesk.services.case_resolver import CaseRef, check_version, get_case_or_404
from courtdesk.services.fanout_service import Fanout
from courtdesk.services.roles import Action, require_role
from courtdesk.utils.exceptions import (
    AlreadyReviewedError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from courtdesk.utils.validators import require_text

logger = logging.getLogger(__name__)

DISPOSITIONS = {
    MotionStatus.approved.value: MotionStatus.approved,
    MotionStatus.rejected.value: MotionStatus.rejected,
}


def file_motion(
    db:           Session,
    actor:        User,
    case_ref:     CaseRef,
    title:        Optional[str],
    description:  Optional[str] = None,
    document_url: Optional[str] = None,
) -> Motion:
    require_role(actor, Action.file_motion)
    title = require_text(title, "title")
    case = get_case_or_404(db, case_ref)

    if Role(actor.role) == Role.lawyer and case.lawyer_id != actor.id:
        raise ForbiddenError("You can only file motions on cases you represent")

    motion = Motion(
        case_id=case.id,
        title=title,
        description=description or "",
        filed_by=actor.id,
        filed_date=date.today(),
        status=MotionStatus.pending,
        document_url=document_url or None,
    )
    db.add(motion)
    db.flush()

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Motion Filed",
        f'Motion "{title}" filed by {actor.name}',
        TimelineEventType.motion,
    )
    fanout_service.notify_motion_filed(fx, case, motion)
    fx.audit("create", "motion", motion.id, {
        "case_id": case.id,
        "case_number": case.case_number,
        "title": title,
    })
    fx.commit()

    db.refresh(motion)
    logger.info("Motion %s filed on %s by user %s", motion.id, case.case_number, actor.id)
    return motion


def review_motion(
    db:               Session,
    actor:            User,
    motion_id:        int,
    status:           Optional[str],
    notes:            Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Motion:
    """
    Dispose of a pending motion. Checks run in this order: target status,
    existence, the judge's assignment, then whether it is still pending.
    """
    require_role(actor, Action.review_motion)
    target = DISPOSITIONS.get(status)
    if target is None:
        raise ValidationFailedError("Status must be Approved or Rejected")

    motion = db.get(Motion, motion_id)
    if motion is None:
        raise NotFoundError(f"Motion {motion_id} not found")

    case = motion.case
    if Role(actor.role) == Role.judge and case.judge_id != actor.id:
        raise ForbiddenError("Only the judge assigned to this case can review its motions")

    if MotionStatus(motion.status) != MotionStatus.pending:
        raise AlreadyReviewedError(
            f"Motion {motion_id} is already {MotionStatus(motion.status).value}"
        )
    check_version(motion, expected_version)

    motion.status = target
    motion.reviewed_by = actor.id
    motion.reviewed_at = datetime.utcnow()
    motion.notes = notes or ""

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        f"Motion {target.value}",
        f'Motion "{motion.title}" {target.value.lower()} by {actor.name}',
        TimelineEventType.motion,
    )
    fanout_service.notify_motion_reviewed(fx, case, motion)
    fx.audit("approve" if target == MotionStatus.approved else "reject", "motion", motion.id, {
        "case_id": case.id,
        "case_number": case.case_number,
        "notes": motion.notes,
    })
    fx.commit()

    db.refresh(motion)
    logger.info("Motion %s %s by user %s", motion.id, target.value.lower(), actor.id)
    return motion


# ============================================================================
# Reads
# ============================================================================

def _scoped(db: Session, actor: User):
    query = db.query(Motion).join(Case, Motion.case_id == Case.id)
    role = Role(actor.role)
    if role == Role.judge:
        return query.filter(Case.judge_id == actor.id)
    if role == Role.lawyer:
        return query.filter(or_(Motion.filed_by == actor.id, Case.lawyer_id == actor.id))
    return query


def list_motions(
    db:       Session,
    actor:    User,
    status:   Optional[str] = None,
    case_ref: Optional[CaseRef] = None,
    page:     int = 1,
    limit:    int = 20,
) -> dict[str, Any]:
    query = _scoped(db, actor)
    if status:
        try:
            query = query.filter(Motion.status == MotionStatus(status))
        except ValueError:
            raise ValidationFailedError(f"Invalid status: {status}")
    if case_ref:
        case = get_case_or_404(db, case_ref)
        query = query.filter(Motion.case_id == case.id)

    total = query.count()
    items = (
        query.order_by(Motion.filed_date.desc(), Motion.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "limit": limit}


def get_motion(db: Session, actor: User, motion_id: int) -> Motion:
    motion = _scoped(db, actor).filter(Motion.id == motion_id).first()
    if motion is None:
        raise NotFoundError(f"Motion {motion_id} not found")
    return motion


def pending_motion_count(db: Session, actor: User) -> int:
    return _scoped(db, actor).filter(Motion.status == MotionStatus.pending).count()
