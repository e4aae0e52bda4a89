"""
services/fanout_service.py

Side-effect fan-out for workflow transitions.

Every successful transition emits a timeline entry, zero or more
notifications and one audit record. They are written as OutboxEvent rows in
the same transaction as the state change, so they exist exactly when the
change does. Delivery happens after commit:

  1. inline, right after the transition commits (OUTBOX_INLINE_DISPATCH)
  2. by the outbox worker (background_jobs.drain_outbox) for anything left
     pending, until OUTBOX_MAX_ATTEMPTS is reached

A delivery failure is logged and recorded on the event. It never rolls back
the transition and never fails the request.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from courtdesk.core.config import settings
from courtdesk.db.models import (
    Case,
    Motion,
    Order,
    OutboxEvent,
    OutboxKind,
    OutboxStatus,
    TimelineEventType,
    User,
)
from courtdesk.services.audit_service import audit_service
from courtdesk.services.notification_service import deliver_notification
from courtdesk.services.timeline_service import deliver_timeline
from courtdesk.utils.exceptions import VersionConflictError, WorkflowError

logger = logging.getLogger(__name__)

Handler = Callable[[Session, dict], Any]

HANDLERS: dict[OutboxKind, Handler] = {
    OutboxKind.timeline: deliver_timeline,
    OutboxKind.notification: deliver_notification,
    OutboxKind.audit: audit_service.record,
}


# ============================================================================
# Enqueue
# ============================================================================

class Fanout:
    """Collects the side effects of one transition."""

    def __init__(self, db: Session, actor: User):
        self.db = db
        self.actor = actor
        self.events: list[OutboxEvent] = []

    def _enqueue(self, kind: OutboxKind, payload: dict[str, Any]) -> OutboxEvent:
        event = OutboxEvent(kind=kind, payload=payload, status=OutboxStatus.pending, attempts=0)
        self.db.add(event)
        self.events.append(event)
        return event

    def timeline(
        self,
        case:        Case,
        title:       str,
        description: str,
        event_type:  TimelineEventType,
    ) -> OutboxEvent:
        return self._enqueue(OutboxKind.timeline, {
            "case_id": case.id,
            "date": date.today().isoformat(),
            "title": title,
            "description": description,
            "event_type": event_type.value,
            "created_by": self.actor.id,
        })

    def notify(
        self,
        user_id:       Optional[int],
        type_:         str,
        title:         str,
        message:       str,
        resource_type: Optional[str] = "case",
        resource_id:   Optional[int] = None,
    ) -> Optional[OutboxEvent]:
        if not user_id:
            return None
        return self._enqueue(OutboxKind.notification, {
            "user_id": user_id,
            "type": type_,
            "title": title,
            "message": message,
            "related_resource_type": resource_type,
            "related_resource_id": resource_id,
        })

    def audit(
        self,
        action:      str,
        resource:    str,
        resource_id: Optional[int],
        details:     Optional[dict[str, Any]] = None,
    ) -> OutboxEvent:
        return self._enqueue(OutboxKind.audit, {
            "user_id": self.actor.id,
            "user_name": self.actor.name,
            "action": action,
            "resource": resource,
            "resource_id": resource_id,
            "details": details or {},
            "occurred_at": datetime.utcnow().isoformat(),
        })

    def commit(self) -> None:
        """
        Commit the primary write together with its outbox rows, then deliver.

        IntegrityError is re-raised (after rollback) so the caller can map it
        to a state-conflict code.
        """
        db = self.db
        try:
            db.flush()
            event_ids = [e.id for e in self.events]
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            logger.warning("Optimistic version conflict: %s", exc)
            raise VersionConflictError() from exc
        except IntegrityError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Primary write failed")
            raise WorkflowError() from exc

        if settings.OUTBOX_INLINE_DISPATCH and event_ids:
            dispatch_events(db, event_ids)


# ============================================================================
# Notification messages
# ============================================================================

def notify_case_approved(fx: Fanout, case: Case) -> None:
    fx.notify(
        case.created_by,
        "case_approved",
        "Case Registration Approved",
        f"Case {case.case_number}: {case.title} has been approved and filed",
        resource_id=case.id,
    )


def notify_case_assigned(fx: Fanout, user_id: int, case: Case) -> None:
    where = f" at {case.court}" if case.court else ""
    fx.notify(
        user_id,
        "case_assigned",
        "New Case Assigned",
        f"You have been assigned to case {case.case_number}: {case.title}{where}",
        resource_id=case.id,
    )


def notify_hearing_scheduled(fx: Fanout, case: Case) -> None:
    when = case.next_hearing.strftime("%d %B %Y") if case.next_hearing else "a date to be announced"
    message = (
        f"Hearing for case {case.case_number}: {case.title} scheduled on {when}"
        f" at {case.court or 'Unassigned'}"
    )
    recipients = {uid for uid in (case.judge_id, case.lawyer_id) if uid}
    for user_id in sorted(recipients):
        fx.notify(user_id, "hearing_scheduled", "Hearing Scheduled", message, resource_id=case.id)


def notify_assignment_requested(fx: Fanout, case: Case, lawyer: User) -> None:
    fx.notify(
        case.judge_id,
        "assignment_requested",
        "Lawyer Assignment Requested",
        f"{lawyer.name} requested assignment to case {case.case_number}: {case.title}",
        resource_id=case.id,
    )


def notify_assignment_reviewed(fx: Fanout, lawyer_id: int, case: Case, approved: bool) -> None:
    outcome = "approved" if approved else "rejected"
    fx.notify(
        lawyer_id,
        f"assignment_{outcome}",
        f"Assignment Request {outcome.capitalize()}",
        f"Your request to represent case {case.case_number}: {case.title} was {outcome}",
        resource_id=case.id,
    )


def notify_motion_filed(fx: Fanout, case: Case, motion: Motion) -> None:
    if case.judge_id == fx.actor.id:
        return
    fx.notify(
        case.judge_id,
        "motion_filed",
        "New Motion Filed",
        f'Motion "{motion.title}" was filed on case {case.case_number}',
        resource_type="motion",
        resource_id=motion.id,
    )


def notify_motion_reviewed(fx: Fanout, case: Case, motion: Motion) -> None:
    status = motion.status.value.lower()
    fx.notify(
        motion.filed_by,
        "motion_reviewed",
        f"Motion {motion.status.value}",
        f'Motion "{motion.title}" on case {case.case_number} was {status} by {fx.actor.name}',
        resource_type="motion",
        resource_id=motion.id,
    )


def notify_order_pending_signature(fx: Fanout, case: Case, order: Order) -> None:
    if case.judge_id == fx.actor.id:
        return
    fx.notify(
        case.judge_id,
        "order_pending_signature",
        "Order Awaiting Signature",
        f'Order "{order.title}" on case {case.case_number} is ready for signature',
        resource_type="order",
        resource_id=order.id,
    )


def notify_order_signed(fx: Fanout, case: Case, order: Order) -> None:
    message = f'Order "{order.title}" on case {case.case_number} was signed by {fx.actor.name}'
    for user_id in sorted({order.drafted_by, case.lawyer_id} - {None, fx.actor.id}):
        fx.notify(user_id, "order_signed", "Order Signed", message, resource_type="order", resource_id=order.id)


# ============================================================================
# Delivery
# ============================================================================

def deliver_event(db: Session, event: OutboxEvent) -> None:
    handler = HANDLERS[OutboxKind(event.kind)]
    handler(db, dict(event.payload or {}))


def _record_failure(db: Session, event_id: int, error: Exception) -> None:
    try:
        event = db.get(OutboxEvent, event_id)
        if event is None:
            return
        event.attempts = (event.attempts or 0) + 1
        event.last_error = f"{type(error).__name__}: {error}"[:2000]
        if event.attempts >= settings.OUTBOX_MAX_ATTEMPTS:
            event.status = OutboxStatus.failed
            event.processed_at = datetime.utcnow()
            logger.error("Outbox event %s gave up after %s attempts", event_id, event.attempts)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record failure for outbox event %s", event_id)


def dispatch_events(db: Session, event_ids: list[int]) -> dict[str, int]:
    """
    Deliver the given pending events, each in its own transaction.
    Returns counts of delivered and failed deliveries.
    """
    stats = {"delivered": 0, "failed": 0}
    for event_id in event_ids:
        event = (
            db.query(OutboxEvent)
            .filter(OutboxEvent.id == event_id, OutboxEvent.status == OutboxStatus.pending)
            .first()
        )
        if event is None:
            continue

        kind = OutboxKind(event.kind).value
        try:
            deliver_event(db, event)
            event.status = OutboxStatus.delivered
            event.attempts = (event.attempts or 0) + 1
            event.last_error = None
            event.processed_at = datetime.utcnow()
            db.commit()
            stats["delivered"] += 1
        except Exception as exc:
            db.rollback()
            logger.exception("Fan-out %s delivery failed for outbox event %s", kind, event_id)
            _record_failure(db, event_id, exc)
            stats["failed"] += 1
    return stats


def drain_pending(db: Session, limit: Optional[int] = None) -> dict[str, int]:
    """Deliver the oldest pending outbox events."""
    batch = limit or settings.OUTBOX_BATCH_SIZE
    ids = [
        row.id for row in (
            db.query(OutboxEvent.id)
            .filter(OutboxEvent.status == OutboxStatus.pending)
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(batch)
            .all()
        )
    ]
    if not ids:
        return {"delivered": 0, "failed": 0}
    stats = dispatch_events(db, ids)
    logger.info("Outbox drain: %s delivered, %s failed", stats["delivered"], stats["failed"])
    return stats


def requeue_failed(db: Session) -> int:
    """Return dead events to the pending queue with a fresh attempt budget."""
    updated = (
        db.query(OutboxEvent)
        .filter(OutboxEvent.status == OutboxStatus.failed)
        .update(
            {OutboxEvent.status: OutboxStatus.pending, OutboxEvent.attempts: 0},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated


def outbox_stats(db: Session) -> dict[str, int]:
    counts = {status.value: 0 for status in OutboxStatus}
    for status in OutboxStatus:
        counts[status.value] = db.query(OutboxEvent).filter(OutboxEvent.status == status).count()
    return counts
