"""
services/notification_service.py

In-app notification inbox.

Notifications are written by the fan-out outbox (see fanout_service) and are
owned by their recipient afterwards: the only mutations are the read/unread
toggle and deletion by the recipient.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtdesk.db.models import Case, Notification, User
from courtdesk.utils.exceptions import NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)


def deliver_notification(db: Session, payload: dict[str, Any]) -> Notification:
    """Outbox handler: insert one notification row."""
    if not payload.get("user_id"):
        raise ValidationFailedError("Notification payload has no recipient")

    notification = Notification(
        user_id=int(payload["user_id"]),
        type=payload["type"],
        title=payload["title"],
        message=payload["message"],
        related_resource_type=payload.get("related_resource_type"),
        related_resource_id=payload.get("related_resource_id"),
        is_read=False,
    )
    db.add(notification)
    db.flush()
    logger.debug(
        "Notification %s queued for user %s (type=%s)",
        notification.id, notification.user_id, notification.type,
    )
    return notification


def list_notifications(
    db:          Session,
    user:        User,
    unread_only: bool = False,
    page:        int  = 1,
    limit:       int  = 20,
) -> dict[str, Any]:
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    case_ids = {
        n.related_resource_id for n in items
        if n.related_resource_type == "case" and n.related_resource_id
    }
    case_numbers: dict[int, str] = {}
    if case_ids:
        rows = db.query(Case.id, Case.case_number).filter(Case.id.in_(case_ids)).all()
        case_numbers = {row.id: row.case_number for row in rows}

    return {
        "items": items,
        "case_numbers": case_numbers,
        "unread_count": unread_count(db, user),
        "total": total,
        "page": page,
        "limit": limit,
    }


def unread_count(db: Session, user: User) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
        .count()
    )


def _get_owned(db: Session, user: User, notification_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user.id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def set_read(db: Session, user: User, notification_id: int, is_read: bool = True) -> Notification:
    notification = _get_owned(db, user, notification_id)
    notification.is_read = is_read
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user: User) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, user: User, notification_id: int) -> None:
    notification = _get_owned(db, user, notification_id)
    db.delete(notification)
    db.commit()


def mark_related_read(
    db:            Session,
    user:          User,
    resource_type: str,
    resource_id:   Optional[int],
) -> int:
    """Mark every notification about one resource as read for ``user``."""
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == user.id,
            Notification.related_resource_type == resource_type,
            Notification.related_resource_id == resource_id,
        )
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
