"""
Notification inbox endpoints. Every route acts on the caller's own inbox.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import NotificationReadUpdate, NotificationResponse
from courtdesk.services import notification_service

router = APIRouter()


def _serialize(notification, case_numbers=None) -> NotificationResponse:
    item = NotificationResponse.model_validate(notification)
    if case_numbers and notification.related_resource_type == "case":
        item.case_number = case_numbers.get(notification.related_resource_id)
    return item


@router.get("")
def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = notification_service.list_notifications(
        db, current_user, unread_only=unread_only, page=page, limit=limit,
    )
    return envelope(
        [_serialize(n, result["case_numbers"]) for n in result["items"]],
        unread_count=result["unread_count"],
        pagination={"total": result["total"], "page": result["page"], "limit": result["limit"]},
    )


@router.get("/unread-count")
def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope({"count": notification_service.unread_count(db, current_user)})


@router.patch("/read-all")
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_all_read(db, current_user)
    return envelope({"updated": updated}, message="All notifications marked as read")


@router.patch("/related/{resource_type}/{resource_id}/read")
def mark_related_read(
    resource_type: str,
    resource_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Clear the badge for one case, motion or order once the user has opened it."""
    updated = notification_service.mark_related_read(db, current_user, resource_type, resource_id)
    return envelope({"updated": updated})


@router.patch("/{notification_id}/read")
def set_read(
    notification_id: int,
    body: Optional[NotificationReadUpdate] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    is_read = body.is_read if body else True
    notification = notification_service.set_read(db, current_user, notification_id, is_read)
    return envelope(_serialize(notification))


@router.patch("/{notification_id}/unread")
def set_unread(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = notification_service.set_read(db, current_user, notification_id, False)
    return envelope(_serialize(notification))


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service.delete_notification(db, current_user, notification_id)
    return envelope(None, message="Notification deleted")
