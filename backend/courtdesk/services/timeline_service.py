"""
Case timeline: append-only narrative log per case.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtdesk.db.models import Case, TimelineEvent, TimelineEventType

logger = logging.getLogger(__name__)


def deliver_timeline(db: Session, payload: dict[str, Any]) -> Optional[TimelineEvent]:
    """Outbox handler: append one timeline entry."""
    case_id = int(payload["case_id"])
    if db.get(Case, case_id) is None:
        # Case deleted before delivery; nothing to attach to.
        logger.info("Skipping timeline entry for deleted case %s", case_id)
        return None

    event = TimelineEvent(
        case_id=case_id,
        date=date.fromisoformat(payload["date"]) if payload.get("date") else date.today(),
        title=payload["title"],
        description=payload.get("description") or "",
        event_type=TimelineEventType(payload["event_type"]),
        created_by=payload.get("created_by"),
    )
    db.add(event)
    db.flush()
    return event


def get_timeline(db: Session, case: Case) -> list[TimelineEvent]:
    return (
        db.query(TimelineEvent)
        .filter(TimelineEvent.case_id == case.id)
        .order_by(TimelineEvent.date.desc(), TimelineEvent.id.desc())
        .all()
    )
