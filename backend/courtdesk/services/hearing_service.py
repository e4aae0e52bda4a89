"""
services/hearing_service.py

Next-hearing writes.

There is one underlying field write (apply_next_hearing). It is reached from
two entry points: the case edit (case_service.update_case) and the
calendar-facing schedule_hearing. Both produce the same fan-out.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from courtdesk.core.config import settings
from courtdesk.db.models import Case, CaseStatus, TimelineEventType, User
from courtdesk.services import fanout_service
from courtdesk.services.case_resolver import CaseRef, check_version, get_case_or_404
from courtdesk.services.fanout_service import Fanout
from courtdesk.services.roles import Action, require_role
from courtdesk.utils.exceptions import InvalidTransitionError
from courtdesk.utils.validators import parse_hearing_date, validate_hearing_time

logger = logging.getLogger(__name__)

UNSCHEDULABLE = frozenset({CaseStatus.closed, CaseStatus.disposed})


def apply_next_hearing(
    fx:           Fanout,
    case:         Case,
    hearing_date: Union[str, date],
    court:        Optional[str] = None,
    hearing_time: Optional[str] = None,
) -> date:
    """
    Write ``next_hearing`` (and optionally ``court``) and enqueue the fan-out.
    The caller commits.
    """
    parsed = parse_hearing_date(hearing_date, field="hearing date")
    if CaseStatus(case.status) in UNSCHEDULABLE:
        raise InvalidTransitionError(
            f"Cannot schedule a hearing for a {CaseStatus(case.status).value} case"
        )

    previous = case.next_hearing
    case.next_hearing = parsed
    if court and court.strip():
        case.court = court.strip()

    where = f" in {court.strip()}" if court and court.strip() else ""
    fx.timeline(
        case,
        "Hearing Scheduled",
        f"Hearing scheduled for {parsed.isoformat()}{where}",
        TimelineEventType.hearing,
    )
    fanout_service.notify_hearing_scheduled(fx, case)
    fx.audit("schedule_hearing", "case", case.id, {
        "case_number": case.case_number,
        "next_hearing": parsed.isoformat(),
        "previous_hearing": previous.isoformat() if previous else None,
        "court": case.court,
        "hearing_time": hearing_time,
    })
    return parsed


def set_next_hearing(
    db:               Session,
    actor:            User,
    case_ref:         CaseRef,
    hearing_date:     Union[str, date],
    court:            Optional[str] = None,
    hearing_time:     Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Case:
    require_role(actor, Action.schedule_hearing)
    parse_hearing_date(hearing_date, field="hearing date")
    case = get_case_or_404(db, case_ref)
    check_version(case, expected_version)

    fx = Fanout(db, actor)
    apply_next_hearing(fx, case, hearing_date, court=court, hearing_time=hearing_time)
    fx.commit()
    db.refresh(case)

    logger.info("Hearing for %s set to %s by user %s", case.case_number, case.next_hearing, actor.id)
    return case


def schedule_hearing(
    db:           Session,
    actor:        User,
    case_ref:     CaseRef,
    hearing_date: Union[str, date],
    hearing_time: Optional[str] = None,
    court:        Optional[str] = None,
) -> dict[str, Any]:
    """Calendar entry point. Accepts a numeric id or a case number."""
    hearing_time = validate_hearing_time(hearing_time)
    case = set_next_hearing(
        db, actor, case_ref, hearing_date, court=court, hearing_time=hearing_time,
    )
    return {
        "case_id": case.id,
        "case_number": case.case_number,
        "hearing_date": case.next_hearing.isoformat(),
        "hearing_time": hearing_time or settings.HEARING_DEFAULT_TIME,
        "court": case.court,
    }
