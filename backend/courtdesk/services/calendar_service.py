"""
services/calendar_service.py

Calendar reads for the hearings page.

Called by:
  - api/v1/endpoints/calendar.py (REST API for the calendar page)

A hearing is derived from a case: any case with ``next_hearing`` set and a
status other than Closed/Disposed. There is no separate hearings table;
writes go through hearing_service.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional, Union

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Query, Session

from courtdesk.core.config import settings
from courtdesk.db.models import Case, CasePriority, CaseType, Role, User
from courtdesk.services.case_resolver import CaseRef, normalize_case_ref
from courtdesk.services.hearing_service import UNSCHEDULABLE
from courtdesk.utils.validators import parse_hearing_date, require_text

logger = logging.getLogger(__name__)

TYPE_COLORS = {
    CaseType.criminal: "bg-red-600",
    CaseType.civil: "bg-blue-600",
    CaseType.family: "bg-emerald-600",
    CaseType.commercial: "bg-purple-600",
    CaseType.appeal: "bg-amber-600",
}
DEFAULT_COLOR = "bg-slate-600"

# Priority is stored by label, so sort on an explicit rank.
PRIORITY_RANK = sql_case(
    {
        CasePriority.urgent.value: 0,
        CasePriority.high.value: 1,
        CasePriority.medium.value: 2,
        CasePriority.low.value: 3,
    },
    value=Case.priority,
    else_=4,
)


def _open_hearings(db: Session) -> Query:
    return db.query(Case).filter(
        Case.next_hearing.isnot(None),
        Case.status.notin_(list(UNSCHEDULABLE)),
    )


def _scope(query: Query, actor: User) -> Query:
    role = Role(actor.role)
    if role == Role.judge:
        return query.filter(Case.judge_id == actor.id)
    if role == Role.lawyer:
        return query.filter(Case.lawyer_id == actor.id)
    return query


def _to_hearing(case: Case) -> dict[str, Any]:
    case_type = CaseType(case.case_type)
    return {
        "id": f"{case.case_number}-{case.next_hearing.isoformat()}",
        "case_id": case.case_number,
        "case_pk": case.id,
        "title": case.title,
        "type": case_type.value,
        "date": case.next_hearing.isoformat(),
        "time": settings.HEARING_DEFAULT_TIME,
        "court": case.court or "Unassigned",
        "judge": case.judge.name if case.judge else "Unassigned",
        "lawyer": case.lawyer.name if case.lawyer else None,
        "priority": case.priority.value,
        "status": case.status.value,
        "color": TYPE_COLORS.get(case_type, DEFAULT_COLOR),
    }


# ============================================================================
# Read
# ============================================================================

def list_hearings(
    db:       Session,
    actor:    User,
    start:    Optional[Union[str, date]] = None,
    end:      Optional[Union[str, date]] = None,
    court:    Optional[str] = None,
    judge_id: Optional[int] = None,
    case_ref: Optional[CaseRef] = None,
) -> list[dict[str, Any]]:
    """
    Upcoming (or in-range) hearings visible to ``actor``, earliest first.

    ``case_ref`` matches either the numeric id or the case number.
    """
    query = _scope(_open_hearings(db), actor)

    if start:
        query = query.filter(Case.next_hearing >= parse_hearing_date(start, field="start date"))
    if end:
        query = query.filter(Case.next_hearing <= parse_hearing_date(end, field="end date"))
    if court:
        query = query.filter(Case.court == court)
    if judge_id:
        query = query.filter(Case.judge_id == judge_id)
    if case_ref:
        ref = normalize_case_ref(case_ref)
        if ref.isdigit():
            query = query.filter((Case.id == int(ref)) | (Case.case_number == ref))
        else:
            query = query.filter(Case.case_number == ref)

    cases = query.order_by(Case.next_hearing.asc(), PRIORITY_RANK.asc(), Case.id.asc()).all()
    return [_to_hearing(c) for c in cases]


def hearings_on(db: Session, actor: User, day: Union[str, date]) -> list[dict[str, Any]]:
    parsed = parse_hearing_date(day, field="date")
    query = _scope(_open_hearings(db), actor).filter(Case.next_hearing == parsed)
    cases = query.order_by(PRIORITY_RANK.asc(), Case.id.asc()).all()
    return [_to_hearing(c) for c in cases]


def court_availability(
    db:    Session,
    day:   Union[str, date],
    court: Optional[str],
) -> dict[str, Any]:
    """
    Daily slots for a court, marked booked in order.

    Cases carry a hearing date but no time, so the first N slots are shown as
    booked for N hearings that day.
    """
    parsed = parse_hearing_date(day, field="date")
    court = require_text(court, "court")

    booked = (
        _open_hearings(db)
        .filter(Case.next_hearing == parsed, Case.court == court)
        .order_by(Case.id.asc())
        .all()
    )

    slots = [{"time": t, "available": True} for t in settings.hearing_time_slots_list]
    for slot, case in zip(slots, booked):
        slot["available"] = False
        slot["case_id"] = case.case_number
        slot["case_title"] = case.title

    return {
        "date": parsed.isoformat(),
        "court": court,
        "time_slots": slots,
        "total_hearings": len(booked),
    }


def calendar_stats(db: Session, today: Optional[date] = None) -> dict[str, Any]:
    today = today or date.today()
    week_end = today + timedelta(days=7)

    base = _open_hearings(db)
    upcoming = base.filter(Case.next_hearing >= today)

    by_court = (
        db.query(Case.court, func.count(Case.id))
        .filter(
            Case.next_hearing >= today,
            Case.status.notin_(list(UNSCHEDULABLE)),
            Case.court.isnot(None),
        )
        .group_by(Case.court)
        .all()
    )
    by_type = (
        db.query(Case.case_type, func.count(Case.id))
        .filter(
            Case.next_hearing >= today,
            Case.status.notin_(list(UNSCHEDULABLE)),
        )
        .group_by(Case.case_type)
        .all()
    )

    return {
        "today": base.filter(Case.next_hearing == today).count(),
        "this_week": base.filter(Case.next_hearing.between(today, week_end)).count(),
        "upcoming": upcoming.count(),
        "by_court": [{"court": court, "count": count} for court, count in by_court],
        "by_type": [{"type": CaseType(t).value, "count": count} for t, count in by_type],
    }
