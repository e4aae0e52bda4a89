"""
api/v1/endpoints/calendar.py

Calendar REST API for the hearings page.

Endpoints:
  GET    /api/v1/calendar/hearings          hearings in a date range
  GET    /api/v1/calendar/hearings/{date}   hearings on one day (YYYY-MM-DD)
  POST   /api/v1/calendar/hearings          schedule a hearing
  GET    /api/v1/calendar/availability      slot availability for a court
  GET    /api/v1/calendar/stats             counts by day, week, court, type
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import HearingCreate
from courtdesk.services import calendar_service, hearing_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Hearings
# ============================================================================

@router.get("/hearings")
def list_hearings(
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date:   Optional[str] = Query(None, description="YYYY-MM-DD"),
    court:      Optional[str] = Query(None),
    judge_id:   Optional[int] = Query(None),
    case_id:    Optional[str] = Query(None, description="Case id or case number"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    hearings = calendar_service.list_hearings(
        db, current_user,
        start=start_date, end=end_date, court=court, judge_id=judge_id, case_ref=case_id,
    )
    return envelope(hearings, count=len(hearings))


@router.get("/hearings/{day}")
def hearings_on(
    day: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    hearings = calendar_service.hearings_on(db, current_user, day)
    return envelope(hearings, count=len(hearings))


@router.post("/hearings")
def schedule_hearing(
    body: HearingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    scheduled = hearing_service.schedule_hearing(
        db, current_user, body.case_id, body.hearing_date,
        hearing_time=body.hearing_time, court=body.court,
    )
    return envelope(scheduled, message="Hearing scheduled successfully")


# ============================================================================
# Availability & stats
# ============================================================================

@router.get("/availability")
def court_availability(
    date:  Optional[str] = Query(None, description="YYYY-MM-DD"),
    court: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return envelope(calendar_service.court_availability(db, date, court))


@router.get("/stats")
def calendar_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return envelope(calendar_service.calendar_stats(db))
