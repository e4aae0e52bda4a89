"""
Motion endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import MotionCreate, MotionResponse, MotionReview
from courtdesk.services import motion_service

router = APIRouter()


@router.get("")
def list_motions(
    status_filter: Optional[str] = Query(None, alias="status"),
    case_id: Optional[str] = Query(None, description="Case id or case number"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = motion_service.list_motions(
        db, current_user, status=status_filter, case_ref=case_id, page=page, limit=limit,
    )
    return envelope(
        [MotionResponse.model_validate(m) for m in result["items"]],
        pagination={"total": result["total"], "page": result["page"], "limit": result["limit"]},
    )


@router.get("/pending/count")
def pending_motion_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope({"count": motion_service.pending_motion_count(db, current_user)})


@router.get("/{motion_id}")
def get_motion(
    motion_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope(MotionResponse.model_validate(motion_service.get_motion(db, current_user, motion_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def file_motion(
    body: MotionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    motion = motion_service.file_motion(
        db, current_user, body.case_id,
        title=body.title, description=body.description, document_url=body.document_url,
    )
    return envelope(MotionResponse.model_validate(motion), message="Motion filed successfully")


@router.patch("/{motion_id}/review")
def review_motion(
    motion_id: int,
    body: MotionReview,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    motion = motion_service.review_motion(
        db, current_user, motion_id, body.status,
        notes=body.notes, expected_version=body.expected_version,
    )
    return envelope(
        MotionResponse.model_validate(motion),
        message=f"Motion {motion.status.value.lower()} successfully",
    )
