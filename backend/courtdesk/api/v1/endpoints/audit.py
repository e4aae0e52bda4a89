"""
Audit log endpoints (admin and court admin only)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import AuditRecordResponse
from courtdesk.services.audit_service import audit_service
from courtdesk.services.roles import Action, require_role

router = APIRouter()


@router.get("")
def list_audit_records(
    resource: Optional[str] = Query(None, description="case, motion, order, ..."),
    resource_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    require_role(current_user, Action.view_audit)
    result = audit_service.list_records(
        db,
        resource=resource,
        resource_id=resource_id,
        action=action,
        user_id=user_id,
        page=page,
        limit=limit,
    )
    return envelope(
        [AuditRecordResponse.model_validate(r) for r in result["items"]],
        pagination={"total": result["total"], "page": result["page"], "limit": result["limit"]},
    )
