"""
Order endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from courtdesk.api.v1.deps import envelope, get_current_user
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.db.schemas import OrderCreate, OrderResponse, VersionedRequest
from courtdesk.services import order_service

router = APIRouter()


@router.get("")
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    case_id: Optional[str] = Query(None, description="Case id or case number"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = order_service.list_orders(
        db, current_user, status=status_filter, case_ref=case_id, page=page, limit=limit,
    )
    return envelope(
        [OrderResponse.model_validate(o) for o in result["items"]],
        pagination={"total": result["total"], "page": result["page"], "limit": result["limit"]},
    )


@router.get("/drafts/count")
def draft_order_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope({"count": order_service.draft_order_count(db, current_user)})


@router.get("/{order_id}")
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return envelope(OrderResponse.model_validate(order_service.get_order(db, current_user, order_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def draft_order(
    body: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    order = order_service.draft_order(
        db, current_user, body.case_id, title=body.title, content=body.content,
    )
    return envelope(OrderResponse.model_validate(order), message="Order drafted successfully")


@router.patch("/{order_id}/sign")
def sign_order(
    order_id: int,
    body: Optional[VersionedRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    order = order_service.sign_order(
        db, current_user, order_id,
        expected_version=body.expected_version if body else None,
    )
    return envelope(OrderResponse.model_validate(order), message="Order signed successfully")
