"""
services/order_service.py

Order drafting and signing. Signed is terminal: the first signature's signer
and timestamp are never overwritten.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from courtdesk.db.models import Case, Order, OrderStatus, Role, TimelineEventType, User
from courtdesk.services import fanout_service
from courtdesk.services.case_resolver import CaseRef, check_version, get_case_or_404
from courtdesk.services.fanout_service import Fanout
from courtdesk.services.roles import Action, require_role
from courtdesk.utils.exceptions import (
    AlreadySignedError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from courtdesk.utils.validators import require_text

logger = logging.getLogger(__name__)


def draft_order(
    db:       Session,
    actor:    User,
    case_ref: CaseRef,
    title:    Optional[str],
    content:  Optional[str] = None,
) -> Order:
    require_role(actor, Action.draft_order)
    title = require_text(title, "title")
    case = get_case_or_404(db, case_ref)

    if Role(actor.role) == Role.judge and case.judge_id != actor.id:
        raise ForbiddenError("Only the judge assigned to this case can draft orders for it")

    order = Order(
        case_id=case.id,
        title=title,
        content=content or "",
        drafted_by=actor.id,
        drafted_date=date.today(),
        status=OrderStatus.draft,
    )
    db.add(order)
    db.flush()

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Order Drafted",
        f'Order "{title}" drafted by {actor.name}',
        TimelineEventType.order,
    )
    fanout_service.notify_order_pending_signature(fx, case, order)
    fx.audit("create", "order", order.id, {
        "case_id": case.id,
        "case_number": case.case_number,
        "title": title,
    })
    fx.commit()

    db.refresh(order)
    logger.info("Order %s drafted on %s by user %s", order.id, case.case_number, actor.id)
    return order


def sign_order(
    db:               Session,
    actor:            User,
    order_id:         int,
    expected_version: Optional[int] = None,
) -> Order:
    require_role(actor, Action.sign_order)

    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    if OrderStatus(order.status) == OrderStatus.signed:
        raise AlreadySignedError(f"Order {order_id} is already signed")

    case = order.case
    if Role(actor.role) == Role.judge and case.judge_id != actor.id:
        raise ForbiddenError("Only the judge assigned to this case can sign its orders")
    check_version(order, expected_version)

    order.status = OrderStatus.signed
    order.signed_by = actor.id
    order.signed_at = datetime.utcnow()

    fx = Fanout(db, actor)
    fx.timeline(
        case,
        "Order Signed",
        f'Order "{order.title}" signed by {actor.name}',
        TimelineEventType.order,
    )
    fanout_service.notify_order_signed(fx, case, order)
    fx.audit("sign", "order", order.id, {
        "case_id": case.id,
        "case_number": case.case_number,
    })
    fx.commit()

    db.refresh(order)
    logger.info("Order %s signed by user %s", order.id, actor.id)
    return order


# ============================================================================
# Reads
# ============================================================================

def _scoped(db: Session, actor: User):
    query = db.query(Order).join(Case, Order.case_id == Case.id)
    role = Role(actor.role)
    if role == Role.judge:
        return query.filter(or_(Case.judge_id == actor.id, Order.drafted_by == actor.id))
    if role == Role.lawyer:
        return query.filter(Case.lawyer_id == actor.id)
    if role in (Role.clerk, Role.registrar):
        return query.filter(Order.drafted_by == actor.id)
    return query


def list_orders(
    db:       Session,
    actor:    User,
    status:   Optional[str] = None,
    case_ref: Optional[CaseRef] = None,
    page:     int = 1,
    limit:    int = 20,
) -> dict[str, Any]:
    query = _scoped(db, actor)
    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            raise ValidationFailedError(f"Invalid status: {status}")
    if case_ref:
        case = get_case_or_404(db, case_ref)
        query = query.filter(Order.case_id == case.id)

    total = query.count()
    items = (
        query.order_by(Order.drafted_date.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "limit": limit}


def get_order(db: Session, actor: User, order_id: int) -> Order:
    order = _scoped(db, actor).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def draft_order_count(db: Session, actor: User) -> int:
    return _scoped(db, actor).filter(Order.status == OrderStatus.draft).count()
