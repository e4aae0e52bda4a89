from datetime import datetime

import pytest

from courtdesk.db.models import AuditRecord, Notification, Order, OrderStatus
from courtdesk.services import assignment_service, order_service
from courtdesk.utils.exceptions import AlreadySignedError, ForbiddenError, NotFoundError


@pytest.fixture
def represented_case(db, users, assigned_case):
    return assignment_service.assign_lawyer(db, users.registrar, assigned_case.id, users.lawyer.id)


@pytest.fixture
def draft(db, users, represented_case):
    return order_service.draft_order(db, users.clerk, represented_case.id, "Interim order", "Status quo")


def test_clerk_draft_notifies_judge(client, db, users, headers, represented_case):
    resp = client.post(
        "/api/v1/orders",
        json={"case_id": represented_case.id, "title": "Notice to respondent"},
        headers=headers(users.clerk),
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["status"] == "Draft"
    assert db.query(Notification).filter_by(user_id=users.judge.id, type="order_pending_signature").count() == 1


def test_only_assigned_judge_drafts(db, users, represented_case):
    with pytest.raises(ForbiddenError):
        order_service.draft_order(db, users.judge2, represented_case.id, "Order")
    with pytest.raises(ForbiddenError):
        order_service.draft_order(db, users.lawyer, represented_case.id, "Order")


def test_sign_order(client, db, users, headers, draft):
    resp = client.patch(f"/api/v1/orders/{draft.id}/sign", headers=headers(users.judge))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "Signed"
    assert data["signed_by"] == users.judge.id
    assert data["signed_at"] is not None

    recipients = {n.user_id for n in db.query(Notification).filter_by(type="order_signed")}
    assert recipients == {users.clerk.id, users.lawyer.id}
    assert db.query(AuditRecord).filter_by(action="sign", resource="order", resource_id=draft.id).count() == 1


def test_signature_is_never_overwritten(client, db, users, headers, draft):
    order_service.sign_order(db, users.judge, draft.id)
    db.expire_all()
    first = db.get(Order, draft.id)
    signed_at, signed_by = first.signed_at, first.signed_by

    resp = client.patch(f"/api/v1/orders/{draft.id}/sign", headers=headers(users.admin))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_SIGNED"

    db.expire_all()
    again = db.get(Order, draft.id)
    assert again.status == OrderStatus.signed
    assert (again.signed_at, again.signed_by) == (signed_at, signed_by)
    assert isinstance(signed_at, datetime)


def test_sign_check_order(db, users, draft):
    with pytest.raises(NotFoundError):
        order_service.sign_order(db, users.judge, 9999)
    with pytest.raises(ForbiddenError):
        order_service.sign_order(db, users.judge2, draft.id)
    with pytest.raises(ForbiddenError):
        order_service.sign_order(db, users.clerk, draft.id)

    order_service.sign_order(db, users.judge, draft.id)
    # Already signed wins over the assignment check.
    with pytest.raises(AlreadySignedError):
        order_service.sign_order(db, users.judge2, draft.id)


def test_order_reads_are_scoped(client, users, headers, draft):
    assert client.get("/api/v1/orders/drafts/count", headers=headers(users.judge)).json()["data"]["count"] == 1
    assert client.get("/api/v1/orders/drafts/count", headers=headers(users.registrar)).json()["data"]["count"] == 0
    assert client.get(f"/api/v1/orders/{draft.id}", headers=headers(users.lawyer)).status_code == 200
    assert client.get(f"/api/v1/orders/{draft.id}", headers=headers(users.lawyer2)).status_code == 404
