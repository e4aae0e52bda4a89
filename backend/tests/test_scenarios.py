"""
End-to-end walks through the HTTP API, one role per step.
"""
from courtdesk.db.models import TimelineEvent, TimelineEventType


def test_filing_to_motion_disposition(client, db, users, headers):
    created = client.post(
        "/api/v1/cases",
        json={"title": "Varghese v. Municipality", "type": "Civil"},
        headers=headers(users.lawyer),
    ).json()["data"]
    assert created["status"] == "Pending Approval"
    number = created["case_number"]

    approved = client.post(f"/api/v1/cases/{number}/approve", headers=headers(users.registrar)).json()
    assert approved["data"]["status"] == "Filed"

    assigned = client.post(
        f"/api/v1/cases/{number}/assign-court",
        json={"court": "High Court 1", "judge_id": users.judge.id},
        headers=headers(users.registrar),
    ).json()
    assert assigned["data"]["status"] == "Assigned"

    lawyer_on = client.post(
        f"/api/v1/cases/{number}/assign-lawyer",
        json={"lawyer_id": users.lawyer.id},
        headers=headers(users.registrar),
    ).json()
    assert lawyer_on["data"]["lawyer_id"] == users.lawyer.id

    motion = client.post(
        "/api/v1/motions",
        json={"case_id": number, "title": "Extension"},
        headers=headers(users.lawyer),
    ).json()["data"]
    assert motion["status"] == "Pending"

    reviewed = client.patch(
        f"/api/v1/motions/{motion['id']}/review",
        json={"status": "Approved"},
        headers=headers(users.judge),
    ).json()["data"]
    assert reviewed["status"] == "Approved"

    motion_events = db.query(TimelineEvent).filter_by(
        case_id=created["id"], event_type=TimelineEventType.motion,
    ).count()
    assert motion_events == 2

    timeline = client.get(f"/api/v1/cases/{created['id']}/timeline", headers=headers(users.judge)).json()
    assert timeline["data"][0]["title"] == "Motion Approved"


def test_order_draft_and_signature(client, users, headers, assigned_case):
    order = client.post(
        "/api/v1/orders",
        json={"case_id": assigned_case.id, "title": "Show Cause"},
        headers=headers(users.clerk),
    ).json()["data"]
    assert order["status"] == "Draft"

    signed = client.patch(f"/api/v1/orders/{order['id']}/sign", headers=headers(users.judge)).json()["data"]
    assert signed["status"] == "Signed"
    assert signed["signed_by"] == users.judge.id

    again = client.patch(f"/api/v1/orders/{order['id']}/sign", headers=headers(users.judge))
    assert again.status_code == 409
    assert again.json() == {
        "success": False,
        "error": {"code": "ALREADY_SIGNED", "message": f"Order {order['id']} is already signed"},
    }


def test_health(client):
    assert client.get("/api/v1/health").json()["status"] == "ok"
    ready = client.get("/api/v1/health/ready").json()
    assert ready["status"] == "ok"
    assert set(ready["outbox"]) == {"pending", "delivered", "failed"}
