import pytest

from courtdesk.db.models import Notification


@pytest.fixture
def inbox(db, users, assigned_case):
    """The assigned judge has one case_assigned notification"""
    return db.query(Notification).filter_by(user_id=users.judge.id).one()


def test_list_includes_case_number_and_unread_count(client, users, headers, assigned_case, inbox):
    body = client.get("/api/v1/notifications", headers=headers(users.judge)).json()
    assert body["unread_count"] == 1
    assert body["data"][0]["case_number"] == assigned_case.case_number
    assert body["data"][0]["is_read"] is False


def test_read_unread_toggle(client, users, headers, inbox):
    resp = client.patch(f"/api/v1/notifications/{inbox.id}/read", headers=headers(users.judge))
    assert resp.json()["data"]["is_read"] is True
    count = client.get("/api/v1/notifications/unread-count", headers=headers(users.judge)).json()
    assert count["data"]["count"] == 0

    resp = client.patch(f"/api/v1/notifications/{inbox.id}/unread", headers=headers(users.judge))
    assert resp.json()["data"]["is_read"] is False

    resp = client.patch(
        f"/api/v1/notifications/{inbox.id}/read", json={"is_read": False}, headers=headers(users.judge),
    )
    assert resp.json()["data"]["is_read"] is False


def test_other_users_notifications_are_not_found(client, users, headers, inbox):
    resp = client.patch(f"/api/v1/notifications/{inbox.id}/read", headers=headers(users.judge2))
    assert resp.status_code == 404
    resp = client.delete(f"/api/v1/notifications/{inbox.id}", headers=headers(users.admin))
    assert resp.status_code == 404


def test_mark_all_and_related_read(client, db, users, headers, assigned_case, inbox):
    resp = client.patch(
        f"/api/v1/notifications/related/case/{assigned_case.id}/read", headers=headers(users.judge),
    )
    assert resp.json()["data"]["updated"] == 1

    client.patch(f"/api/v1/notifications/{inbox.id}/unread", headers=headers(users.judge))
    resp = client.patch("/api/v1/notifications/read-all", headers=headers(users.judge))
    assert resp.json()["data"]["updated"] == 1


def test_delete_own_notification(client, db, users, headers, inbox):
    resp = client.delete(f"/api/v1/notifications/{inbox.id}", headers=headers(users.judge))
    assert resp.status_code == 200
    db.expire_all()
    assert db.get(Notification, inbox.id) is None


def test_unread_only_filter(client, users, headers, inbox):
    client.patch(f"/api/v1/notifications/{inbox.id}/read", headers=headers(users.judge))
    body = client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=headers(users.judge),
    ).json()
    assert body["data"] == []
    assert body["pagination"]["total"] == 0
