import pytest

from courtdesk.core.config import settings
from courtdesk.db.models import (
    Case,
    CaseStatus,
    Notification,
    OutboxEvent,
    OutboxKind,
    OutboxStatus,
    TimelineEvent,
)
from courtdesk.services import case_service, fanout_service
from courtdesk.services.fanout_service import drain_pending, outbox_stats, requeue_failed
from courtdesk.utils.exceptions import AlreadyApprovedError


def _broken_notifier(db, payload):
    raise RuntimeError("notification store unavailable")


def _notification_events(db):
    return db.query(OutboxEvent).filter(OutboxEvent.kind == OutboxKind.notification).all()


def test_every_transition_event_is_delivered_inline(db, users, assigned_case):
    stats = outbox_stats(db)
    assert stats["pending"] == 0
    assert stats["failed"] == 0
    assert stats["delivered"] > 0


def test_failed_notification_does_not_undo_the_transition(client, db, users, headers, pending_case, monkeypatch):
    monkeypatch.setitem(fanout_service.HANDLERS, OutboxKind.notification, _broken_notifier)

    resp = client.post(f"/api/v1/cases/{pending_case.id}/approve", headers=headers(users.registrar))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Filed"

    db.expire_all()
    assert db.get(Case, pending_case.id).status == CaseStatus.filed
    # Timeline and audit still went out.
    assert db.query(TimelineEvent).filter_by(case_id=pending_case.id, title="Case Approved").count() == 1
    assert db.query(Notification).count() == 0

    [event] = _notification_events(db)
    assert event.status == OutboxStatus.pending
    assert event.attempts == 1
    assert "notification store unavailable" in event.last_error


def test_pending_events_are_retried_by_the_drain(db, users, pending_case, monkeypatch):
    monkeypatch.setitem(fanout_service.HANDLERS, OutboxKind.notification, _broken_notifier)
    case_service.approve_case(db, users.registrar, pending_case.id)
    monkeypatch.undo()

    stats = drain_pending(db)
    assert stats == {"delivered": 1, "failed": 0}

    [event] = _notification_events(db)
    assert event.status == OutboxStatus.delivered
    assert event.attempts == 2
    assert event.last_error is None
    assert db.query(Notification).filter_by(user_id=users.lawyer.id, type="case_approved").count() == 1


def test_event_gives_up_after_max_attempts(db, users, pending_case, monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_MAX_ATTEMPTS", 2)
    monkeypatch.setitem(fanout_service.HANDLERS, OutboxKind.notification, _broken_notifier)

    case_service.approve_case(db, users.registrar, pending_case.id)
    assert drain_pending(db) == {"delivered": 0, "failed": 1}

    [event] = _notification_events(db)
    assert event.status == OutboxStatus.failed
    assert event.attempts == 2
    assert event.processed_at is not None

    # Dead events are left alone until requeued.
    assert drain_pending(db) == {"delivered": 0, "failed": 0}

    monkeypatch.setitem(fanout_service.HANDLERS, OutboxKind.notification, fanout_service.deliver_notification)
    assert requeue_failed(db) == 1
    assert drain_pending(db) == {"delivered": 1, "failed": 0}


def test_without_inline_dispatch_events_wait_for_the_worker(db, users, pending_case, monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_INLINE_DISPATCH", False)

    case_service.approve_case(db, users.registrar, pending_case.id)
    assert db.query(TimelineEvent).filter_by(case_id=pending_case.id, title="Case Approved").count() == 0

    pending = outbox_stats(db)["pending"]
    assert pending == 3

    stats = drain_pending(db, limit=2)
    assert stats["delivered"] == 2
    drain_pending(db)
    assert outbox_stats(db)["pending"] == 0
    assert db.query(TimelineEvent).filter_by(case_id=pending_case.id, title="Case Approved").count() == 1


def test_no_side_effects_for_a_rejected_transition(db, users, filed_case):
    before = db.query(OutboxEvent).count()
    with pytest.raises(AlreadyApprovedError):
        case_service.approve_case(db, users.registrar, filed_case.id)
    assert db.query(OutboxEvent).count() == before


def test_timeline_for_deleted_case_is_dropped(db, users, assigned_case, monkeypatch):
    monkeypatch.setattr(settings, "OUTBOX_INLINE_DISPATCH", False)
    case_service.update_case(db, users.judge, assigned_case.id, {"status": "In Progress"})
    case_service.delete_case(db, users.admin, assigned_case.id)

    drain_pending(db)
    assert outbox_stats(db)["pending"] == 0
    assert db.query(TimelineEvent).count() == 0
