from datetime import date

import pytest

from courtdesk.db.models import (
    AuditRecord,
    Case,
    CaseStatus,
    CaseType,
    Motion,
    Notification,
    TimelineEvent,
    TimelineEventType,
)
from courtdesk.services import case_service, motion_service
from courtdesk.utils.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    ValidationFailedError,
)


def _timeline_titles(db, case_id):
    return [
        e.title for e in
        db.query(TimelineEvent).filter(TimelineEvent.case_id == case_id).order_by(TimelineEvent.id).all()
    ]


# ============================================================================
# create_case
# ============================================================================

def test_lawyer_filing_waits_for_approval(client, db, users, headers):
    resp = client.post(
        "/api/v1/cases",
        json={
            "title": "Thomas v. Transport Corp",
            "type": "Civil",
            "parties": [{"role": "Plaintiff", "name": "Joseph Thomas", "lawyer_id": users.lawyer.id}],
        },
        headers=headers(users.lawyer),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["status"] == "Pending Approval"
    assert body["data"]["case_number"] == f"KDH/{date.today().year}/001"

    case = db.get(Case, body["data"]["id"])
    assert case.judge_id is None
    assert case.priority.value == "Medium"
    assert [p.name for p in case.parties] == ["Joseph Thomas"]
    assert _timeline_titles(db, case.id) == ["Case Filed"]
    assert db.query(AuditRecord).filter_by(action="create", resource="case", resource_id=case.id).count() == 1


def test_judge_filing_is_self_approved(db, users):
    case = case_service.create_case(db, users.judge, "In re Mathew", CaseType.family)
    assert case.status == CaseStatus.filed
    assert case.judge_id == users.judge.id
    assert case.court == "High Court 1"


def test_case_numbers_follow_the_yearly_sequence(db, users):
    first = case_service.create_case(db, users.registrar, "One", CaseType.civil)
    second = case_service.create_case(db, users.registrar, "Two", CaseType.civil)
    year = date.today().year
    assert first.case_number == f"KDH/{year}/001"
    assert second.case_number == f"KDH/{year}/002"

    case_service.delete_case(db, users.admin, second.id)
    third = case_service.create_case(db, users.registrar, "Three", CaseType.civil)
    assert third.case_number == f"KDH/{year}/002"


def test_create_requires_title_and_type(client, users, headers):
    resp = client.post("/api/v1/cases", json={"type": "Civil"}, headers=headers(users.judge))
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["message"].startswith("title")

    with pytest.raises(ValidationFailedError):
        case_service.create_case(None, users.judge, "  ", CaseType.civil)


def test_clerk_cannot_file(client, users, headers):
    resp = client.post(
        "/api/v1/cases", json={"title": "X", "type": "Civil"}, headers=headers(users.clerk),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


# ============================================================================
# approve_case
# ============================================================================

def test_approve_moves_pending_to_filed_and_notifies_creator(client, db, users, headers, pending_case):
    resp = client.post(f"/api/v1/cases/{pending_case.id}/approve", headers=headers(users.registrar))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Filed"

    assert "Case Approved" in _timeline_titles(db, pending_case.id)
    note = db.query(Notification).filter_by(user_id=users.lawyer.id, type="case_approved").one()
    assert pending_case.case_number in note.message


@pytest.mark.parametrize("status", [CaseStatus.filed, CaseStatus.assigned, CaseStatus.in_progress])
def test_approve_after_pending_is_already_approved(client, db, users, headers, pending_case, status):
    pending_case.status = status
    db.commit()
    timeline_before = _timeline_titles(db, pending_case.id)

    resp = client.post(f"/api/v1/cases/{pending_case.id}/approve", headers=headers(users.registrar))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_APPROVED"

    db.expire_all()
    assert db.get(Case, pending_case.id).status == status
    assert _timeline_titles(db, pending_case.id) == timeline_before


def test_lawyer_cannot_approve(db, users, pending_case):
    with pytest.raises(ForbiddenError):
        case_service.approve_case(db, users.lawyer, pending_case.id)


# ============================================================================
# assign_court
# ============================================================================

def test_assign_court_sets_judge_and_notifies(client, db, users, headers, filed_case):
    resp = client.post(
        f"/api/v1/cases/{filed_case.id}/assign-court",
        json={"court": "High Court 1", "judge_id": users.judge.id},
        headers=headers(users.registrar),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "Assigned"
    assert data["court"] == "High Court 1"
    assert data["judge_id"] == users.judge.id

    note = db.query(Notification).filter_by(user_id=users.judge.id, type="case_assigned").one()
    assert note.message.startswith(f"You have been assigned to case {filed_case.case_number}")


def test_assign_court_needs_court_and_judge_together(db, users, filed_case):
    with pytest.raises(ValidationFailedError):
        case_service.assign_court(db, users.registrar, filed_case.id, "High Court 1", None)
    with pytest.raises(ValidationFailedError):
        case_service.assign_court(db, users.registrar, filed_case.id, "", users.judge.id)
    with pytest.raises(ValidationFailedError):
        case_service.assign_court(db, users.registrar, filed_case.id, "High Court 1", users.lawyer.id)


def test_assign_court_before_approval_is_invalid(db, users, pending_case):
    with pytest.raises(InvalidTransitionError):
        case_service.assign_court(db, users.registrar, pending_case.id, "High Court 1", users.judge.id)


def test_reassign_court(db, users, assigned_case):
    case = case_service.assign_court(db, users.registrar, assigned_case.id, "High Court 2", users.judge2.id)
    assert case.status == CaseStatus.assigned
    assert case.judge_id == users.judge2.id


# ============================================================================
# update_case
# ============================================================================

def test_status_override(client, db, users, headers, assigned_case):
    resp = client.patch(
        f"/api/v1/cases/{assigned_case.id}",
        json={"status": "In Progress"},
        headers=headers(users.judge),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "In Progress"
    event = (
        db.query(TimelineEvent)
        .filter_by(case_id=assigned_case.id, event_type=TimelineEventType.status)
        .one()
    )
    assert "Assigned to In Progress" in event.description


@pytest.mark.parametrize("target", ["Filed", "Assigned", "Pending Approval", "Sleeping"])
def test_override_cannot_reach_entry_states(client, users, headers, assigned_case, target):
    resp = client.patch(
        f"/api/v1/cases/{assigned_case.id}",
        json={"status": target},
        headers=headers(users.admin),
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_clerk_may_only_move_the_hearing(client, db, users, headers, assigned_case):
    resp = client.patch(
        f"/api/v1/cases/{assigned_case.id}",
        json={"title": "Renamed"},
        headers=headers(users.clerk),
    )
    assert resp.status_code == 403

    resp = client.patch(
        f"/api/v1/cases/{assigned_case.id}",
        json={"next_hearing": "2030-01-15"},
        headers=headers(users.clerk),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["next_hearing"] == "2030-01-15"
    assert "Hearing Scheduled" in _timeline_titles(db, assigned_case.id)
    assert db.query(AuditRecord).filter_by(action="schedule_hearing", resource_id=assigned_case.id).count() == 1


def test_update_records_changes_in_audit(db, users, assigned_case):
    case_service.update_case(db, users.registrar, assigned_case.id, {"title": "State v. Kumar", "priority": "High"})
    record = db.query(AuditRecord).filter_by(action="update", resource_id=assigned_case.id).one()
    assert record.details["changes"]["priority"] == {"from": "Medium", "to": "High"}


def test_stale_expected_version_is_conflict(client, users, headers, assigned_case):
    resp = client.patch(
        f"/api/v1/cases/{assigned_case.id}",
        json={"status": "In Progress", "expected_version": assigned_case.version - 1},
        headers=headers(users.judge),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


# ============================================================================
# delete_case
# ============================================================================

def test_delete_cascades_children_but_keeps_audit_and_inbox(client, db, users, headers, assigned_case):
    assigned_case.lawyer_id = users.lawyer.id
    db.commit()
    motion_service.file_motion(db, users.lawyer, assigned_case.id, "Adjournment")
    case_id = assigned_case.id

    resp = client.delete(f"/api/v1/cases/{case_id}", headers=headers(users.court_admin))
    assert resp.status_code == 200

    db.expire_all()
    assert db.get(Case, case_id) is None
    assert db.query(TimelineEvent).filter_by(case_id=case_id).count() == 0
    assert db.query(Motion).filter_by(case_id=case_id).count() == 0
    assert db.query(AuditRecord).filter_by(action="delete", resource_id=case_id).count() == 1
    assert db.query(Notification).filter_by(user_id=users.judge.id).count() >= 1


def test_registrar_cannot_delete(client, users, headers, pending_case):
    resp = client.delete(f"/api/v1/cases/{pending_case.id}", headers=headers(users.registrar))
    assert resp.status_code == 403


# ============================================================================
# Reads
# ============================================================================

def test_get_case_by_id_number_and_encoded_number(client, users, headers, assigned_case):
    number = assigned_case.case_number
    by_id = client.get(f"/api/v1/cases/{assigned_case.id}", headers=headers(users.admin)).json()
    by_number = client.get(f"/api/v1/cases/{number}", headers=headers(users.admin)).json()
    encoded = number.replace("/", "%2F")
    by_encoded = client.get(f"/api/v1/cases/{encoded}", headers=headers(users.admin)).json()

    assert by_id["data"] == by_number["data"] == by_encoded["data"]
    assert [e["title"] for e in by_id["data"]["timeline"]][0] == "Court Assigned"


def test_transition_by_case_number_path(client, users, headers, pending_case):
    resp = client.post(
        f"/api/v1/cases/{pending_case.case_number}/approve",
        headers=headers(users.registrar),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["case_number"] == pending_case.case_number


def test_unknown_case_is_not_found(client, users, headers):
    resp = client.get("/api/v1/cases/KDH/1999/999", headers=headers(users.admin))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_list_cases_is_role_scoped(client, db, users, headers, assigned_case):
    case_service.create_case(db, users.judge2, "Other bench", CaseType.appeal)

    mine = client.get("/api/v1/cases", headers=headers(users.judge)).json()
    assert [c["id"] for c in mine["data"]] == [assigned_case.id]

    everything = client.get("/api/v1/cases", headers=headers(users.registrar)).json()
    assert everything["pagination"]["total"] == 2

    lawyer_view = client.get("/api/v1/cases", headers=headers(users.lawyer2)).json()
    assert lawyer_view["data"] == []


def test_list_unassigned_marks_requested_cases(client, users, headers, assigned_case):
    client.post(f"/api/v1/cases/{assigned_case.id}/request-assignment", headers=headers(users.lawyer))
    resp = client.get("/api/v1/cases/unassigned", headers=headers(users.lawyer)).json()
    assert [c["id"] for c in resp["data"]] == [assigned_case.id]
    assert resp["requested_case_ids"] == [assigned_case.id]


def test_attach_document(client, db, users, headers, assigned_case):
    resp = client.post(
        f"/api/v1/cases/{assigned_case.id}/documents",
        json={"name": "Charge sheet", "storage_url": "s3://courtdesk/docs/1.pdf"},
        headers=headers(users.clerk),
    )
    assert resp.status_code == 201
    assert "Document Uploaded" in _timeline_titles(db, assigned_case.id)

    resp = client.post(
        f"/api/v1/cases/{assigned_case.id}/documents",
        json={"name": "Brief", "storage_url": "s3://courtdesk/docs/2.pdf"},
        headers=headers(users.lawyer),
    )
    assert resp.status_code == 403
