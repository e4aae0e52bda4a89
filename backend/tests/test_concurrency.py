import pytest

from courtdesk.db.models import Case, Motion, MotionStatus, TimelineEvent
from courtdesk.services import assignment_service, case_service, motion_service
from courtdesk.utils.exceptions import VersionConflictError


def test_second_writer_on_a_stale_case_gets_conflict(db, session_factory, users, pending_case):
    other = session_factory()
    try:
        registrar = other.get(type(users.registrar), users.registrar.id)
        stale = other.get(Case, pending_case.id)
        assert stale.version == 1

        case_service.approve_case(db, users.registrar, pending_case.id)

        with pytest.raises(VersionConflictError):
            case_service.update_case(other, registrar, pending_case.id, {"title": "Renamed"})
    finally:
        other.close()

    db.expire_all()
    case = db.get(Case, pending_case.id)
    assert case.title == "Thomas v. Transport Corp"
    approvals = db.query(TimelineEvent).filter_by(case_id=case.id, title="Case Approved").count()
    assert approvals == 1


def test_versions_advance_on_every_write(db, users, pending_case):
    assert pending_case.version == 1
    case = case_service.approve_case(db, users.registrar, pending_case.id)
    assert case.version == 2
    case = case_service.assign_court(db, users.registrar, case.id, "High Court 1", users.judge.id, expected_version=2)
    assert case.version == 3

    with pytest.raises(VersionConflictError):
        case_service.update_case(db, users.judge, case.id, {"status": "Review"}, expected_version=2)


def test_concurrent_motion_reviews_settle_once(db, session_factory, users, assigned_case):
    assignment_service.assign_lawyer(db, users.registrar, assigned_case.id, users.lawyer.id)
    motion = motion_service.file_motion(db, users.lawyer, assigned_case.id, "Stay")

    other = session_factory()
    try:
        judge = other.get(type(users.judge), users.judge.id)
        stale = other.get(Motion, motion.id)
        assert stale.status == MotionStatus.pending

        motion_service.review_motion(db, users.judge, motion.id, "Approved")
        with pytest.raises(VersionConflictError):
            motion_service.review_motion(other, judge, motion.id, "Rejected")
    finally:
        other.close()

    db.expire_all()
    assert db.get(Motion, motion.id).status == MotionStatus.approved
