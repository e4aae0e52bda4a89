import pytest

from courtdesk.db.models import Case, CaseStatus, CaseType
from courtdesk.services.case_resolver import get_case_or_404, normalize_case_ref, resolve_case
from courtdesk.utils.exceptions import CaseNotFoundError, ValidationFailedError


@pytest.mark.parametrize(
    "ref, expected",
    [
        (7, "7"),
        (" 7 ", "7"),
        ("KDH/2026/001", "KDH/2026/001"),
        ("KDH%2F2026%2F001", "KDH/2026/001"),
        ("KDH%252F2026%252F001", "KDH/2026/001"),
        ("", ""),
    ],
)
def test_normalize_case_ref(ref, expected):
    assert normalize_case_ref(ref) == expected


def test_resolves_id_then_case_number(db, users, pending_case):
    assert resolve_case(db, pending_case.id).id == pending_case.id
    assert resolve_case(db, str(pending_case.id)).id == pending_case.id
    assert resolve_case(db, pending_case.case_number).id == pending_case.id
    assert resolve_case(db, pending_case.case_number.replace("/", "%2F")).id == pending_case.id


def test_numeric_case_number_falls_back(db, users):
    case = Case(
        case_number="12345",
        title="Legacy import",
        case_type=CaseType.civil,
        status=CaseStatus.filed,
        filed_date=users.judge.created_at.date(),
        created_by=users.judge.id,
    )
    db.add(case)
    db.commit()
    assert resolve_case(db, "12345").id == case.id


def test_missing_and_blank_refs(db, users):
    assert resolve_case(db, "KDH/1999/001") is None
    with pytest.raises(CaseNotFoundError) as exc:
        get_case_or_404(db, "KDH%2F1999%2F001")
    assert exc.value.message == "Case KDH/1999/001 not found"
    with pytest.raises(ValidationFailedError):
        get_case_or_404(db, "  ")
