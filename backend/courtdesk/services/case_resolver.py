"""
Case reference resolution.

A case reference is either the numeric primary key or the human case number
(``KDH/2026/001``), raw or percent-encoded. Numeric ids are tried first, then
case numbers. Every pipeline resolves cases through here.
"""
from __future__ import annotations

import re
from typing import Optional, Union
from urllib.parse import unquote

from sqlalchemy.orm import Session

from courtdesk.db.models import Case
from courtdesk.utils.exceptions import (
    CaseNotFoundError,
    ValidationFailedError,
    VersionConflictError,
)

CaseRef = Union[int, str]

_NUMERIC_RE = re.compile(r"^\d+$")


def normalize_case_ref(ref: CaseRef) -> str:
    if isinstance(ref, int):
        return str(ref)
    value = (ref or "").strip()
    # A reference that was encoded twice on its way in still resolves.
    for _ in range(2):
        decoded = unquote(value)
        if decoded == value:
            break
        value = decoded
    return value.strip()


def resolve_case(db: Session, ref: CaseRef, for_update: bool = False) -> Optional[Case]:
    """Return the referenced case or None."""
    value = normalize_case_ref(ref)
    if not value:
        return None

    def _query():
        query = db.query(Case)
        if for_update:
            query = query.with_for_update()
        return query

    if _NUMERIC_RE.match(value):
        case = _query().filter(Case.id == int(value)).first()
        if case is not None:
            return case

    return _query().filter(Case.case_number == value).first()


def get_case_or_404(db: Session, ref: CaseRef, for_update: bool = False) -> Case:
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        raise ValidationFailedError("Case ID is required")
    case = resolve_case(db, ref, for_update=for_update)
    if case is None:
        raise CaseNotFoundError(normalize_case_ref(ref))
    return case


def check_version(entity, expected_version: Optional[int]) -> None:
    """CONFLICT when the caller saw a different version of ``entity``."""
    if expected_version is None:
        return
    if entity.version != expected_version:
        raise VersionConflictError(
            f"Expected version {expected_version}, found {entity.version}"
        )
