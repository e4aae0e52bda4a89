"""
Custom validators
"""
import re
from datetime import date, datetime
from typing import Optional, Union

from courtdesk.utils.exceptions import ValidationFailedError

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_hearing_date(value: Union[str, date, None], field: str = "date") -> date:
    """
    Parse a calendar-valid YYYY-MM-DD date.
    2026-02-30 and 2026-2-3 are both rejected.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationFailedError(f"{field} is required")

    value = value.strip()
    if not _ISO_DATE_RE.match(value):
        raise ValidationFailedError(f"Invalid {field}. Expected format: YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationFailedError(f"Invalid {field}: {value} is not a calendar date")


def validate_hearing_time(value: Optional[str]) -> Optional[str]:
    """Validate HH:MM (24h)"""
    if value is None or value == "":
        return None
    if not _TIME_RE.match(value.strip()):
        raise ValidationFailedError("Invalid hearing_time. Expected format: HH:MM")
    return value.strip()


def require_text(value: Optional[str], field: str) -> str:
    """Non-blank string or VALIDATION_ERROR"""
    if value is None or not str(value).strip():
        raise ValidationFailedError(f"{field} is required")
    return str(value).strip()
