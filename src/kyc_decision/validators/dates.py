from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

from kyc_decision.errors import make_error
from kyc_decision.fields import IdField
from kyc_decision.models import Severity, ValidationResult

ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")

DEFAULT_MIN_AGE = 18
DEFAULT_MAX_AGE = 120
DEFAULT_EXPIRY_WARNING_DAYS = 30

_DOB = IdField.DATE_OF_BIRTH.value
_EXPIRY = IdField.EXPIRY_DATE.value


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD (or pass a date through); None when not a real date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not ISO_DATE_PATTERN.fullmatch(text):
        return None
    year, month, day = (int(p) for p in text.split("-"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def compute_age(dob: date, today: date) -> int:
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def validate_age(
    dob_value: Any,
    min_age: int = DEFAULT_MIN_AGE,
    max_age: int = DEFAULT_MAX_AGE,
    *,
    today: Optional[date] = None,
) -> ValidationResult:
    if is_blank(dob_value):
        return ValidationResult(errors=(make_error("MISSING_DOB", _DOB),))

    dob = parse_iso_date(dob_value)
    if dob is None:
        return ValidationResult(errors=(make_error("INVALID_DOB_FORMAT", _DOB),))

    age = compute_age(dob, today or date.today())
    if age < min_age or age > max_age:
        return ValidationResult(errors=(make_error(
            "INVALID_AGE",
            _DOB,
            message=f"Age {age} is outside the allowed range of {min_age}-{max_age}.",
        ),))
    return ValidationResult()


def validate_expiry(
    expiry_value: Any,
    warning_days: int = DEFAULT_EXPIRY_WARNING_DAYS,
    *,
    today: Optional[date] = None,
) -> ValidationResult:
    """
    Expired when the expiry date is today or earlier (critical). A document
    expiring within ``warning_days`` days yields a single warning instead.
    """
    if is_blank(expiry_value):
        return ValidationResult(errors=(make_error("MISSING_EXPIRY_DATE", _EXPIRY),))

    expiry = parse_iso_date(expiry_value)
    if expiry is None:
        return ValidationResult(errors=(make_error("INVALID_EXPIRY_FORMAT", _EXPIRY),))

    days_left = (expiry - (today or date.today())).days
    if days_left <= 0:
        return ValidationResult(errors=(make_error("EXPIRED_DOCUMENT", _EXPIRY),))
    if days_left <= warning_days:
        return ValidationResult(errors=(make_error(
            "EXPIRY_WARNING",
            _EXPIRY,
            message=f"Document will expire in {days_left} days.",
            severity=Severity.WARNING,
        ),))
    return ValidationResult()
