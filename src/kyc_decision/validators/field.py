# -*- coding: utf-8 -*-
"""
Field validator: one extracted value against one FieldRule.

Checks run in a fixed order and the first failure wins:
required -> length (exact, min, max) -> pattern -> expected value ->
allowed values -> numeric bounds -> specialized (checksum, date).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Any, Optional

from kyc_decision.fields import DateKind
from kyc_decision.rules import FieldRule
from kyc_decision.validators.checksum import validate_checksum
from kyc_decision.validators.dates import is_blank, parse_iso_date


@dataclass(frozen=True)
class FieldCheck:
    valid: bool
    error_code: Optional[str] = None


_OK = FieldCheck(True)


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _fail(rule: FieldRule) -> FieldCheck:
    return FieldCheck(False, rule.error_code)


def _check_length(text: str, rule: FieldRule) -> bool:
    if rule.exact_length is not None and len(text) != rule.exact_length:
        return False
    if rule.min_length is not None and len(text) < rule.min_length:
        return False
    if rule.max_length is not None and len(text) > rule.max_length:
        return False
    return True


def _matches_expected(value: Any, expected: Any) -> bool:
    if isinstance(expected, (int, float)) and not isinstance(expected, bool):
        number = _as_number(value)
        return number is not None and number == float(expected)
    return value == expected


def _check_bounds(value: Any, rule: FieldRule) -> bool:
    if rule.max_value is None and rule.min_value is None:
        return True
    number = _as_number(value)
    if number is None:
        return False
    if rule.max_value is not None and number > rule.max_value:
        return False
    if rule.min_value is not None and number < rule.min_value:
        return False
    return True


def _check_date(value: Any, rule: FieldRule, today: Optional[date]) -> FieldCheck:
    parsed = parse_iso_date(value)
    if parsed is None:
        return _fail(rule)
    if rule.date_kind is DateKind.BIRTH and parsed > (today or date.today()):
        return FieldCheck(False, "INVALID_DOB_LOGIC")
    return _OK


def validate_field(
    value: Any,
    rule: FieldRule,
    *,
    enforce_checksum: bool = True,
    today: Optional[date] = None,
) -> FieldCheck:
    if is_blank(value):
        return FieldCheck(False, rule.code_when_missing) if rule.required else _OK

    text = _as_text(value).strip()

    if not _check_length(text, rule):
        return _fail(rule)

    if rule.pattern and not _compiled(rule.pattern).fullmatch(text):
        return _fail(rule)

    if rule.expected_value is not None and not _matches_expected(value, rule.expected_value):
        return _fail(rule)

    if rule.allowed_values is not None and value not in rule.allowed_values:
        return _fail(rule)

    if not _check_bounds(value, rule):
        return _fail(rule)

    if rule.checksum_kind is not None and enforce_checksum:
        return _OK if validate_checksum(rule.checksum_kind, text) else _fail(rule)

    if rule.date_kind is not None:
        return _check_date(value, rule, today)

    return _OK
