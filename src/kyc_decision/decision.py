# -*- coding: utf-8 -*-
"""
Decision function: reduce a ValidationResult (plus face-match signals for
selfie checks) to exactly one of APPROVED | REJECTED | FAILED | PENDING.

Order of evaluation
-------------------
1. Any system error code            -> FAILED (never conflated with rejection)
2. Face match:
   - any critical or blocking code  -> REJECTED
   - is_match and confidence >= match_threshold -> APPROVED, else REJECTED
3. Document:
   - nothing but info-level notes   -> APPROVED
   - any critical or blocking code  -> REJECTED
   - warnings only                  -> PENDING (manual review)
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kyc_decision.errors import BLOCKING_ERROR_CODES, SYSTEM_ERROR_CODES, is_known_code
from kyc_decision.models import Decision, MatchSignals, Severity, ValidationResult

LOGGER = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 80.0


class DecisionPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    blocking_codes: FrozenSet[str] = BLOCKING_ERROR_CODES
    system_codes: FrozenSet[str] = SYSTEM_ERROR_CODES
    match_threshold: float = Field(DEFAULT_MATCH_THRESHOLD, ge=0, le=100)

    @field_validator("blocking_codes", "system_codes")
    @classmethod
    def _registered(cls, codes: FrozenSet[str]) -> FrozenSet[str]:
        unknown = sorted(c for c in codes if not is_known_code(c))
        if unknown:
            raise ValueError(f"unknown error codes: {', '.join(unknown)}")
        return codes


DEFAULT_POLICY = DecisionPolicy()


def _blocks(result: ValidationResult, policy: DecisionPolicy) -> bool:
    return any(e.is_critical or e.code in policy.blocking_codes
               for e in result.errors if e.severity > Severity.INFO)


def _face_match_decision(result: ValidationResult, match: MatchSignals, policy: DecisionPolicy) -> Decision:
    if _blocks(result, policy):
        return Decision.REJECTED
    if match.is_match and match.match_confidence >= policy.match_threshold:
        return Decision.APPROVED
    return Decision.REJECTED


def _document_decision(result: ValidationResult, policy: DecisionPolicy) -> Decision:
    highest = result.max_severity()
    if highest is None or highest <= Severity.INFO:
        return Decision.APPROVED
    if _blocks(result, policy):
        return Decision.REJECTED
    return Decision.PENDING


def decide(
    result: ValidationResult,
    match: Optional[MatchSignals] = None,
    policy: Optional[DecisionPolicy] = None,
) -> Decision:
    policy = policy or DEFAULT_POLICY

    if any(e.code in policy.system_codes for e in result.errors):
        decision = Decision.FAILED
    elif match is not None:
        decision = _face_match_decision(result, match, policy)
    else:
        decision = _document_decision(result, policy)

    LOGGER.debug("Decision %s from %d error(s): %s", decision.value, len(result.errors), result.codes)
    return decision
