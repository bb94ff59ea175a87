from __future__ import annotations

from typing import Optional, Tuple

from kyc_decision.errors import make_error
from kyc_decision.models import Severity, ValidationResult
from kyc_decision.rules import ThresholdRule

# Misses by at least this (times the score scale) are critical, smaller ones go to review
CRITICAL_MARGIN = 0.2
# Band edges are compared at this many decimals so 0.5 - 0.2 lands on 0.3
EDGE_DECIMALS = 9


def _describe(score: float, threshold: float, scale: float) -> Tuple[str, str]:
    if scale == 1:
        return f"{score * 100:.1f}%", f"{threshold * 100:.1f}%"
    return f"{score:g}", f"{threshold:g}"


def validate_threshold(
    score: float,
    threshold: float,
    *,
    field: Optional[str] = None,
    comparison: str = "gte",
    scale: float = 1.0,
    error_code: str = "LOW_CONFIDENCE",
) -> ValidationResult:
    """
    Compare one score against a threshold.

    gte: fails when score < threshold; critical when score <= threshold - margin.
    lte: fails when score > threshold; critical when score >= threshold + margin.
    margin = CRITICAL_MARGIN * scale (scale is 100 for percentage scores).
    """
    margin = CRITICAL_MARGIN * scale
    rounded = round(score, EDGE_DECIMALS)
    if comparison == "gte":
        failed = score < threshold
        critical = rounded <= round(threshold - margin, EDGE_DECIMALS)
        relation = "below"
    elif comparison == "lte":
        failed = score > threshold
        critical = rounded >= round(threshold + margin, EDGE_DECIMALS)
        relation = "above"
    else:
        raise ValueError(f"Unknown comparison '{comparison}'")

    if not failed:
        return ValidationResult()

    shown_score, shown_threshold = _describe(score, threshold, scale)
    subject = f"for {field} " if field else ""
    return ValidationResult(errors=(make_error(
        error_code,
        field,
        message=f"Score {subject}({shown_score}) is {relation} threshold ({shown_threshold}).",
        severity=Severity.CRITICAL if critical else Severity.WARNING,
    ),))


def validate_threshold_rule(score: float, rule: ThresholdRule, threshold: Optional[float] = None) -> ValidationResult:
    """Apply a catalog ThresholdRule, optionally with a configured threshold override."""
    return validate_threshold(
        score,
        rule.threshold if threshold is None else threshold,
        field=rule.field_name.value,
        comparison=rule.comparison,
        scale=rule.scale,
        error_code=rule.error_code,
    )
