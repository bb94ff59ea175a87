# test/test_threshold.py
"""Threshold validator: pass / warning / critical bands."""

import pytest

from kyc_decision.fields import SelfieField
from kyc_decision.models import Severity
from kyc_decision.rules import ThresholdRule
from kyc_decision.validators.threshold import validate_threshold, validate_threshold_rule


def test_score_equal_to_threshold_passes():
    assert validate_threshold(0.85, 0.85, field="dateOfBirth").errors == ()


def test_small_miss_is_warning():
    result = validate_threshold(0.84, 0.85, field="dateOfBirth")
    assert result.codes == ["LOW_CONFIDENCE"]
    assert result.errors[0].severity is Severity.WARNING
    assert result.errors[0].field == "dateOfBirth"
    assert result.is_valid is True


def test_miss_beyond_margin_is_critical():
    result = validate_threshold(0.60, 0.85, field="identityNumber")
    assert result.errors[0].severity is Severity.CRITICAL
    assert result.is_valid is False


def test_lte_mirrors_gte():
    assert validate_threshold(0.30, 0.35, comparison="lte").errors == ()
    warn = validate_threshold(0.40, 0.35, comparison="lte")
    assert warn.errors[0].severity is Severity.WARNING
    crit = validate_threshold(0.60, 0.35, comparison="lte")
    assert crit.errors[0].severity is Severity.CRITICAL


def test_percentage_scale_uses_scaled_margin():
    # margin = 0.2 * 100 = 20 points
    assert validate_threshold(65, 80, scale=100).errors[0].severity is Severity.WARNING
    assert validate_threshold(59, 80, scale=100).errors[0].severity is Severity.CRITICAL


@pytest.mark.parametrize("score, threshold, scale", [
    (0.3, 0.5, 1.0),
    (0.6, 0.8, 1.0),
    (0.65, 0.85, 1.0),
    (60, 80, 100),
])
def test_miss_of_exactly_the_margin_is_critical(score, threshold, scale):
    result = validate_threshold(score, threshold, scale=scale)
    assert result.errors[0].severity is Severity.CRITICAL


def test_miss_just_inside_the_margin_is_warning():
    assert validate_threshold(0.3001, 0.5).errors[0].severity is Severity.WARNING
    assert validate_threshold(60.01, 80, scale=100).errors[0].severity is Severity.WARNING


def test_lte_band_edge_is_critical():
    assert validate_threshold(0.55, 0.35, comparison="lte").errors[0].severity is Severity.CRITICAL
    assert validate_threshold(0.5499, 0.35, comparison="lte").errors[0].severity is Severity.WARNING


def test_custom_error_code_and_message():
    result = validate_threshold(0.5, 0.6, field="imageQuality", error_code="BLURRY_IMAGE")
    err = result.errors[0]
    assert err.code == "BLURRY_IMAGE"
    assert "50.0%" in err.message and "60.0%" in err.message


def test_unknown_comparison_raises():
    with pytest.raises(ValueError):
        validate_threshold(0.5, 0.6, comparison="eq")


def test_rule_with_override_threshold():
    rule = ThresholdRule(field_name=SelfieField.MATCH_CONFIDENCE, threshold=80, scale=100,
                         error_code="LOW_MATCH_CONFIDENCE")
    assert validate_threshold_rule(85, rule).errors == ()
    result = validate_threshold_rule(85, rule, threshold=90)
    assert result.codes == ["LOW_MATCH_CONFIDENCE"]
    assert result.errors[0].field == "matchConfidence"
