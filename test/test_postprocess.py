# test/test_postprocess.py
"""ID card post-processing end to end (record + configuration -> result -> decision)."""

import copy
from datetime import timedelta

import pytest

from kyc_decision.configuration import create_default_configuration
from kyc_decision.decision import decide
from kyc_decision.models import Decision, ExtractionRecord, MrzData, Severity
from kyc_decision.postprocess import dedupe, validate_document
from kyc_decision.errors import make_error

from conftest import BROKEN_TC_NO, TODAY, turkish_confidence, turkish_record, turkish_values

TD1 = "I<TURA12B345671<<<<<<<<<<<<<<<\n0110195F2810196TUR<<<<<<<<<<<6\nAYSE<<YILMAZ<<<<<<<<<<<<<<<<<<"


def _run(record, config, today=TODAY):
    result = validate_document(record, config, today=today)
    return result, decide(result, policy=config.decision_policy())


# ----------------------------- headline scenarios -----------------------------

def test_valid_turkish_id_is_approved(tr_config, valid_tr_record):
    result, decision = _run(valid_tr_record, tr_config)
    assert result.errors == ()
    assert result.is_valid is True
    assert decision is Decision.APPROVED


def test_broken_checksum_yields_exactly_one_critical_error(tr_config):
    result, decision = _run(turkish_record(identityNumber=BROKEN_TC_NO), tr_config)
    assert len(result.errors) == 1
    err = result.errors[0]
    assert (err.code, err.field, err.severity) == ("INVALID_IDENTITY_NUMBER", "identityNumber", Severity.CRITICAL)
    assert decision is Decision.REJECTED


def test_same_input_same_output(tr_config):
    record = turkish_record(identityNumber=BROKEN_TC_NO, documentCondition="poor")
    first = validate_document(record, tr_config, today=TODAY)
    second = validate_document(record, tr_config, today=TODAY)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_input_record_is_not_mutated(tr_config):
    record = turkish_record(dateOfBirth=None)
    before = copy.deepcopy(record.model_dump())
    validate_document(record, tr_config, today=TODAY)
    assert record.model_dump() == before


# ----------------------------- country step -----------------------------------

def test_unsupported_country_continues_other_steps():
    config = create_default_configuration("XX")
    record = turkish_record(dateOfBirth=(TODAY - timedelta(days=365 * 10)).isoformat())
    result, decision = _run(record, config)
    assert "UNSUPPORTED_COUNTRY" in result.codes
    assert "INVALID_AGE" in result.codes
    assert "COUNTRY_MISMATCH" in result.codes
    assert result.codes[:2] == ["UNSUPPORTED_COUNTRY", "COUNTRY_MISMATCH"]
    assert result.errors[0].message == "Unsupported country: XX"
    assert decision is Decision.REJECTED


def test_country_mismatch_alone_goes_to_review(tr_config):
    result, decision = _run(turkish_record(countryCode="DE"), tr_config)
    assert result.codes == ["COUNTRY_MISMATCH"]
    assert decision is Decision.PENDING


def test_missing_dob_is_reported_once(tr_config):
    result, _ = _run(turkish_record(dateOfBirth=""), tr_config)
    assert result.codes.count("MISSING_DOB") == 1


# ----------------------------- age / expiry -----------------------------------

def test_underage_rejected_unless_check_disabled():
    minor = turkish_record(dateOfBirth="2012-01-01")
    on = create_default_configuration("TR")
    assert "INVALID_AGE" in _run(minor, on)[0].codes

    off = create_default_configuration("TR", overrides={"validationRules": {"enforceAgeCheck": False}})
    result, decision = _run(minor, off)
    assert result.errors == ()
    assert decision is Decision.APPROVED


def test_expiring_soon_goes_to_review(tr_config):
    record = turkish_record(expiryDate=(TODAY + timedelta(days=10)).isoformat())
    result, decision = _run(record, tr_config)
    assert result.codes == ["EXPIRY_WARNING"]
    assert decision is Decision.PENDING


def test_expired_document_is_rejected(tr_config):
    result, decision = _run(turkish_record(expiryDate=TODAY.isoformat()), tr_config)
    assert result.codes == ["EXPIRED_DOCUMENT"]
    assert decision is Decision.REJECTED


def test_expiry_check_can_be_disabled():
    config = create_default_configuration("TR", overrides={"validation_rules": {"enforce_expiry_check": False}})
    record = turkish_record(expiryDate=(TODAY - timedelta(days=3)).isoformat())
    assert validate_document(record, config, today=TODAY).errors == ()


# ----------------------------- confidence -------------------------------------

def test_slightly_low_confidence_is_warning(tr_config):
    scores = {**turkish_confidence(), "dateOfBirth": 0.80}
    record = ExtractionRecord(values=turkish_values(), confidence=scores)
    result, decision = _run(record, tr_config)
    assert [(e.code, e.field, e.severity) for e in result.errors] == [
        ("LOW_CONFIDENCE", "dateOfBirth", Severity.WARNING)]
    assert decision is Decision.PENDING


def test_very_low_confidence_is_critical(tr_config):
    scores = {**turkish_confidence(), "identityNumber": 0.50}
    result, decision = _run(ExtractionRecord(values=turkish_values(), confidence=scores), tr_config)
    assert result.errors[0].severity is Severity.CRITICAL
    assert decision is Decision.REJECTED


def test_blurry_image_uses_catalog_code_with_configured_threshold(tr_config):
    scores = {**turkish_confidence(), "imageQuality": 0.55}
    result, _ = _run(ExtractionRecord(values=turkish_values(), confidence=scores), tr_config)
    assert result.codes == ["BLURRY_IMAGE"]


def test_custom_threshold_overrides_defaults():
    config = create_default_configuration("TR", overrides={"customThresholds": {"gender": 0.995}})
    result, _ = _run(turkish_record(), config)
    assert [(e.code, e.field) for e in result.errors] == [("LOW_CONFIDENCE", "gender")]


def test_fields_without_scores_are_not_checked(tr_config):
    record = ExtractionRecord(values=turkish_values(), confidence={"firstName": 0.99})
    assert validate_document(record, tr_config, today=TODAY).errors == ()


# ----------------------------- condition / secondary signals ------------------

def test_poor_condition_warning_by_default(tr_config):
    result, decision = _run(turkish_record(documentCondition="Poor"), tr_config)
    assert result.codes == ["POOR_DOCUMENT_CONDITION"]
    assert result.errors[0].severity is Severity.WARNING
    assert decision is Decision.PENDING


def test_strict_preset_rejects_unacceptable_condition():
    config = create_default_configuration("TR", preset="strict")
    record = turkish_record(documentCondition="fair", hologramPresence=True)
    result, decision = _run(record, config)
    assert result.codes == ["POOR_DOCUMENT_CONDITION"]
    assert result.errors[0].severity is Severity.CRITICAL
    assert decision is Decision.REJECTED


def test_hologram_required_in_strict_preset():
    config = create_default_configuration("TR", preset="strict")
    assert _run(turkish_record(), config)[0].codes == ["MISSING_HOLOGRAM"]
    assert _run(turkish_record(hologramPresence="true"), config)[0].errors == ()


def test_tampering_risk_above_limit(tr_config):
    result, decision = _run(turkish_record(tamperingRisk=0.7), tr_config)
    assert result.codes == ["TAMPERING_SUSPECTED"]
    assert decision is Decision.PENDING
    assert _run(turkish_record(tamperingRisk=0.4), tr_config)[0].errors == ()


# ----------------------------- MRZ cross-validation ---------------------------

def _with_mrz(**mrz_fields):
    return ExtractionRecord(values=turkish_values(), confidence=turkish_confidence(),
                            mrz=MrzData(raw=TD1, **mrz_fields))


def test_consistent_mrz_is_clean(tr_config):
    record = _with_mrz(document_number="A12B34567", date_of_birth="011019", sex="F",
                       nationality="TUR", checksum_valid=True)
    assert validate_document(record, tr_config, today=TODAY).errors == ()


def test_mrz_checksum_and_mismatch_warnings(tr_config):
    record = _with_mrz(document_number="Z99999999", date_of_birth="1999-01-01", checksum_valid=False)
    result, decision = _run(record, tr_config)
    assert [(e.code, e.field) for e in result.errors] == [
        ("MRZ_CHECKSUM_FAILED", "mrz"),
        ("MRZ_MISMATCH", "serialNumber"),
        ("MRZ_MISMATCH", "dateOfBirth"),
    ]
    assert decision is Decision.PENDING


def test_mrz_gender_only_compared_when_enabled(tr_config):
    record = _with_mrz(sex="M")
    assert validate_document(record, tr_config, today=TODAY).errors == ()

    config = create_default_configuration("TR", overrides={"validation_rules": {"enforce_gender_consistency": True}})
    result = validate_document(record, config, today=TODAY)
    assert [(e.code, e.field) for e in result.errors] == [("MRZ_MISMATCH", "gender")]


def test_lenient_preset_skips_mrz_cross_validation():
    config = create_default_configuration("TR", preset="lenient")
    record = _with_mrz(checksum_valid=False)
    assert validate_document(record, config, today=TODAY).errors == ()


# ----------------------------- provider codes / dedupe ------------------------

def test_provider_reported_codes_are_materialized(tr_config):
    record = ExtractionRecord(values=turkish_values(), confidence=turkish_confidence(),
                              reported_errors=("BLURRY_IMAGE",))
    result, decision = _run(record, tr_config)
    assert result.codes == ["BLURRY_IMAGE"]
    assert result.errors[0].numeric_code == 3001
    assert decision is Decision.PENDING


def test_unknown_provider_code_fails_the_run(tr_config):
    record = ExtractionRecord(values=turkish_values(), confidence=turkish_confidence(),
                              reported_errors=("SOMETHING_ODD",))
    result, decision = _run(record, tr_config)
    assert result.codes == ["INVALID_JSON_RESPONSE"]
    assert decision is Decision.FAILED


def test_dedupe_keeps_first_occurrence():
    first = make_error("LOW_CONFIDENCE", "gender", message="first")
    errors = [first, make_error("LOW_CONFIDENCE", "gender", message="second"), make_error("LOW_CONFIDENCE", "mrz")]
    out = dedupe(errors)
    assert [e.field for e in out] == ["gender", "mrz"]
    assert out[0].message == "first"


@pytest.mark.parametrize("preset", ["balanced", "strict", "lenient"])
def test_valid_record_never_rejected_by_preset(preset):
    config = create_default_configuration("TR", preset=preset)
    record = turkish_record(hologramPresence=True)
    assert _run(record, config)[1] is Decision.APPROVED
