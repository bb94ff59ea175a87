# -*- coding: utf-8 -*-
"""
Post-processors: run every check for one extraction and collect the errors.

ID card (validate_document), all steps always run:
  0. provider-reported error codes
  1. country strategy (+ declared country vs configured country)
  2. age                       (enforce_age_check)
  3. expiry                    (enforce_expiry_check)
  4. confidence thresholds     (configuration layered over the catalog)
  5. document condition
  6. hologram, tampering risk, MRZ cross-validation

Selfie (validate_selfie): provider codes, face presence, the selfie field
catalog with configured limits, then the selfie thresholds.

Errors are de-duplicated on (code, field); the first occurrence wins.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kyc_decision.configuration import Configuration
from kyc_decision.countries.dispatcher import get_validator, is_supported
from kyc_decision.errors import is_known_code, make_error
from kyc_decision.fields import DocumentKind, FieldName, IdField, SelfieField
from kyc_decision.models import ExtractionRecord, MatchSignals, Severity, ValidationError, ValidationResult
from kyc_decision.rules import FieldRule, RuleCatalog, ThresholdRule, load_catalog
from kyc_decision.validators.dates import is_blank, parse_iso_date, validate_age, validate_expiry
from kyc_decision.validators.field import validate_field
from kyc_decision.validators.threshold import validate_threshold_rule

LOGGER = logging.getLogger(__name__)

_GENDER_CODES = {"m": "M", "male": "M", "erkek": "M", "f": "F", "female": "F", "kadın": "F"}
_TRUE_STRINGS = {"true", "yes", "1"}


# ------------------------------ Helpers --------------------------------------

def dedupe(errors: Iterable[ValidationError]) -> Tuple[ValidationError, ...]:
    seen = set()
    out: List[ValidationError] = []
    for err in errors:
        key = (err.code, err.field)
        if key not in seen:
            seen.add(key)
            out.append(err)
    return tuple(out)


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _field_for(name: str) -> FieldName:
    try:
        return IdField(name)
    except ValueError:
        return SelfieField(name)


def _effective_thresholds(catalog: Optional[RuleCatalog], configured: Dict[str, float]) -> List[Tuple[ThresholdRule, float]]:
    """Catalog rules with configured thresholds applied; configured-only fields get LOW_CONFIDENCE rules."""
    pairs: List[Tuple[ThresholdRule, float]] = []
    covered = set()
    if catalog is not None:
        for field, rule in catalog.thresholds.items():
            pairs.append((rule, configured.get(field.value, rule.threshold)))
            covered.add(field.value)
    for name, threshold in configured.items():
        if name in covered:
            continue
        pairs.append((ThresholdRule(field_name=_field_for(name), threshold=threshold), threshold))
    return pairs


def _threshold_errors(record: ExtractionRecord, pairs: List[Tuple[ThresholdRule, float]]) -> List[ValidationError]:
    errors: List[ValidationError] = []
    for rule, threshold in pairs:
        score = record.score(rule.field_name)
        if score is None:
            continue
        errors.extend(validate_threshold_rule(score, rule, threshold).errors)
    return errors


def reported_errors(record: ExtractionRecord) -> List[ValidationError]:
    """Provider-attached codes; anything outside the registry means the response itself is unusable."""
    errors: List[ValidationError] = []
    for code in record.reported_errors:
        if is_known_code(code):
            errors.append(make_error(code))
        else:
            LOGGER.warning("Provider reported unknown error code %r", code)
            errors.append(make_error(
                "INVALID_JSON_RESPONSE",
                message=f"Provider reported an unknown error code '{code}'.",
            ))
    return errors


# ------------------------------ ID card steps --------------------------------

def _country_result(record: ExtractionRecord, config: Configuration, today: Optional[date]) -> Tuple[ValidationResult, Optional[RuleCatalog]]:
    catalog: Optional[RuleCatalog] = None
    if is_supported(config.country_code):
        validator = get_validator(config.country_code)
        catalog = validator.catalog
        result = validator.validate_id_card(record, config, today=today)
    else:
        LOGGER.warning("No validator for country %s", config.country_code)
        result = ValidationResult(errors=(make_error(
            "UNSUPPORTED_COUNTRY",
            IdField.COUNTRY_CODE.value,
            message=f"Unsupported country: {config.country_code}",
        ),))

    declared = record.value(IdField.COUNTRY_CODE)
    if isinstance(declared, str) and declared.strip() and declared.strip().upper() != config.country_code:
        result = result.merged(ValidationResult(errors=(make_error(
            "COUNTRY_MISMATCH",
            IdField.COUNTRY_CODE.value,
            message=f"Document country '{declared.strip().upper()}' differs from configured '{config.country_code}'.",
        ),)))
    return result, catalog


def _condition_errors(record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
    condition = record.value(IdField.DOCUMENT_CONDITION)
    if not isinstance(condition, str) or not condition.strip():
        return []
    if condition.strip().lower() in config.id_card_thresholds.acceptable_document_conditions:
        return []
    severity = Severity.WARNING if config.validation_rules.allow_damaged_documents else Severity.CRITICAL
    return [make_error(
        "POOR_DOCUMENT_CONDITION",
        IdField.DOCUMENT_CONDITION.value,
        message=f"Document condition '{condition}' is not acceptable.",
        severity=severity,
    )]


def _yymmdd(value: Any) -> Optional[str]:
    parsed = parse_iso_date(value)
    if parsed is not None:
        return parsed.strftime("%y%m%d")
    if isinstance(value, str) and len(value.strip()) == 6 and value.strip().isdigit():
        return value.strip()
    return None


def _mrz_errors(record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
    mrz = record.mrz
    if mrz is None:
        return []

    errors: List[ValidationError] = []
    if mrz.checksum_valid is False:
        errors.append(make_error("MRZ_CHECKSUM_FAILED", IdField.MRZ.value))

    def mismatch(field: IdField, what: str) -> None:
        errors.append(make_error("MRZ_MISMATCH", field.value, message=f"MRZ {what} does not match the visual zone."))

    if mrz.document_number:
        candidates = {str(record.value(f)).strip() for f in (IdField.SERIAL_NUMBER, IdField.IDENTITY_NUMBER)
                      if not is_blank(record.value(f))}
        if candidates and mrz.document_number.replace("<", "") not in candidates:
            mismatch(IdField.SERIAL_NUMBER, "document number")

    for mrz_value, field, what in (
        (mrz.date_of_birth, IdField.DATE_OF_BIRTH, "date of birth"),
        (mrz.expiry_date, IdField.EXPIRY_DATE, "expiry date"),
    ):
        left, right = _yymmdd(mrz_value), _yymmdd(record.value(field))
        if left and right and left != right:
            mismatch(field, what)

    nationality = record.value(IdField.NATIONALITY)
    if mrz.nationality and isinstance(nationality, str) and len(mrz.nationality) == len(nationality.strip()):
        if mrz.nationality.upper() != nationality.strip().upper():
            mismatch(IdField.NATIONALITY, "nationality")

    if config.validation_rules.enforce_gender_consistency and mrz.sex:
        visual = _GENDER_CODES.get(str(record.value(IdField.GENDER) or "").strip().lower())
        if visual and visual != mrz.sex.strip().upper():
            mismatch(IdField.GENDER, "sex")
    return errors


def _secondary_errors(record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
    errors: List[ValidationError] = []
    rules = config.validation_rules

    if rules.require_hologram_detection and not _truthy(record.value(IdField.HOLOGRAM_PRESENCE)):
        errors.append(make_error("MISSING_HOLOGRAM", IdField.HOLOGRAM_PRESENCE.value))

    risk = _number(record.value(IdField.TAMPERING_RISK))
    limit = config.id_card_thresholds.max_tampering_risk
    if risk is not None and risk > limit:
        errors.append(make_error(
            "TAMPERING_SUSPECTED",
            IdField.TAMPERING_RISK.value,
            message=f"Tampering risk {risk:.2f} exceeds the allowed {limit:.2f}.",
        ))

    if rules.enforce_mrz_cross_validation:
        errors.extend(_mrz_errors(record, config))
    return errors


def validate_document(
    record: ExtractionRecord,
    config: Configuration,
    *,
    today: Optional[date] = None,
) -> ValidationResult:
    """Full ID card post-processing; ``today`` defaults to the current date."""
    today = today or date.today()
    rules = config.validation_rules

    country, catalog = _country_result(record, config, today)
    steps: List[ValidationResult] = [country]

    if rules.enforce_age_check:
        steps.append(validate_age(record.value(IdField.DATE_OF_BIRTH), rules.min_age, rules.max_age, today=today))

    if rules.enforce_expiry_check:
        steps.append(validate_expiry(record.value(IdField.EXPIRY_DATE), rules.expiry_warning_days, today=today))

    pairs = _effective_thresholds(catalog, config.id_card_confidence_thresholds())
    remaining = _threshold_errors(record, pairs) + _condition_errors(record, config) + _secondary_errors(record, config)
    steps.append(ValidationResult(errors=tuple(remaining)))

    combined = ValidationResult(errors=tuple(reported_errors(record))).merged(*steps)
    result = ValidationResult(errors=dedupe(combined.errors))
    LOGGER.debug("ID card (%s): valid=%s codes=%s", config.country_code, result.is_valid, result.codes)
    return result


# ------------------------------ Selfie ---------------------------------------

def _configured_selfie_rule(rule: FieldRule, config: Configuration) -> FieldRule:
    limits = config.selfie_thresholds
    updates: Dict[str, Any] = {
        SelfieField.SPOOFING_RISK: {"max_value": limits.max_spoofing_risk},
        SelfieField.FACE_COUNT: {"expected_value": limits.required_face_count},
        SelfieField.LIGHTING_CONDITION: {"allowed_values": limits.allowed_lighting_conditions},
        SelfieField.FACE_SIZE: {"allowed_values": limits.allowed_face_sizes},
        SelfieField.FACE_COVERAGE: {"allowed_values": limits.allowed_face_coverage},
    }.get(rule.field_name, {})
    return rule.model_copy(update=updates) if updates else rule


def validate_selfie(record: ExtractionRecord, config: Configuration) -> ValidationResult:
    errors: List[ValidationError] = reported_errors(record)
    catalog = load_catalog(DocumentKind.SELFIE)

    face_count = _number(record.value(SelfieField.FACE_COUNT))
    no_face = face_count is not None and face_count == 0
    if no_face:
        errors.append(make_error("NO_FACE_DETECTED", SelfieField.FACE_COUNT.value))

    for field, rule in catalog.normal.items():
        if no_face and field is SelfieField.FACE_COUNT:
            continue
        check = validate_field(record.value(field), _configured_selfie_rule(rule, config))
        if not check.valid and check.error_code:
            errors.append(make_error(check.error_code, field.value, severity=rule.severity))

    pairs = _effective_thresholds(catalog, config.selfie_confidence_thresholds())
    errors.extend(_threshold_errors(record, pairs))

    result = ValidationResult(errors=dedupe(errors))
    LOGGER.debug("Selfie: valid=%s codes=%s", result.is_valid, result.codes)
    return result


def match_signals(record: ExtractionRecord) -> MatchSignals:
    """Face-match inputs for the decision function (confidence on the 0-100 scale)."""
    confidence = record.score(SelfieField.MATCH_CONFIDENCE)
    if confidence is None:
        confidence = _number(record.value(SelfieField.MATCH_CONFIDENCE))
    return MatchSignals(
        is_match=_truthy(record.value(SelfieField.IS_MATCH)),
        match_confidence=confidence or 0.0,
    )
