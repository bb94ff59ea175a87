# -*- coding: utf-8 -*-
"""
Verification tools for agents: 'fetch_verification_config', 'evaluate_id_card'
and 'evaluate_selfie'.

Design
------
- Each tool takes the country code plus the provider's extraction JSON and
  returns a JSON string the agent can relay as-is.
- Configuration is resolved per country (KYC_CONFIG_DIR/<CC>.yaml, else the
  packaged defaults). ``.env`` is honoured.
- Exceptional conditions never escape a tool: oversized or malformed payloads
  become INVALID_JSON_RESPONSE, broken configuration becomes INTERNAL_ERROR.
  Both are system errors, so the status is FAILED rather than REJECTED.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from crewai.tools import tool
from dotenv import load_dotenv

from kyc_decision.configuration import Configuration, load_country_configuration
from kyc_decision.decision import decide
from kyc_decision.errors import ConfigurationError, PayloadError, make_error
from kyc_decision.models import MatchSignals, ValidationResult
from kyc_decision.payload import parse_extraction
from kyc_decision.postprocess import match_signals, validate_document, validate_selfie

load_dotenv()

# ------------------------------ Logger ---------------------------------------

LOGGER = logging.getLogger(__name__)

# ------------------------------ Constants ------------------------------------

MAX_INCOMING_BYTES: int = 100_000  # payload guardrail


# ------------------------------ Helpers --------------------------------------

def _too_large(payload: Any) -> bool:
    return isinstance(payload, str) and len(payload.encode("utf-8")) > MAX_INCOMING_BYTES


def _system_failure(code: str, message: str) -> ValidationResult:
    return ValidationResult(errors=(make_error(code, message=message),))


def _response(
    country_code: str,
    result: ValidationResult,
    config: Optional[Configuration],
    match: Optional[MatchSignals] = None,
) -> str:
    policy = config.decision_policy() if config is not None else None
    status = decide(result, match, policy)
    out: Dict[str, Any] = {
        "status": status.value,
        "isValid": result.is_valid,
        "errors": [e.to_dict() for e in result.errors],
        "configVersion": config.version if config is not None else None,
        "countryCode": config.country_code if config is not None else (country_code or "").strip().upper(),
    }
    if match is not None:
        out["isMatch"] = match.is_match
        out["matchConfidence"] = match.match_confidence

    LOGGER.info("Verification %s for %s (%d error(s))", status.value, out["countryCode"], len(result.errors))
    return json.dumps(out, ensure_ascii=False, indent=2)


def _resolve(country_code: str) -> Configuration:
    config, source = load_country_configuration(country_code)
    LOGGER.debug("Configuration for %s from %s (version %d)", config.country_code, source, config.version)
    return config


def _evaluate(country_code: str, extracted_json_string: Any, selfie: bool, today: Optional[date] = None) -> str:
    if _too_large(extracted_json_string):
        LOGGER.warning("Rejected payload over %d bytes", MAX_INCOMING_BYTES)
        return _response(country_code, _system_failure("INVALID_JSON_RESPONSE", "Payload exceeds limit."), None)

    try:
        config = _resolve(country_code)
    except ConfigurationError as exc:
        LOGGER.warning("Configuration for %s is invalid: %s", country_code, exc)
        return _response(country_code, _system_failure("INTERNAL_ERROR", f"Configuration error: {exc}"), None)

    try:
        record = parse_extraction(extracted_json_string)
    except PayloadError as exc:
        LOGGER.warning("Unusable extraction payload: %s", exc)
        return _response(country_code, _system_failure("INVALID_JSON_RESPONSE", str(exc)), config)

    if selfie:
        return _response(country_code, validate_selfie(record, config), config, match_signals(record))
    return _response(country_code, validate_document(record, config, today=today), config)


# ------------------------------ Tools ----------------------------------------

@tool("fetch_verification_config")
def fetch_verification_config(country_code: str) -> str:
    """
    Return the effective verification configuration for a country as JSON
    (thresholds, validation rules, decision policy, version and source).
    """
    try:
        config, source = load_country_configuration(country_code)
    except ConfigurationError as exc:
        LOGGER.warning("Configuration for %s is invalid: %s", country_code, exc)
        err: List[Dict[str, Any]] = [make_error("CONFIGURATION_ERROR", message=str(exc)).to_dict()]
        return json.dumps({"countryCode": (country_code or "").strip().upper(), "errors": err}, ensure_ascii=False, indent=2)

    out = config.model_dump(by_alias=True, mode="json")
    out["source"] = source
    return json.dumps(out, ensure_ascii=False, indent=2)


@tool("evaluate_id_card")
def evaluate_id_card(country_code: str, extracted_json_string: str) -> str:
    """
    Validate an ID card extraction for the given country and decide.

    Returns JSON:
      - status: "APPROVED" | "REJECTED" | "FAILED" | "PENDING"
      - isValid: no critical error
      - errors: [ {code, numericCode, message, field?, severity}, ... ]
      - configVersion, countryCode
    """
    return _evaluate(country_code, extracted_json_string, selfie=False)


@tool("evaluate_selfie")
def evaluate_selfie(country_code: str, extracted_json_string: str) -> str:
    """
    Validate a selfie / face-match extraction and decide on the match.

    Returns the evaluate_id_card shape plus isMatch and matchConfidence (0-100).
    """
    return _evaluate(country_code, extracted_json_string, selfie=True)
