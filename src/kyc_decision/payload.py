# -*- coding: utf-8 -*-
"""
Extraction payload -> ExtractionRecord.

Accepted shapes
---------------
- Nested provider output:
    ID card: extraction / confidence / authenticity / quality / mrz / validation
    Selfie:  faceDetection / biometricMatch / liveness / imageQuality / validation
- Flat legacy output: field values at top level, scores as ``<field>Confidence``
  keys (``overallConfidence`` -> overall), optional ``errors`` list.

Strings are normalized (NFKC, zero-width chars removed, trimmed) before any
rule sees them. Anything that is not a JSON object of the expected shape raises
PayloadError.
"""

from __future__ import annotations

import json
import logging
import unicodedata
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jsonschema import ValidationError as SchemaError
from jsonschema import validate as json_validate

from kyc_decision.errors import PayloadError
from kyc_decision.fields import IdField, SelfieField
from kyc_decision.models import ExtractionRecord, MrzData

LOGGER = logging.getLogger(__name__)

_ZERO_WIDTH = ("\u200b", "\u200c", "\u200d", "\ufeff")
_CONFIDENCE_SUFFIX = "Confidence"
_KNOWN_FIELDS = {f.value for f in IdField} | {f.value for f in SelfieField}

SELFIE_SECTIONS = ("faceDetection", "biometricMatch", "liveness", "imageQuality")

_OBJECT_OR_NULL = {"type": ["object", "null"]}
_ERROR_ITEM = {
    "anyOf": [
        {"type": "string"},
        {"type": "object", "properties": {"code": {"type": "string"}}, "required": ["code"]},
    ]
}
_ERRORS = {"type": "array", "items": _ERROR_ITEM}

PAYLOAD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "extraction": {"type": "object"},
        "confidence": _OBJECT_OR_NULL,
        "authenticity": _OBJECT_OR_NULL,
        "quality": _OBJECT_OR_NULL,
        "mrz": {"type": ["object", "string", "null"]},
        "faceDetection": _OBJECT_OR_NULL,
        "biometricMatch": _OBJECT_OR_NULL,
        "liveness": _OBJECT_OR_NULL,
        "imageQuality": {"type": ["object", "number", "null"]},
        "validation": {"type": "object", "properties": {"errors": _ERRORS}},
        "errors": _ERRORS,
    },
}


# ------------------------------ Helpers --------------------------------------

def _norm_str(s: Any) -> Any:
    """NFKC + strip + remove zero-width chars; non-strings pass through."""
    if not isinstance(s, str):
        return s
    s = unicodedata.normalize("NFKC", s)
    for ch in _ZERO_WIDTH:
        s = s.replace(ch, "")
    return s.strip()


def _as_score(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _load(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, Mapping):
        return dict(payload)
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if not isinstance(payload, str):
        raise PayloadError(f"Payload must be a JSON object or string, got {type(payload).__name__}")
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise PayloadError(f"Payload is not valid JSON: {exc.msg}") from exc
    if not isinstance(obj, dict):
        raise PayloadError("Top-level JSON must be an object")
    return obj


def _error_codes(items: Any) -> Tuple[str, ...]:
    codes: List[str] = []
    for item in items or ():
        code = item.get("code") if isinstance(item, Mapping) else item
        if isinstance(code, str) and code.strip():
            codes.append(code.strip())
    return tuple(codes)


def _confidence_key(key: str) -> Optional[str]:
    """``firstNameConfidence`` -> ``firstName``; field names ending in Confidence stay as-is."""
    if key in _KNOWN_FIELDS:
        return key
    if key.endswith(_CONFIDENCE_SUFFIX):
        stem = key[: -len(_CONFIDENCE_SUFFIX)]
        return stem if stem in _KNOWN_FIELDS else None
    return None


def _put_score(confidence: Dict[str, float], key: str, value: Any) -> None:
    score = _as_score(value)
    if score is not None:
        confidence[key] = score


def _put_value(values: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        values[key] = _norm_str(value)


# ------------------------------ Shapes ---------------------------------------

def _mrz_block(raw_mrz: Any, confidence: Dict[str, float]) -> Optional[MrzData]:
    if isinstance(raw_mrz, str):
        return MrzData(raw=_norm_str(raw_mrz)) if raw_mrz.strip() else None
    if not isinstance(raw_mrz, Mapping):
        return None
    parsed = raw_mrz.get("parsed") or {}
    _put_score(confidence, IdField.MRZ.value, raw_mrz.get("mrzConfidence"))
    checksum = raw_mrz.get("checksumValid")
    return MrzData(
        raw=_norm_str(raw_mrz.get("raw")),
        document_number=_norm_str(parsed.get("documentNumber")),
        date_of_birth=_norm_str(parsed.get("dateOfBirth")),
        expiry_date=_norm_str(parsed.get("expiryDate")),
        sex=_norm_str(parsed.get("sex")),
        nationality=_norm_str(parsed.get("nationality")),
        checksum_valid=checksum if isinstance(checksum, bool) else None,
    )


def _from_id_card(data: Dict[str, Any]) -> ExtractionRecord:
    values: Dict[str, Any] = {}
    confidence: Dict[str, float] = {}

    for key, value in (data.get("extraction") or {}).items():
        _put_value(values, key, value)

    for key, value in (data.get("confidence") or {}).items():
        field = "overall" if key == "overallConfidence" else _confidence_key(key)
        if field:
            _put_score(confidence, field, value)

    authenticity = data.get("authenticity") or {}
    for field in (IdField.DOCUMENT_CONDITION, IdField.HOLOGRAM_PRESENCE, IdField.TAMPERING_RISK):
        _put_value(values, field.value, authenticity.get(field.value))

    quality = data.get("quality") or {}
    _put_score(confidence, IdField.IMAGE_QUALITY.value, quality.get("imageQuality"))
    _put_value(values, IdField.COUNTRY_CODE.value, quality.get("countryCode") or data.get("countryCode"))

    mrz = _mrz_block(data.get("mrz"), confidence)
    if mrz is not None and mrz.raw:
        values.setdefault(IdField.MRZ.value, mrz.raw)

    reported = _error_codes((data.get("validation") or {}).get("errors")) + _error_codes(data.get("errors"))
    return ExtractionRecord(values=values, confidence=confidence, reported_errors=reported, mrz=mrz)


def _from_selfie(data: Dict[str, Any]) -> ExtractionRecord:
    values: Dict[str, Any] = {}
    confidence: Dict[str, float] = {}

    detection = data.get("faceDetection") or {}
    face_count = detection.get("selfie1FaceCount", detection.get("faceCount"))
    _put_value(values, SelfieField.FACE_COUNT.value, face_count)
    _put_score(confidence, SelfieField.FACE_DETECTION_CONFIDENCE.value, detection.get("faceDetectionConfidence"))

    match = data.get("biometricMatch") or {}
    _put_value(values, SelfieField.IS_MATCH.value, match.get("isMatch"))
    _put_score(confidence, SelfieField.MATCH_CONFIDENCE.value, match.get("matchConfidence"))

    liveness = data.get("liveness") or {}
    _put_value(values, SelfieField.SPOOFING_RISK.value, liveness.get("spoofingRisk"))

    quality = data.get("imageQuality")
    if isinstance(quality, Mapping):
        _put_score(confidence, SelfieField.IMAGE_QUALITY.value, quality.get("selfie1Quality", quality.get("score")))
        for field in (SelfieField.LIGHTING_CONDITION, SelfieField.FACE_SIZE, SelfieField.FACE_COVERAGE):
            _put_value(values, field.value, quality.get(field.value))
    else:
        _put_score(confidence, SelfieField.IMAGE_QUALITY.value, quality)

    reported = _error_codes((data.get("validation") or {}).get("errors")) + _error_codes(data.get("errors"))
    return ExtractionRecord(values=values, confidence=confidence, reported_errors=reported)


def _from_flat(data: Dict[str, Any]) -> ExtractionRecord:
    values: Dict[str, Any] = {}
    confidence: Dict[str, float] = {}
    mrz: Optional[MrzData] = None

    for key, value in data.items():
        if key == "errors":
            continue
        if key == "overallConfidence":
            _put_score(confidence, IdField.OVERALL.value, value)
        elif key == IdField.IMAGE_QUALITY.value or (key.endswith(_CONFIDENCE_SUFFIX) and _confidence_key(key)):
            _put_score(confidence, _confidence_key(key) or key, value)
        elif key == IdField.MRZ.value:
            mrz = _mrz_block(value, confidence)
            if mrz is not None and mrz.raw:
                values[key] = mrz.raw
        else:
            _put_value(values, key, value)

    return ExtractionRecord(values=values, confidence=confidence, reported_errors=_error_codes(data.get("errors")), mrz=mrz)


# ------------------------------ Entry point ----------------------------------

def parse_extraction(payload: Any) -> ExtractionRecord:
    """Parse a provider payload (JSON string, bytes or mapping) into an ExtractionRecord."""
    data = _load(payload)
    try:
        json_validate(instance=data, schema=PAYLOAD_SCHEMA)
    except SchemaError as exc:
        where = "/".join(str(p) for p in exc.absolute_path) or "payload"
        raise PayloadError(f"{where}: {exc.message}") from exc

    if "extraction" in data:
        record = _from_id_card(data)
        shape = "id_card"
    elif any(isinstance(data.get(k), Mapping) for k in SELFIE_SECTIONS):
        record = _from_selfie(data)
        shape = "selfie"
    else:
        record = _from_flat(data)
        shape = "flat"

    LOGGER.debug("Parsed %s payload: %d value(s), %d score(s), %d reported error(s)",
                 shape, len(record.values), len(record.confidence), len(record.reported_errors))
    return record
