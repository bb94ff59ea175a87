# test/test_payload.py
"""Provider payload parsing into ExtractionRecord."""

import json

import pytest

from kyc_decision.errors import PayloadError
from kyc_decision.payload import parse_extraction

FULL_WIDTH_TC_NO = "10000000146".translate({ord(d): ord(d) + 0xFEE0 for d in "0123456789"})

NESTED_ID = {
    "extraction": {
        "firstName": "Ay\u200bşe ",
        "lastName": "Yılmaz",
        "identityNumber": FULL_WIDTH_TC_NO,  # OCR full-width digits
        "dateOfBirth": "2001-10-19",
        "gender": "F",
        "serialNumber": "A12B34567",
        "expiryDate": "2028-10-19",
        "nationality": "TR",
        "address": None,
    },
    "mrz": {
        "raw": "I<TUR...",
        "parsed": {"documentNumber": "A12B34567", "dateOfBirth": "011019", "sex": "F", "nationality": "TUR"},
        "checksumValid": True,
        "mrzConfidence": 0.91,
    },
    "authenticity": {"documentCondition": "good", "hologramPresence": True, "tamperingRisk": 0.1},
    "quality": {"imageQuality": 0.88, "readabilityIssues": [], "countryCode": "TR"},
    "confidence": {"firstNameConfidence": 0.97, "identityNumberConfidence": 0.95, "overallConfidence": 0.93},
    "validation": {"isValid": True, "errors": [{"code": "BLURRY_IMAGE", "field": "image", "message": "x", "severity": "warning"}]},
}

NESTED_SELFIE = {
    "faceDetection": {"idPhotoFaceCount": 1, "selfie1FaceCount": 1, "faceDetectionConfidence": 0.96},
    "biometricMatch": {"isMatch": True, "matchConfidence": 91, "facialFeatureScores": {}},
    "liveness": {"spoofingRisk": 0.04, "livenessConfidence": 0.9, "spoofingIndicators": [], "livenessIndicators": []},
    "imageQuality": {"selfie1Quality": 0.82, "lightingCondition": "good", "faceSize": "optimal",
                     "faceCoverage": "fully_visible", "qualityIssues": []},
}


def test_nested_id_card_payload():
    record = parse_extraction(json.dumps(NESTED_ID))
    assert record.value("firstName") == "Ayşe"
    assert record.value("identityNumber") == "10000000146"
    assert "address" not in record.values
    assert record.value("documentCondition") == "good"
    assert record.value("hologramPresence") is True
    assert record.value("countryCode") == "TR"
    assert record.value("mrz") == "I<TUR..."
    assert record.confidence == {
        "firstName": 0.97, "identityNumber": 0.95, "overall": 0.93, "imageQuality": 0.88, "mrz": 0.91,
    }
    assert record.mrz.document_number == "A12B34567"
    assert record.mrz.checksum_valid is True
    assert record.reported_errors == ("BLURRY_IMAGE",)


def test_nested_selfie_payload():
    record = parse_extraction(NESTED_SELFIE)
    assert record.value("faceCount") == 1
    assert record.value("isMatch") is True
    assert record.value("spoofingRisk") == 0.04
    assert record.value("lightingCondition") == "good"
    assert record.score("matchConfidence") == 91
    assert record.score("imageQuality") == 0.82
    assert record.score("faceDetectionConfidence") == 0.96


def test_flat_legacy_payload():
    record = parse_extraction({
        "fullName": "JANE DOE",
        "dateOfBirth": "1990-01-01",
        "fullNameConfidence": 0.9,
        "overallConfidence": "0.8",
        "imageQuality": 0.7,
        "matchConfidence": 85,
        "mrz": "LINE1\nLINE2\nLINE3",
        "errors": ["LOW_CONFIDENCE", {"code": "DAMAGED_ID"}],
    })
    assert record.values["fullName"] == "JANE DOE"
    assert record.confidence == {"fullName": 0.9, "overall": 0.8, "imageQuality": 0.7, "matchConfidence": 85}
    assert record.mrz.raw == "LINE1\nLINE2\nLINE3"
    assert record.reported_errors == ("LOW_CONFIDENCE", "DAMAGED_ID")


@pytest.mark.parametrize("payload", [
    "not json",
    "[1, 2, 3]",
    42,
    {"extraction": "oops"},
    {"errors": "BLURRY_IMAGE"},
    {"validation": {"errors": [{"field": "x"}]}},
])
def test_malformed_payloads_raise(payload):
    with pytest.raises(PayloadError):
        parse_extraction(payload)


def test_input_mapping_is_not_mutated():
    payload = json.loads(json.dumps(NESTED_ID))
    snapshot = json.dumps(payload, sort_keys=True)
    parse_extraction(payload)
    assert json.dumps(payload, sort_keys=True) == snapshot
