# -*- coding: utf-8 -*-
"""
Error registry and typed exceptions for the KYC decision engine.

Design
------
- Every error the engine can emit is declared once in ``ERROR_CODES``
  (code -> numeric code, default message, default severity, category).
- ``make_error`` is the only way to materialize a ``ValidationError``; an
  unknown code raises ``UnknownErrorCodeError`` instead of degrading silently.
- Exceptions are reserved for exceptional conditions (unknown country,
  malformed configuration or payload). Rule violations are data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from kyc_decision.models import Severity, ValidationError

# ------------------------------ Exceptions -----------------------------------


class KycDecisionError(Exception):
    """Base class for exceptional conditions raised by the engine."""


class UnknownErrorCodeError(KycDecisionError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Unknown error code: {code}")
        self.code = code


class UnsupportedCountryError(KycDecisionError):
    def __init__(self, country_code: str) -> None:
        super().__init__(f"Unsupported country: {country_code}")
        self.country_code = country_code


class ConfigurationError(KycDecisionError):
    """Configuration or rule catalog violates its schema or invariants."""


class PayloadError(KycDecisionError):
    """Extraction payload could not be parsed into an ExtractionRecord."""


# ------------------------------ Registry -------------------------------------


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    numeric_code: int
    message: str
    severity: Severity = Severity.CRITICAL
    category: str = "business"


def _define(code: str, numeric_code: int, message: str, severity: Severity = Severity.CRITICAL,
            category: str = "business") -> ErrorDefinition:
    return ErrorDefinition(code, numeric_code, message, severity, category)


_W = Severity.WARNING
_I = Severity.INFO

_DEFINITIONS = (
    # Missing fields (1XXX)
    _define("MISSING_FIRST_NAME", 1001, "First name could not be detected on ID card.", category="extraction"),
    _define("MISSING_IDENTITY_NUMBER", 1002, "Identity number could not be detected on ID card.", category="extraction"),
    _define("MISSING_DOB", 1003, "Date of birth could not be detected on ID card.", category="extraction"),
    _define("MISSING_EXPIRY_DATE", 1004, "Expiry date could not be detected on ID card.", category="extraction"),
    _define("MISSING_GENDER", 1005, "Gender could not be detected on ID card.", _W, "extraction"),
    _define("MISSING_NATIONALITY", 1006, "Nationality could not be detected on ID card.", category="extraction"),
    _define("MISSING_SERIAL_NUMBER", 1007, "Serial number could not be detected on ID card.", _W, "extraction"),
    _define("MISSING_LAST_NAME", 1008, "Last name could not be detected on ID card.", category="extraction"),
    _define("MISSING_FULL_NAME", 1009, "Full name could not be detected on ID card.", category="extraction"),
    # Invalid data (2XXX)
    _define("INVALID_IDENTITY_NUMBER", 2001, "Identity number format or checksum is invalid."),
    _define("INVALID_DOB_FORMAT", 2002, "Date of birth format is invalid. Expected YYYY-MM-DD.", category="extraction"),
    _define("INVALID_DOB_LOGIC", 2003, "Date of birth logic is invalid (age constraints)."),
    _define("INVALID_EXPIRY_FORMAT", 2004, "Expiry date format is invalid. Expected YYYY-MM-DD.", category="extraction"),
    _define("EXPIRED_ID", 2005, "ID card has expired."),
    _define("EXPIRED_DOCUMENT", 2006, "Document has expired."),
    _define("INVALID_AGE", 2007, "Age is outside the allowed range."),
    _define("EXPIRY_WARNING", 2008, "Document is nearing expiry.", _W),
    _define("INVALID_NAME_FORMAT", 2009, "Name contains characters not allowed for this document."),
    _define("INVALID_NATIONALITY", 2010, "Nationality does not match the document country."),
    _define("INVALID_GENDER", 2011, "Gender value is not recognised.", _W),
    _define("INVALID_SERIAL_NUMBER", 2012, "Serial number format is invalid.", _W),
    _define("UNSUPPORTED_COUNTRY", 2013, "Country code is not supported for ID verification."),
    _define("COUNTRY_MISMATCH", 2014, "Document country differs from the configured country.", _W),
    _define("INVALID_MRZ_FORMAT", 2015, "MRZ format is invalid for this document.", _W),
    _define("MRZ_CHECKSUM_FAILED", 2016, "MRZ check digits are invalid.", _W),
    _define("MRZ_MISMATCH", 2017, "MRZ data does not match the visual zone.", _W),
    _define("PARTIAL_IMPLEMENTATION", 2018, "Country validation covers field presence only.", _I),
    # Document image (3XXX)
    _define("BLURRY_IMAGE", 3001, "ID card image is too blurry to read clearly.", _W, "image"),
    _define("DAMAGED_ID", 3002, "ID card appears to be damaged or corrupted.", _W, "image"),
    _define("WRONG_CONTENT", 3003, "Uploaded image does not contain a valid ID card document.", category="image"),
    _define("POOR_DOCUMENT_CONDITION", 3004, "Document condition is not acceptable.", _W, "image"),
    _define("MISSING_HOLOGRAM", 3005, "Hologram could not be detected on the document.", _W, "image"),
    _define("TAMPERING_SUSPECTED", 3006, "Document shows signs of tampering.", _W, "image"),
    _define("LOW_CONFIDENCE", 3007, "Confidence score is below acceptable threshold.", _W, "confidence"),
    # Selfie (4XXX)
    _define("LOW_MATCH_CONFIDENCE", 4001, "Face match confidence is below acceptable threshold.", category="selfie"),
    _define("NO_FACE_DETECTED", 4002, "No face could be detected in the provided image.", category="selfie"),
    _define("MULTIPLE_FACES", 4003, "Multiple faces detected. Please provide a single-person selfie.", category="selfie"),
    _define("POOR_IMAGE_QUALITY", 4004, "Image quality is too poor for accurate verification.", _W, "selfie"),
    _define("SPOOFING_DETECTED", 4005, "Potential spoofing or fake image detected.", category="selfie"),
    _define("INSUFFICIENT_LIGHTING", 4006, "Image lighting is insufficient for accurate verification.", _W, "selfie"),
    _define("FACE_TOO_SMALL", 4007, "Face in image is too small for accurate verification.", _W, "selfie"),
    _define("FACE_PARTIALLY_COVERED", 4008, "Face is partially covered or obscured.", _W, "selfie"),
    # System (5XXX)
    _define("INVALID_IMAGE_URL", 5001, "Provided image URL is invalid or inaccessible.", category="system"),
    _define("PROVIDER_API_ERROR", 5002, "Extraction provider error occurred during verification.", category="system"),
    _define("INVALID_JSON_RESPONSE", 5003, "AI response was not valid JSON format.", category="system"),
    _define("INTERNAL_ERROR", 5004, "An internal server error occurred.", category="system"),
    _define("CONFIGURATION_ERROR", 5005, "Verification configuration is invalid.", category="system"),
)

ERROR_CODES: Dict[str, ErrorDefinition] = {s.code: s for s in _DEFINITIONS}

# Short-circuit to FAILED regardless of any other error
SYSTEM_ERROR_CODES: FrozenSet[str] = frozenset({"PROVIDER_API_ERROR", "INVALID_JSON_RESPONSE", "INTERNAL_ERROR"})

# Reject outright, whatever severity they were emitted with
BLOCKING_ERROR_CODES: FrozenSet[str] = frozenset({
    "MISSING_FULL_NAME",
    "MISSING_FIRST_NAME",
    "MISSING_LAST_NAME",
    "MISSING_IDENTITY_NUMBER",
    "INVALID_IDENTITY_NUMBER",
    "EXPIRED_ID",
    "EXPIRED_DOCUMENT",
    "SPOOFING_DETECTED",
    "NO_FACE_DETECTED",
})


def get_definition(code: str) -> ErrorDefinition:
    try:
        return ERROR_CODES[code]
    except KeyError:
        raise UnknownErrorCodeError(code) from None


def is_known_code(code: str) -> bool:
    return code in ERROR_CODES


def make_error(
    code: str,
    field: Optional[str] = None,
    *,
    message: Optional[str] = None,
    severity: Optional[Severity] = None,
) -> ValidationError:
    """
    Materialize a registered error code into a ValidationError.

    ``message`` and ``severity`` override the registry defaults for this
    occurrence only. Raises UnknownErrorCodeError for unregistered codes.
    """
    definition = get_definition(code)
    return ValidationError(
        code=definition.code,
        numeric_code=definition.numeric_code,
        message=message or definition.message,
        field=field,
        severity=severity or definition.severity,
    )
