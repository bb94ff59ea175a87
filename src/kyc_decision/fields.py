"""Field identifiers and value sets used across the KYC rule catalogs."""

from __future__ import annotations

from enum import Enum
from typing import Union


class IdField(str, Enum):
    # Extraction
    FULL_NAME = "fullName"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    IDENTITY_NUMBER = "identityNumber"
    DATE_OF_BIRTH = "dateOfBirth"
    EXPIRY_DATE = "expiryDate"
    GENDER = "gender"
    NATIONALITY = "nationality"
    SERIAL_NUMBER = "serialNumber"
    MRZ = "mrz"
    ADDRESS = "address"
    # Assessment
    DOCUMENT_CONDITION = "documentCondition"
    COUNTRY_CODE = "countryCode"
    HOLOGRAM_PRESENCE = "hologramPresence"
    TAMPERING_RISK = "tamperingRisk"
    IMAGE_QUALITY = "imageQuality"
    OVERALL = "overall"


class SelfieField(str, Enum):
    IS_MATCH = "isMatch"
    MATCH_CONFIDENCE = "matchConfidence"
    SPOOFING_RISK = "spoofingRisk"
    FACE_COUNT = "faceCount"
    LIGHTING_CONDITION = "lightingCondition"
    FACE_SIZE = "faceSize"
    FACE_COVERAGE = "faceCoverage"
    IMAGE_QUALITY = "imageQuality"
    FACE_DETECTION_CONFIDENCE = "faceDetectionConfidence"


FieldName = Union[IdField, SelfieField]


class DocumentKind(str, Enum):
    """Rule catalog key; one YAML file per kind under config/rules."""

    TURKISH_ID = "turkish_id"
    GERMAN_ID = "german_id"
    UK_ID = "uk_id"
    SELFIE = "selfie"

    @property
    def field_enum(self) -> type:
        return SelfieField if self is DocumentKind.SELFIE else IdField


class ChecksumKind(str, Enum):
    TC_KIMLIK = "tc_kimlik"


class DateKind(str, Enum):
    BIRTH = "birth"
    EXPIRY = "expiry"

