# -*- coding: utf-8 -*-
"""
Verification configuration (per tenant / per country, versioned).

Design
------
- Pydantic models, camelCase aliases accepted so configs stored by the web
  layer (JSON) and hand-written YAML (snake_case) both load.
- Packaged defaults live in config/defaults.yaml and are layered:
  base <- countries[CC] <- presets[name] <- overrides.
- Per-country files ``<CC>.yaml`` in KYC_CONFIG_DIR (or an explicit folder)
  take precedence over packaged defaults; missing file -> defaults.
- Invariants (min_age <= max_age, thresholds in range, ...) are enforced when
  the configuration is built. A bad configuration raises ConfigurationError
  before any evaluation runs.
"""

from __future__ import annotations

import copy
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Literal, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_snake

from kyc_decision.decision import DecisionPolicy
from kyc_decision.errors import BLOCKING_ERROR_CODES, SYSTEM_ERROR_CODES, ConfigurationError, is_known_code
from kyc_decision.fields import IdField, SelfieField

LOGGER = logging.getLogger(__name__)

DEFAULTS_PATH: Path = Path(__file__).resolve().parent / "config" / "defaults.yaml"
DEFAULT_COUNTRY = "TR"
DEFAULT_PRESET = "balanced"

# Keys below these are field names, not settings; never re-cased
_VERBATIM_KEYS = {"custom_thresholds"}

Score = float


class _Settings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="forbid")


class IdCardThresholds(_Settings):
    min_overall_confidence: Score = Field(0.85, ge=0, le=1)
    min_full_name_confidence: Score = Field(0.80, ge=0, le=1)
    min_identity_number_confidence: Score = Field(0.90, ge=0, le=1)
    min_date_of_birth_confidence: Score = Field(0.85, ge=0, le=1)
    min_expiry_date_confidence: Score = Field(0.85, ge=0, le=1)
    min_mrz_confidence: Score = Field(0.80, ge=0, le=1)
    min_image_quality: Score = Field(0.60, ge=0, le=1)
    max_tampering_risk: Score = Field(0.40, ge=0, le=1)
    min_gender_confidence: Score = Field(0.75, ge=0, le=1)
    min_serial_number_confidence: Score = Field(0.80, ge=0, le=1)
    acceptable_document_conditions: Tuple[str, ...] = ("excellent", "good", "fair")

    @field_validator("acceptable_document_conditions")
    @classmethod
    def _lowercase(cls, values: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(v.strip().lower() for v in values)

    def confidence_thresholds(self) -> Dict[str, float]:
        """Field name -> minimum confidence, keyed like ExtractionRecord.confidence."""
        name = self.min_full_name_confidence
        return {
            IdField.FULL_NAME.value: name,
            IdField.FIRST_NAME.value: name,
            IdField.LAST_NAME.value: name,
            IdField.IDENTITY_NUMBER.value: self.min_identity_number_confidence,
            IdField.DATE_OF_BIRTH.value: self.min_date_of_birth_confidence,
            IdField.EXPIRY_DATE.value: self.min_expiry_date_confidence,
            IdField.MRZ.value: self.min_mrz_confidence,
            IdField.GENDER.value: self.min_gender_confidence,
            IdField.SERIAL_NUMBER.value: self.min_serial_number_confidence,
            IdField.IMAGE_QUALITY.value: self.min_image_quality,
            IdField.OVERALL.value: self.min_overall_confidence,
        }


class SelfieThresholds(_Settings):
    min_match_confidence: float = Field(80, ge=0, le=100)
    max_spoofing_risk: Score = Field(0.35, ge=0, le=1)
    min_image_quality: Score = Field(0.60, ge=0, le=1)
    min_face_detection_confidence: Score = Field(0.80, ge=0, le=1)
    required_face_count: int = Field(1, ge=1)
    allowed_lighting_conditions: Tuple[str, ...] = ("excellent", "good", "acceptable")
    allowed_face_sizes: Tuple[str, ...] = ("optimal", "adequate")
    allowed_face_coverage: Tuple[str, ...] = ("fully_visible", "partially_obscured")

    def confidence_thresholds(self) -> Dict[str, float]:
        return {
            SelfieField.MATCH_CONFIDENCE.value: self.min_match_confidence,
            SelfieField.IMAGE_QUALITY.value: self.min_image_quality,
            SelfieField.FACE_DETECTION_CONFIDENCE.value: self.min_face_detection_confidence,
        }


class ValidationRules(_Settings):
    enforce_age_check: bool = True
    min_age: int = Field(18, ge=0)
    max_age: int = Field(120, ge=0)
    enforce_expiry_check: bool = True
    expiry_warning_days: int = Field(30, ge=0)
    enforce_checksum_validation: bool = True
    enforce_mrz_cross_validation: bool = True
    require_hologram_detection: bool = False
    enforce_name_format: bool = True
    allow_damaged_documents: bool = True
    enforce_gender_consistency: bool = False

    @model_validator(mode="after")
    def _age_window(self) -> "ValidationRules":
        if self.min_age > self.max_age:
            raise ValueError(f"min_age ({self.min_age}) must not exceed max_age ({self.max_age})")
        return self


class DecisionSettings(_Settings):
    blocking_codes: FrozenSet[str] = BLOCKING_ERROR_CODES
    system_codes: FrozenSet[str] = SYSTEM_ERROR_CODES

    @field_validator("blocking_codes", "system_codes")
    @classmethod
    def _registered(cls, codes: FrozenSet[str]) -> FrozenSet[str]:
        unknown = sorted(c for c in codes if not is_known_code(c))
        if unknown:
            raise ValueError(f"unknown error codes: {', '.join(unknown)}")
        return codes

    @field_serializer("blocking_codes", "system_codes")
    def _sorted(self, codes: FrozenSet[str]) -> List[str]:
        return sorted(codes)


class Configuration(_Settings):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    country_code: str = DEFAULT_COUNTRY
    version: int = Field(1, ge=1)
    environment: Literal["test", "staging", "production"] = "production"
    name: Optional[str] = None
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    is_active: bool = True
    id_card_thresholds: IdCardThresholds = Field(default_factory=IdCardThresholds)
    selfie_thresholds: SelfieThresholds = Field(default_factory=SelfieThresholds)
    validation_rules: ValidationRules = Field(default_factory=ValidationRules)
    decision: DecisionSettings = Field(default_factory=DecisionSettings)
    custom_thresholds: Dict[str, float] = Field(default_factory=dict)

    @field_validator("country_code")
    @classmethod
    def _iso_alpha2(cls, value: str) -> str:
        code = (value or "").strip().upper()
        if len(code) != 2 or not code.isalpha():
            raise ValueError(f"country_code must be an ISO 3166 alpha-2 code, got {value!r}")
        return code

    @field_validator("custom_thresholds")
    @classmethod
    def _known_fields(cls, values: Dict[str, float]) -> Dict[str, float]:
        known = {f.value for f in IdField} | {f.value for f in SelfieField}
        unknown = sorted(k for k in values if k not in known)
        if unknown:
            raise ValueError(f"custom_thresholds has unknown fields: {', '.join(unknown)}")
        return values

    def decision_policy(self) -> DecisionPolicy:
        return DecisionPolicy(
            blocking_codes=self.decision.blocking_codes,
            system_codes=self.decision.system_codes,
            match_threshold=self.selfie_thresholds.min_match_confidence,
        )

    def id_card_confidence_thresholds(self) -> Dict[str, float]:
        return {**self.id_card_thresholds.confidence_thresholds(), **self.custom_thresholds}

    def selfie_confidence_thresholds(self) -> Dict[str, float]:
        return {**self.selfie_thresholds.confidence_thresholds(), **self.custom_thresholds}


# ------------------------------ Helpers --------------------------------------

def _normalize_keys(data: Any) -> Any:
    """Re-case mapping keys to snake_case (custom_thresholds content left as-is)."""
    if not isinstance(data, Mapping):
        return data
    out: Dict[str, Any] = {}
    for key, value in data.items():
        snake = to_snake(str(key))
        out[snake] = dict(value) if snake in _VERBATIM_KEYS and isinstance(value, Mapping) else _normalize_keys(value)
    return out


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_mapping(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to load configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping")
    return data


@lru_cache(maxsize=1)
def _packaged_defaults() -> Dict[str, Any]:
    raw = _read_mapping(DEFAULTS_PATH)
    # Country codes and preset names are identifiers; only the blocks below them are re-cased
    return {
        "base": _normalize_keys(raw.get("base") or {}),
        "countries": {str(k).upper(): _normalize_keys(v or {}) for k, v in (raw.get("countries") or {}).items()},
        "presets": {str(k): _normalize_keys(v or {}) for k, v in (raw.get("presets") or {}).items()},
    }


def available_presets() -> Tuple[str, ...]:
    return tuple(sorted(_packaged_defaults().get("presets", {})))


def parse_configuration(data: Mapping[str, Any]) -> Configuration:
    """Build a Configuration, converting schema/invariant failures to ConfigurationError."""
    try:
        return Configuration.model_validate(_normalize_keys(data))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or "configuration"
        raise ConfigurationError(f"{where}: {first['msg']}") from exc


def _layered_defaults(country_code: str, preset: str) -> Dict[str, Any]:
    defaults = _packaged_defaults()
    presets = defaults.get("presets", {})
    if preset not in presets:
        raise ConfigurationError(f"Unknown preset '{preset}'. Available: {', '.join(available_presets())}")

    code = (country_code or DEFAULT_COUNTRY).strip().upper()
    layered = _deep_merge(defaults.get("base", {}), defaults.get("countries", {}).get(code, {}))
    layered = _deep_merge(layered, presets[preset] or {})
    layered["country_code"] = code
    layered.setdefault("name", f"Default Configuration ({code}, {preset})")
    return layered


def create_default_configuration(
    country_code: str = DEFAULT_COUNTRY,
    preset: str = DEFAULT_PRESET,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Configuration:
    layered = _layered_defaults(country_code, preset)
    if overrides:
        layered = _deep_merge(layered, _normalize_keys(overrides))
    return parse_configuration(layered)


def load_configuration(path: Path | str) -> Configuration:
    """Load a complete configuration document (YAML or JSON)."""
    return parse_configuration(_read_mapping(Path(path)))


def load_country_configuration(
    country_code: str,
    config_dir: Optional[Path | str] = None,
) -> Tuple[Configuration, str]:
    """
    Resolve the configuration for a country.

    Tries <config_dir>/<CC>.yaml (config_dir defaults to env KYC_CONFIG_DIR),
    layered on top of the packaged defaults; falls back to the defaults alone.
    Returns (configuration, source) where source is the file used or "defaults".
    """
    code = (country_code or DEFAULT_COUNTRY).strip().upper()
    folder = config_dir or os.getenv("KYC_CONFIG_DIR")
    if folder:
        candidate = Path(folder) / f"{code}.yaml"
        if candidate.exists():
            raw = _normalize_keys(_read_mapping(candidate))
            preset = raw.pop("preset", DEFAULT_PRESET)
            layered = _deep_merge(_layered_defaults(code, preset), raw)
            LOGGER.debug("Using configuration %s for %s", candidate, code)
            return parse_configuration(layered), str(candidate)
        LOGGER.debug("No configuration file for %s in %s; using defaults", code, folder)
    return create_default_configuration(code), "defaults"
