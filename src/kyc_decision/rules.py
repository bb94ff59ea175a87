# -*- coding: utf-8 -*-
"""
Rule catalog (YAML-driven).

Design
------
- One YAML file per document kind under ``config/rules`` (override the folder
  with env KYC_RULES_DIR).
- Each file has two categories: ``normal_fields`` (FieldRule) and
  ``threshold_fields`` (ThresholdRule).
- Structure is checked with JSON Schema, field names against the closed field
  enums, error codes against the registry. Anything off raises
  ConfigurationError at load time, never during an evaluation.
- Catalogs are immutable and memoized per process.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

import yaml
from jsonschema import ValidationError as SchemaError
from jsonschema import validate as json_validate
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from kyc_decision.errors import ConfigurationError, is_known_code
from kyc_decision.fields import ChecksumKind, DateKind, DocumentKind, IdField, SelfieField
from kyc_decision.models import Severity

LOGGER = logging.getLogger(__name__)

_DEFAULT_RULES_DIR: Path = Path(__file__).resolve().parent / "config" / "rules"
_RULES_DIR: Path = Path(os.getenv("KYC_RULES_DIR", str(_DEFAULT_RULES_DIR))).resolve()

Scalar = Union[str, int, float, bool]


# ------------------------------ Rule models ----------------------------------

def _check_error_code(code: Optional[str]) -> Optional[str]:
    if code is not None and not is_known_code(code):
        raise ValueError(f"unknown error code '{code}'")
    return code


class FieldRule(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field_name: Union[IdField, SelfieField]
    error_code: str
    missing_code: Optional[str] = None
    severity: Optional[Severity] = None
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    exact_length: Optional[int] = None
    pattern: Optional[str] = None
    allowed_values: Optional[Tuple[Scalar, ...]] = None
    expected_value: Optional[Scalar] = None
    max_value: Optional[float] = None
    min_value: Optional[float] = None
    checksum_kind: Optional[ChecksumKind] = None
    date_kind: Optional[DateKind] = None

    @field_validator("error_code", "missing_code")
    @classmethod
    def _registered(cls, value: Optional[str]) -> Optional[str]:
        return _check_error_code(value)

    @field_validator("pattern")
    @classmethod
    def _compilable(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid pattern {value!r}: {exc}") from exc
        return value or None

    @property
    def code_when_missing(self) -> str:
        return self.missing_code or self.error_code


class ThresholdRule(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    field_name: Union[IdField, SelfieField]
    threshold: float
    error_code: str = "LOW_CONFIDENCE"
    comparison: Literal["gte", "lte"] = "gte"
    scale: float = 1.0

    @field_validator("error_code")
    @classmethod
    def _registered(cls, value: str) -> str:
        return _check_error_code(value)


@dataclass(frozen=True)
class RuleCatalog:
    kind: DocumentKind
    normal: Mapping[Any, FieldRule]
    thresholds: Mapping[Any, ThresholdRule]
    source: str = "builtin"

    def normal_rule(self, field: Any) -> Optional[FieldRule]:
        return self.normal.get(field)

    def threshold_rule(self, field: Any) -> Optional[ThresholdRule]:
        return self.thresholds.get(field)


# ------------------------------ Schema ---------------------------------------

_SCALAR = {"type": ["string", "number", "integer", "boolean"]}

_FIELD_RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "error_code": {"type": "string"},
        "missing_code": {"type": "string"},
        "severity": {"enum": [s.value for s in Severity]},
        "required": {"type": "boolean"},
        "min_length": {"type": "integer", "minimum": 0},
        "max_length": {"type": "integer", "minimum": 0},
        "exact_length": {"type": "integer", "minimum": 0},
        "pattern": {"type": "string"},
        "allowed_values": {"type": "array", "items": _SCALAR},
        "expected_value": _SCALAR,
        "max_value": {"type": "number"},
        "min_value": {"type": "number"},
        "checksum_kind": {"enum": [k.value for k in ChecksumKind]},
        "date_kind": {"enum": [k.value for k in DateKind]},
    },
    "required": ["error_code"],
    "additionalProperties": False,
}

_THRESHOLD_RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "threshold": {"type": "number"},
        "error_code": {"type": "string"},
        "comparison": {"enum": ["gte", "lte"]},
        "scale": {"type": "number", "exclusiveMinimum": 0},
    },
    "required": ["threshold"],
    "additionalProperties": False,
}

CATALOG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "document": {"type": "string"},
        "description": {"type": "string"},
        "normal_fields": {"type": "object", "additionalProperties": _FIELD_RULE_SCHEMA},
        "threshold_fields": {"type": "object", "additionalProperties": _THRESHOLD_RULE_SCHEMA},
    },
    "additionalProperties": False,
}


# ------------------------------ Loading --------------------------------------

def _field_id(kind: DocumentKind, name: str) -> Union[IdField, SelfieField]:
    try:
        return kind.field_enum(name)
    except ValueError:
        raise ConfigurationError(f"Unknown field '{name}' in {kind.value} rule catalog") from None


def build_catalog(kind: DocumentKind, data: Dict[str, Any], source: str = "builtin") -> RuleCatalog:
    """Validate a raw catalog mapping and turn it into an immutable RuleCatalog."""
    try:
        json_validate(instance=data, schema=CATALOG_SCHEMA)
    except SchemaError as exc:
        raise ConfigurationError(f"{source}: {str(exc).splitlines()[0]}") from exc

    normal: Dict[Any, FieldRule] = {}
    thresholds: Dict[Any, ThresholdRule] = {}
    try:
        for name, raw in (data.get("normal_fields") or {}).items():
            field = _field_id(kind, name)
            normal[field] = FieldRule(field_name=field, **raw)
        for name, raw in (data.get("threshold_fields") or {}).items():
            field = _field_id(kind, name)
            thresholds[field] = ThresholdRule(field_name=field, **raw)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"{source}: {exc.errors()[0]['msg']}") from exc

    return RuleCatalog(
        kind=kind,
        normal=MappingProxyType(normal),
        thresholds=MappingProxyType(thresholds),
        source=source,
    )


def load_catalog_file(kind: DocumentKind, path: Path) -> RuleCatalog:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to load rule catalog {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Rule catalog {path} must be a mapping")
    return build_catalog(kind, data, source=str(path))


@lru_cache(maxsize=None)
def load_catalog(kind: DocumentKind) -> RuleCatalog:
    """Load the catalog for ``kind`` from the rules folder (memoized)."""
    path = _RULES_DIR / f"{kind.value}.yaml"
    catalog = load_catalog_file(kind, path)
    LOGGER.debug("Loaded %s rule catalog from %s (%d normal, %d threshold rules)",
                 kind.value, path, len(catalog.normal), len(catalog.thresholds))
    return catalog
