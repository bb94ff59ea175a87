# -*- coding: utf-8 -*-
"""
Country validation strategies.

Each country is a CountryValidator subclass bound to one rule catalog.
Subclasses register themselves with ``@register_validator``; the dispatcher
(kyc_decision.countries.dispatcher) only looks codes up in the registry, so a
new country never requires touching it.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import ClassVar, Dict, List, Optional, Type, TypeVar

from kyc_decision.configuration import Configuration
from kyc_decision.errors import make_error
from kyc_decision.fields import DocumentKind, IdField
from kyc_decision.models import ExtractionRecord, ValidationError, ValidationResult
from kyc_decision.rules import FieldRule, RuleCatalog, load_catalog
from kyc_decision.validators.field import validate_field

LOGGER = logging.getLogger(__name__)

_NAME_FIELDS = (IdField.FULL_NAME, IdField.FIRST_NAME, IdField.LAST_NAME)


class CountryValidator:
    country_code: ClassVar[str]
    document_kind: ClassVar[DocumentKind]

    @property
    def catalog(self) -> RuleCatalog:
        return load_catalog(self.document_kind)

    def _effective_rule(self, rule: FieldRule, config: Configuration) -> FieldRule:
        if rule.field_name in _NAME_FIELDS and not config.validation_rules.enforce_name_format:
            # Presence and length still apply; only the character set is relaxed
            return rule.model_copy(update={"pattern": None})
        return rule

    def _field_errors(self, record: ExtractionRecord, config: Configuration, today: Optional[date]) -> List[ValidationError]:
        errors: List[ValidationError] = []
        enforce_checksum = config.validation_rules.enforce_checksum_validation
        for field, rule in self.catalog.normal.items():
            check = validate_field(
                record.value(field),
                self._effective_rule(rule, config),
                enforce_checksum=enforce_checksum,
                today=today,
            )
            if not check.valid and check.error_code:
                errors.append(make_error(check.error_code, field.value, severity=rule.severity))
        return errors

    def extra_checks(self, record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
        """Country-specific checks beyond the catalog; none by default."""
        return []

    def validate_id_card(
        self,
        record: ExtractionRecord,
        config: Configuration,
        *,
        today: Optional[date] = None,
    ) -> ValidationResult:
        errors = self._field_errors(record, config, today)
        errors.extend(self.extra_checks(record, config))
        LOGGER.debug("%s validation: %d error(s)", self.country_code, len(errors))
        return ValidationResult(errors=tuple(errors))


# ------------------------------ Registry -------------------------------------

_REGISTRY: Dict[str, Type[CountryValidator]] = {}

V = TypeVar("V", bound=Type[CountryValidator])


def register_validator(cls: V) -> V:
    """Class decorator: make ``cls`` available under its ``country_code``."""
    code = cls.country_code.upper()
    if code in _REGISTRY and _REGISTRY[code] is not cls:
        LOGGER.warning("Replacing validator for %s: %s -> %s", code, _REGISTRY[code].__name__, cls.__name__)
    _REGISTRY[code] = cls
    return cls


def registered() -> Dict[str, Type[CountryValidator]]:
    return dict(_REGISTRY)


def partial_implementation_note(country_code: str) -> ValidationError:
    return make_error(
        "PARTIAL_IMPLEMENTATION",
        message=f"{country_code} validation covers required-field presence only.",
    )
