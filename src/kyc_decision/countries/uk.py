# -*- coding: utf-8 -*-
"""United Kingdom. Required-field presence only for now."""

from __future__ import annotations

from typing import List

from kyc_decision.configuration import Configuration
from kyc_decision.countries.base import CountryValidator, partial_implementation_note, register_validator
from kyc_decision.fields import DocumentKind
from kyc_decision.models import ExtractionRecord, ValidationError


@register_validator
class UkIdValidator(CountryValidator):
    country_code = "GB"
    document_kind = DocumentKind.UK_ID

    def extra_checks(self, record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
        return [partial_implementation_note(self.country_code)]
