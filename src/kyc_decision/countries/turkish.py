# -*- coding: utf-8 -*-
"""Turkey: TC Kimlik Kartı (TD1 identity card)."""

from __future__ import annotations

from typing import List, Optional

from kyc_decision.configuration import Configuration
from kyc_decision.countries.base import CountryValidator, register_validator
from kyc_decision.errors import make_error
from kyc_decision.fields import DocumentKind, IdField
from kyc_decision.models import ExtractionRecord, ValidationError

TD1_LINES = 3
TD1_LINE_LENGTH = 30


def _mrz_text(record: ExtractionRecord) -> Optional[str]:
    if record.mrz is not None and record.mrz.raw:
        return record.mrz.raw
    value = record.value(IdField.MRZ)
    return value if isinstance(value, str) and value.strip() else None


def td1_structure_ok(mrz: str) -> bool:
    lines = [line.strip() for line in mrz.strip().splitlines()]
    if len(lines) != TD1_LINES or not all(lines):
        return False
    return len(lines[0]) == TD1_LINE_LENGTH


@register_validator
class TurkishIdValidator(CountryValidator):
    country_code = "TR"
    document_kind = DocumentKind.TURKISH_ID

    def extra_checks(self, record: ExtractionRecord, config: Configuration) -> List[ValidationError]:
        mrz = _mrz_text(record)
        if mrz is None or td1_structure_ok(mrz):
            return []
        return [make_error(
            "INVALID_MRZ_FORMAT",
            IdField.MRZ.value,
            message="MRZ must have 3 lines with a 30-character first line (TD1).",
        )]
