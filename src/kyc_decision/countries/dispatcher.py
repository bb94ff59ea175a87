# -*- coding: utf-8 -*-
"""
Country strategy dispatcher.

Importing this module loads the built-in strategies (TR, DE, GB). Lookups are
case-insensitive; an unregistered code raises UnsupportedCountryError.
"""

from __future__ import annotations

from typing import Tuple

# Built-in strategies register on import
import kyc_decision.countries.german  # noqa: F401
import kyc_decision.countries.turkish  # noqa: F401
import kyc_decision.countries.uk  # noqa: F401
from kyc_decision.countries.base import CountryValidator, register_validator, registered
from kyc_decision.errors import UnsupportedCountryError


def get_validator(country_code: str) -> CountryValidator:
    code = (country_code or "").strip().upper()
    cls = registered().get(code)
    if cls is None:
        raise UnsupportedCountryError(country_code)
    return cls()


def supported_countries() -> Tuple[str, ...]:
    return tuple(sorted(registered()))


def is_supported(country_code: str) -> bool:
    return (country_code or "").strip().upper() in registered()


__all__ = ["CountryValidator", "get_validator", "is_supported", "register_validator", "supported_countries"]
