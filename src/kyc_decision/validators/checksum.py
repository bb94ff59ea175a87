"""National identity number checksums."""

from __future__ import annotations

import re
from typing import Callable, Dict

from kyc_decision.fields import ChecksumKind

_TC_KIMLIK_PATTERN = re.compile(r"\d{11}")


def tc_kimlik_is_valid(value: str) -> bool:
    """
    Turkish identity number (TC Kimlik No).

    11 digits, first digit non-zero,
    d9  == ((d0+d2+d4+d6+d8) * 7 - (d1+d3+d5+d7)) mod 10
    d10 == (d0 + ... + d9) mod 10
    """
    if not isinstance(value, str) or not _TC_KIMLIK_PATTERN.fullmatch(value):
        return False
    if value[0] == "0":
        return False

    digits = [int(ch) for ch in value]
    odd_sum = digits[0] + digits[2] + digits[4] + digits[6] + digits[8]
    even_sum = digits[1] + digits[3] + digits[5] + digits[7]

    # Python's % is already non-negative for a positive modulus
    check1 = ((odd_sum * 7) - even_sum) % 10
    if digits[9] != check1:
        return False

    check2 = sum(digits[:10]) % 10
    return digits[10] == check2


_CHECKSUMS: Dict[ChecksumKind, Callable[[str], bool]] = {
    ChecksumKind.TC_KIMLIK: tc_kimlik_is_valid,
}


def validate_checksum(kind: ChecksumKind, value: object) -> bool:
    text = value if isinstance(value, str) else str(value)
    return _CHECKSUMS[kind](text.strip())
