from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

_SEVERITY_RANK = {"info": 0, "warning": 1, "critical": 2}


class Severity(str, Enum):
    """Error severity, totally ordered: INFO < WARNING < CRITICAL."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __hash__(self) -> int:
        return hash(self.value)


class Decision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class _Frozen(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ValidationError(_Frozen):
    code: str
    numeric_code: int
    message: str
    field: Optional[str] = None
    severity: Severity = Severity.CRITICAL

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        """Boundary JSON shape: {code, numericCode, message, field?, severity}."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ValidationResult(_Frozen):
    errors: Tuple[ValidationError, ...] = ()

    @computed_field(alias="isValid")  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not any(e.is_critical for e in self.errors)

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self.errors]

    def max_severity(self) -> Optional[Severity]:
        return max((e.severity for e in self.errors), default=None)

    def merged(self, *others: "ValidationResult") -> "ValidationResult":
        errors = list(self.errors)
        for other in others:
            errors.extend(other.errors)
        return ValidationResult(errors=tuple(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": [e.to_dict() for e in self.errors]}


class MrzData(_Frozen):
    raw: Optional[str] = None
    document_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    expiry_date: Optional[str] = None
    sex: Optional[str] = None
    nationality: Optional[str] = None
    checksum_valid: Optional[bool] = None


class ExtractionRecord(_Frozen):
    """
    Read-only extraction produced by the vision/LLM provider.

    values      field name -> extracted value (str | number | bool | None)
    confidence  field name -> score (0-1, matchConfidence 0-100)
    reported_errors  error codes attached by the provider itself
    """

    values: Dict[str, Any] = Field(default_factory=dict)
    confidence: Dict[str, float] = Field(default_factory=dict)
    reported_errors: Tuple[str, ...] = ()
    mrz: Optional[MrzData] = None

    def value(self, field: Any) -> Any:
        key = field.value if isinstance(field, Enum) else field
        return self.values.get(key)

    def score(self, field: Any) -> Optional[float]:
        key = field.value if isinstance(field, Enum) else field
        return self.confidence.get(key)


class MatchSignals(_Frozen):
    is_match: bool
    match_confidence: float = 0.0
