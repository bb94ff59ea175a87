# test/conftest.py
import datetime
import json
import os
from typing import Any, Dict

import pytest

from kyc_decision.configuration import Configuration, create_default_configuration
from kyc_decision.models import ExtractionRecord

TODAY = datetime.date(2026, 10, 19)

VALID_TC_NO = "10000000146"
BROKEN_TC_NO = "10000000145"


def _years_from(today: datetime.date, years: int) -> datetime.date:
    try:
        return today.replace(year=today.year + years)
    except ValueError:  # 29 Feb
        return today.replace(year=today.year + years, day=28)


def turkish_values(today: datetime.date = TODAY, **overrides: Any) -> Dict[str, Any]:
    """A complete, valid Turkish ID extraction (values only)."""
    values: Dict[str, Any] = {
        "firstName": "Ayşe",
        "lastName": "Yılmaz",
        "identityNumber": VALID_TC_NO,
        "dateOfBirth": _years_from(today, -25).isoformat(),
        "expiryDate": _years_from(today, 2).isoformat(),
        "gender": "F",
        "nationality": "TR",
        "serialNumber": "A12B34567",
        "countryCode": "TR",
    }
    values.update(overrides)
    return values


def turkish_confidence(score: float = 0.99) -> Dict[str, float]:
    fields = ("firstName", "lastName", "identityNumber", "dateOfBirth", "expiryDate",
              "gender", "serialNumber", "overall", "imageQuality")
    return {f: score for f in fields}


def turkish_record(today: datetime.date = TODAY, **overrides: Any) -> ExtractionRecord:
    return ExtractionRecord(values=turkish_values(today, **overrides), confidence=turkish_confidence())


@pytest.fixture
def today() -> datetime.date:
    return TODAY


@pytest.fixture
def tr_config() -> Configuration:
    return create_default_configuration("TR")


@pytest.fixture
def valid_tr_record() -> ExtractionRecord:
    return turkish_record()


def pytest_sessionfinish(session, exitstatus):
    """Save a short run summary to logs/test_results.json."""
    report = {
        "timestamp": datetime.datetime.now().isoformat(),
        "exitstatus": int(exitstatus),
        "total_tests": session.testscollected,
        "outcome": "passed" if exitstatus == 0 else "failed",
    }

    # resolve path safely relative to pytest rootdir
    project_root = session.config.rootpath or os.getcwd()
    logs_dir = os.path.join(project_root, "logs")
    os.makedirs(logs_dir, exist_ok=True)

    result_path = os.path.join(logs_dir, "test_results.json")
    with open(result_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
