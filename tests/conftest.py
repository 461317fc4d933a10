from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import pytest

import forecast_engine.runtime_logging as runtime_logging
from forecast_engine.defaults import DEFAULTS
from forecast_engine.schema import normalize_assumptions


@pytest.fixture(autouse=True)
def isolated_runtime_log(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", Path(tmp_path) / "forecast_events.jsonl")
    return Path(tmp_path) / "forecast_events.jsonl"


@pytest.fixture
def default_raw() -> dict:
    return deepcopy(DEFAULTS)


@pytest.fixture
def weekly_raw() -> dict:
    """Four-week event, 100 opening attendance growing 10% a week, $38 spend per head."""
    return {
        "revenue": [],
        "costs": [],
        "growthModel": {"type": "exponential", "rate": 0.0},
        "metadata": {
            "type": "WeeklyEvent",
            "weeks": 4,
            "initialWeeklyAttendance": 100,
            "perCustomer": {
                "ticketPrice": 20,
                "fbSpend": 10,
                "merchandiseSpend": 5,
                "onlineSpend": 2,
                "miscSpend": 1,
            },
            "growth": {"attendanceGrowthRate": 10, "useCustomerSpendGrowth": False},
        },
    }


@pytest.fixture
def monthly_raw() -> dict:
    return {
        "revenue": [
            {"name": "Subscriptions", "value": 1000, "type": "recurring"},
            {"name": "Launch Grant", "value": 500, "type": "fixed"},
        ],
        "costs": [
            {"name": "Hosting", "value": 200, "type": "recurring", "category": "operations"},
            {"name": "Setup", "value": 2000, "type": "fixed", "category": "operations"},
        ],
        "growthModel": {"type": "linear", "rate": 0.1},
        "metadata": {"type": "Custom", "months": 6},
    }


@pytest.fixture
def monthly_model(monthly_raw):
    model, warnings, _ = normalize_assumptions(monthly_raw)
    assert warnings == []
    return model
