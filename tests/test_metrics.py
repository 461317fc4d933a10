from __future__ import annotations

import pytest

from forecast_engine.metrics import _safe_div, compare_scenarios, compute_metrics, find_break_even
from forecast_engine.model import run_forecast


def test_safe_div_guards_zero_denominator():
    assert _safe_div(5.0, 0.0) == 0.0
    assert _safe_div(5.0, 2.0) == 2.5


def test_find_break_even_skips_missing_periods():
    assert find_break_even([-10, None, 5]) == 3
    assert find_break_even([0, 10]) == 1
    assert find_break_even([-1, -2]) is None
    assert find_break_even([-1, 4], periods=[7, 8]) == 8


def test_compute_metrics_summary(monthly_raw):
    m = compute_metrics(run_forecast(monthly_raw))
    assert m["total_revenue"] == 8000
    assert m["total_cost"] == 3200
    assert m["total_profit"] == 4800
    assert m["profit_margin_pct"] == pytest.approx(60.0)
    assert m["break_even_period"] == 2
    assert m["break_even_label"] == "Month 2"
    assert m["avg_revenue_per_period"] == pytest.approx(8000 / 6)
    assert m["min_cumulative_profit"] == -700
    assert m["min_cumulative_profit_period"] == 1
    assert m["loss_periods"] == 1
    assert m["total_attendance"] is None


def test_compute_metrics_without_break_even():
    raw = {"revenue": [], "costs": [{"name": "Rent", "value": 100, "type": "recurring"}], "metadata": {"months": 2}}
    m = compute_metrics(run_forecast(raw))
    assert m["break_even_period"] is None
    assert m["break_even_label"] == "N/A"
    assert m["profit_margin_pct"] == 0.0


def test_compute_metrics_weekly_attendance(weekly_raw):
    m = compute_metrics(run_forecast(weekly_raw))
    assert m["total_attendance"] == 464
    assert m["revenue_per_attendee"] == pytest.approx(38.0)


def test_compute_metrics_empty():
    m = compute_metrics([])
    assert m["periods"] == 0
    assert m["break_even_label"] == "N/A"


def test_compare_scenarios_deltas(monthly_raw):
    baseline = run_forecast(monthly_raw)
    doubled = dict(monthly_raw, costs=[dict(c, value=c["value"] * 2) for c in monthly_raw["costs"]])
    out = compare_scenarios(baseline, run_forecast(doubled))
    assert out["cost_delta"] == 3200
    assert out["cost_delta_pct"] == pytest.approx(100.0)
    assert out["revenue_delta"] == 0
    assert out["revenue_delta_pct"] == 0.0
    assert out["break_even_delta"] == 3


def test_compare_scenarios_zero_baseline_percent_is_zero():
    empty = {"revenue": [], "costs": [], "metadata": {"months": 2}}
    with_revenue = {"revenue": [{"name": "Sales", "value": 10}], "costs": [], "metadata": {"months": 2}}
    out = compare_scenarios(run_forecast(empty), run_forecast(with_revenue))
    assert out["revenue_delta"] == 20
    assert out["revenue_delta_pct"] == 0.0
