from __future__ import annotations

import pytest

from forecast_engine.scenarios import (
    ScenarioAdjustments,
    apply_adjustments,
    compare_to_baseline,
    run_one_way_sensitivity,
)
from forecast_engine.schema import normalize_assumptions


def test_apply_adjustments_scales_drivers(default_raw):
    model, _, _ = normalize_assumptions(default_raw)
    adjusted = apply_adjustments(
        model,
        ScenarioAdjustments(attendance=2.0, per_customer_spend=0.5, cost_values=3.0, growth_rate=0.0),
    )
    assert adjusted.metadata.initial_attendance == 200
    assert adjusted.metadata.per_customer.ticket_price == 10
    assert adjusted.costs[0].value == 3000
    assert adjusted.metadata.growth.attendance_growth_rate == 0.0
    # The baseline model is untouched.
    assert model.metadata.initial_attendance == 100


def test_driven_costs_are_not_scaled(monthly_raw):
    raw = dict(monthly_raw, costs=[{"name": "Fees", "value": 10, "type": "variable", "driver": "Subscriptions"}])
    model, _, _ = normalize_assumptions(raw)
    adjusted = apply_adjustments(model, ScenarioAdjustments(cost_values=5.0))
    assert adjusted.costs[0].value == 10


def test_compare_to_baseline(monthly_model):
    out = compare_to_baseline(monthly_model, ScenarioAdjustments(cost_values=2.0))
    assert out["cost_delta"] == 3200
    assert out["revenue_delta"] == 0
    assert out["profit_delta_pct"] == pytest.approx(-3200 / 4800 * 100)


def test_compare_to_baseline_with_unusable_input():
    out = compare_to_baseline({}, ScenarioAdjustments())
    assert out["revenue_delta"] == 0


def test_one_way_sensitivity_table(monthly_raw):
    df = run_one_way_sensitivity(monthly_raw, 0.1, drivers=["cost_values", "not_a_driver"])
    assert df["Driver"].tolist() == ["cost_values", "cost_values"]
    assert df["Case"].tolist() == ["Low", "High"]
    low, high = df.iloc[0], df.iloc[1]
    assert low["Delta Total Cost"] < 0 < high["Delta Total Cost"]
    assert low["Delta Total Revenue"] == 0
    assert "Break-Even Period" in df.columns


def test_one_way_sensitivity_default_drivers(weekly_raw):
    df = run_one_way_sensitivity(weekly_raw, 0.2)
    assert set(df["Driver"]) == {
        "growth_rate",
        "attendance",
        "per_customer_spend",
        "revenue_values",
        "cost_values",
        "marketing_budget",
    }
    attendance_high = df[(df["Driver"] == "attendance") & (df["Case"] == "High")].iloc[0]
    assert attendance_high["Delta Total Revenue"] > 0
