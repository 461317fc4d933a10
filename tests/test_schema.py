from __future__ import annotations

from copy import deepcopy

import pytest

from forecast_engine.schema import (
    ActualsEntry,
    Cadence,
    ChannelDistribution,
    CostType,
    GrowthType,
    MarketingAllocation,
    RevenueType,
    normalize_actuals,
    normalize_assumptions,
)


def test_defaults_normalize_cleanly(default_raw):
    model, warnings, unknown = normalize_assumptions(default_raw)
    assert warnings == []
    assert unknown == []
    assert model.metadata.cadence is Cadence.WEEKLY
    assert model.metadata.duration_periods == 12
    assert model.metadata.growth.attendance_growth_rate == pytest.approx(0.10)
    assert model.metadata.costs.fb_cogs_percent == pytest.approx(0.30)
    assert model.costs[0].type is CostType.FIXED
    assert model.marketing.allocation_mode is MarketingAllocation.NONE


def test_normalizing_twice_returns_same_model(default_raw):
    model, _, _ = normalize_assumptions(default_raw)
    again, warnings, _ = normalize_assumptions(model)
    assert again is model
    assert warnings == []


def test_cadence_follows_event_type():
    weekly, _, _ = normalize_assumptions({"metadata": {"type": "Weekly", "weeks": 8}})
    monthly, _, _ = normalize_assumptions({"metadata": {"type": "SaaS", "months": 24}})
    assert weekly.metadata.cadence is Cadence.WEEKLY
    assert weekly.metadata.duration_periods == 8
    assert monthly.metadata.cadence is Cadence.MONTHLY
    assert monthly.metadata.duration_periods == 24


def test_top_level_duration_overrides_metadata():
    model, _, _ = normalize_assumptions({"durationPeriods": 5, "metadata": {"type": "WeeklyEvent", "weeks": 12}})
    assert model.metadata.duration_periods == 5


def test_missing_duration_uses_default():
    model, _, _ = normalize_assumptions({"revenue": []})
    assert model.metadata.duration_periods == 12
    assert model.metadata.cadence is Cadence.MONTHLY


def test_insufficient_payloads():
    assert normalize_assumptions({})[0] is None
    assert normalize_assumptions({"name": "orphan"})[0] is None
    model, warnings, _ = normalize_assumptions(None)
    assert model is None
    assert warnings


def test_unknown_types_fall_back_to_recurring():
    raw = {
        "revenue": [{"name": "Tips", "value": 5, "type": "gratuity"}],
        "costs": [{"name": "Odd", "value": 5, "type": "mystery"}],
    }
    model, warnings, _ = normalize_assumptions(raw)
    assert model.revenue_streams[0].type is RevenueType.RECURRING
    assert model.costs[0].type is CostType.RECURRING
    assert len(warnings) == 2


def test_negative_and_invalid_values_are_reset():
    raw = {
        "revenue": [{"name": "Sales", "value": -10}, {"name": "Other", "value": "abc"}, {"value": 3}, "junk"],
        "growthModel": {"type": "linear", "rate": float("nan")},
    }
    model, warnings, _ = normalize_assumptions(raw)
    assert [s.value for s in model.revenue_streams] == [0.0, 0.0]
    assert model.growth_model.type is GrowthType.LINEAR
    assert model.growth_model.rate == 0.0
    assert len(warnings) == 5


def test_percent_fields_are_converted_and_clamped():
    raw = {
        "metadata": {
            "type": "WeeklyEvent",
            "growth": {"attendanceGrowthRate": 5, "fbSpendGrowth": 150},
            "costs": {"fbCOGSPercent": 35, "merchandiseCogsPercent": 50},
        },
        "costs": [{"name": "Supplies", "value": 10, "type": "variable", "growthRate": 3}],
    }
    model, warnings, _ = normalize_assumptions(raw)
    assert model.metadata.growth.attendance_growth_rate == pytest.approx(0.05)
    assert model.metadata.growth.fb_spend_growth == 1.0
    assert model.metadata.costs.fb_cogs_percent == pytest.approx(0.35)
    assert model.metadata.costs.merchandise_cogs_percent == pytest.approx(0.50)
    assert model.costs[0].growth_rate == pytest.approx(0.03)
    assert any("fbSpendGrowth" in w for w in warnings)


def test_legacy_setup_cost_is_bridged_only_in_weekly_cadence():
    cost = {"name": "Setup Costs", "value": 1200, "type": "recurring"}
    weekly, warnings, _ = normalize_assumptions({"costs": [cost], "metadata": {"type": "WeeklyEvent"}})
    monthly, _, _ = normalize_assumptions({"costs": [cost], "metadata": {"type": "Custom"}})
    explicit, _, _ = normalize_assumptions({"costs": [dict(cost, spread=False)], "metadata": {"type": "WeeklyEvent"}})
    assert weekly.costs[0].spread is True
    assert any("migrated" in w for w in warnings)
    assert monthly.costs[0].spread is False
    assert explicit.costs[0].spread is False


def test_marketing_modes():
    def mode(marketing: dict) -> MarketingAllocation:
        model, _, _ = normalize_assumptions({"revenue": [], "marketing": marketing})
        return model.marketing.allocation_mode

    assert mode({"allocationMode": "channels"}) is MarketingAllocation.CHANNELS
    assert mode({"allocationMode": "highLevel", "budgetApplication": "upfront"}) is MarketingAllocation.UPFRONT
    assert mode({"allocationMode": "highLevel", "budgetApplication": "spreadCustom"}) is MarketingAllocation.SPREAD_CUSTOM
    assert mode({"allocationMode": "highLevel"}) is MarketingAllocation.SPREAD_EVENLY
    assert mode({}) is MarketingAllocation.NONE

    model, warnings, _ = normalize_assumptions(
        {"revenue": [], "marketing": {"allocationMode": "highLevel", "budgetApplication": "sometimes", "budget": 50}}
    )
    assert model.marketing.allocation_mode is MarketingAllocation.SPREAD_EVENLY
    assert model.marketing.budget == 50
    assert warnings


def test_unknown_top_level_keys_are_reported(default_raw):
    raw = deepcopy(default_raw)
    raw["chartSettings"] = {"theme": "dark"}
    _, _, unknown = normalize_assumptions(raw)
    assert unknown == ["chartSettings"]


def test_normalize_actuals_indexes_by_period():
    entries, warnings = normalize_actuals(
        [
            {"period": 1, "revenueActuals": {"Sales": 100, "Bad": "x", "Empty": None}, "attendanceActual": 40},
            {"period": "2", "costActuals": {"Rent": 50}},
            {"period": None},
            ActualsEntry(period=3, revenue_actuals={"Sales": 1.0}),
        ],
        horizon=3,
    )
    assert sorted(entries) == [1, 2, 3]
    assert entries[1].revenue_actuals == {"Sales": 100.0}
    assert entries[1].attendance_actual == 40
    assert entries[2].cost_actuals == {"Rent": 50.0}
    assert len(warnings) == 2


def test_normalize_actuals_none_is_empty():
    assert normalize_actuals(None) == ({}, [])


def test_oversized_duration_is_clamped_with_warning():
    model, warnings, _ = normalize_assumptions({"revenue": [], "metadata": {"type": "Custom", "months": 10**12}})
    assert model.metadata.duration_periods == 520
    assert any("clamped to 520" in w for w in warnings)

    model, warnings, _ = normalize_assumptions({"revenue": [], "durationPeriods": 520})
    assert model.metadata.duration_periods == 520
    assert warnings == []


def test_channel_distribution_and_window():
    raw = {
        "revenue": [],
        "marketing": {
            "allocationMode": "channels",
            "channels": [
                {"name": "Launch", "weeklyBudget": 400, "distribution": "upfront"},
                {"name": "Radio", "weeklyBudget": 200, "distribution": "spreadCustom", "spreadDuration": 2},
                {"name": "Social", "weeklyBudget": 100},
                {"name": "Print", "weeklyBudget": 50, "distribution": "sometimes", "spreadDuration": -1},
            ],
        },
    }
    model, warnings, _ = normalize_assumptions(raw)
    launch, radio, social, printed = model.marketing.channels
    assert launch.distribution is ChannelDistribution.UPFRONT
    assert radio.distribution is ChannelDistribution.SPREAD_CUSTOM
    assert radio.spread_duration == 2
    assert social.distribution is None
    assert social.spread_duration is None
    assert printed.distribution is ChannelDistribution.SPREAD_EVENLY
    assert printed.spread_duration is None
    assert len(warnings) == 2


@pytest.mark.parametrize("period", [float("inf"), float("nan"), 1.7, "1.5", "soon", 10**400])
def test_actuals_with_unusable_period_are_skipped(period):
    entries, warnings = normalize_actuals([{"period": period, "revenueActuals": {"Sales": 10}}], horizon=3)
    assert entries == {}
    assert len(warnings) == 1


def test_whole_number_float_periods_are_accepted():
    entries, warnings = normalize_actuals([{"period": 2.0, "revenueActuals": {"Sales": 10}}], horizon=3)
    assert list(entries) == [2]
    assert warnings == []


def test_typed_actuals_entries_are_cleaned_like_mappings():
    entries, warnings = normalize_actuals(
        [
            ActualsEntry(
                period=1,
                revenue_actuals={"Subs": float("nan"), "Sales": 100},
                cost_actuals={"Rent": float("inf"), "Fees": "12.5"},
                attendance_actual=float("nan"),
            ),
            ActualsEntry(period=1.5, revenue_actuals={"Subs": 5.0}),
        ],
        horizon=3,
    )
    assert list(entries) == [1]
    assert entries[1].revenue_actuals == {"Sales": 100.0}
    assert entries[1].cost_actuals == {"Fees": 12.5}
    assert entries[1].attendance_actual == 0.0
    assert len(warnings) == 4
