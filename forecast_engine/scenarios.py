"""Scenario adjustments and one-way sensitivity analysis."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping

import pandas as pd

from forecast_engine.metrics import compare_scenarios, compute_metrics
from forecast_engine.model import run_forecast
from forecast_engine.runtime_logging import ASSUMPTION_NORMALIZATION, log_warnings
from forecast_engine.schema import ModelAssumptions, normalize_assumptions


@dataclass(frozen=True)
class ScenarioAdjustments:
    """Multipliers applied to a normalized model; 1.0 leaves a driver unchanged."""

    growth_rate: float = 1.0
    attendance: float = 1.0
    per_customer_spend: float = 1.0
    revenue_values: float = 1.0
    cost_values: float = 1.0
    marketing_budget: float = 1.0


DEFAULT_SENSITIVITY_DRIVERS = [
    "growth_rate",
    "attendance",
    "per_customer_spend",
    "revenue_values",
    "cost_values",
    "marketing_budget",
]

OUTPUT_KEYS = {
    "Total Revenue": "total_revenue",
    "Total Cost": "total_cost",
    "Total Profit": "total_profit",
    "Minimum Cumulative Profit": "min_cumulative_profit",
}


def _as_model(assumptions: ModelAssumptions | Mapping[str, Any]) -> ModelAssumptions | None:
    model, warnings, _ = normalize_assumptions(assumptions)
    if warnings:
        log_warnings(ASSUMPTION_NORMALIZATION, warnings)
    return model


def apply_adjustments(model: ModelAssumptions, adj: ScenarioAdjustments) -> ModelAssumptions:
    meta = model.metadata
    initial_attendance = meta.initial_attendance
    if initial_attendance is not None:
        initial_attendance = max(initial_attendance * adj.attendance, 0.0)

    per_customer = meta.per_customer
    if per_customer is not None:
        m = max(adj.per_customer_spend, 0.0)
        per_customer = replace(
            per_customer,
            ticket_price=per_customer.ticket_price * m,
            fb_spend=per_customer.fb_spend * m,
            merchandise_spend=per_customer.merchandise_spend * m,
            online_spend=per_customer.online_spend * m,
            misc_spend=per_customer.misc_spend * m,
        )

    growth = replace(meta.growth, attendance_growth_rate=meta.growth.attendance_growth_rate * adj.growth_rate)
    marketing = model.marketing
    marketing = replace(
        marketing,
        budget=max(marketing.budget * adj.marketing_budget, 0.0),
        channels=tuple(
            replace(ch, weekly_budget=max(ch.weekly_budget * adj.marketing_budget, 0.0)) for ch in marketing.channels
        ),
    )

    return replace(
        model,
        revenue_streams=tuple(replace(s, value=max(s.value * adj.revenue_values, 0.0)) for s in model.revenue_streams),
        # Driven costs are percentages of a stream and stay untouched.
        costs=tuple(c if c.driver else replace(c, value=max(c.value * adj.cost_values, 0.0)) for c in model.costs),
        metadata=replace(meta, initial_attendance=initial_attendance, per_customer=per_customer, growth=growth),
        marketing=marketing,
        growth_model=replace(model.growth_model, rate=model.growth_model.rate * adj.growth_rate),
    )


def compare_to_baseline(
    assumptions: ModelAssumptions | Mapping[str, Any],
    adj: ScenarioAdjustments,
    period_count: int | None = None,
) -> dict:
    model = _as_model(assumptions)
    if model is None:
        return compare_scenarios([], [])
    baseline = run_forecast(model, period_count=period_count)
    scenario = run_forecast(apply_adjustments(model, adj), period_count=period_count)
    return compare_scenarios(baseline, scenario)


def evaluate_outputs(metrics: dict) -> dict:
    out = {label: float(metrics[key]) for label, key in OUTPUT_KEYS.items()}
    out["Break-Even Period"] = metrics["break_even_period"]
    return out


def run_one_way_sensitivity(
    assumptions: ModelAssumptions | Mapping[str, Any],
    delta_pct: float,
    drivers: list[str] | None = None,
) -> pd.DataFrame:
    model = _as_model(assumptions)
    if model is None:
        return pd.DataFrame()
    base = evaluate_outputs(compute_metrics(run_forecast(model)))

    if drivers is None or len(drivers) == 0:
        drivers = DEFAULT_SENSITIVITY_DRIVERS

    rows = []
    for driver in drivers:
        if driver not in DEFAULT_SENSITIVITY_DRIVERS:
            continue
        for case, mult in [("Low", 1 - delta_pct), ("High", 1 + delta_pct)]:
            scenario = apply_adjustments(model, ScenarioAdjustments(**{driver: mult}))
            out = evaluate_outputs(compute_metrics(run_forecast(scenario)))
            rows.append(
                {
                    "Driver": driver,
                    "Case": case,
                    **out,
                    **{f"Delta {k}": out[k] - base[k] for k in OUTPUT_KEYS},
                }
            )
    return pd.DataFrame(rows)
