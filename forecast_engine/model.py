"""Forecast engine: per-period revenue, cost and profit lines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, assert_never

import numpy as np
import pandas as pd

from forecast_engine.defaults import MONEY_ROUND_DECIMALS, WEEKS_PER_MONTH
from forecast_engine.periods import PeriodSlot, generate_periods, growth_curve
from forecast_engine.runtime_logging import (
    ASSUMPTION_NORMALIZATION,
    FORECAST_CALCULATION,
    FORECAST_SKIPPED,
    UNKNOWN_ASSUMPTION_KEYS,
    append_runtime_event,
    log_warnings,
)
from forecast_engine.schema import (
    FB_SALES_STREAM,
    MERCHANDISE_SALES_STREAM,
    PER_CUSTOMER_STREAMS,
    Cadence,
    ChannelDistribution,
    CostItem,
    CostType,
    GrowthType,
    MarketingAllocation,
    MarketingChannel,
    MarketingSetup,
    ModelAssumptions,
    RevenueType,
    normalize_assumptions,
)


MARKETING_LINE = "Marketing"
FB_COGS_LINE = "F&B COGS"
MERCHANDISE_COGS_LINE = "Merchandise COGS"
STAFF_COSTS_LINE = "Staff Costs"
MANAGEMENT_COSTS_LINE = "Management Costs"

BASE_COLUMNS = [
    "Period",
    "Label",
    "Attendance",
    "Revenue",
    "Cost",
    "Profit",
    "Cumulative Revenue",
    "Cumulative Cost",
    "Cumulative Profit",
]


@dataclass(frozen=True)
class PeriodRecord:
    period: int
    label: str
    revenue: int
    cost: int
    profit: int
    cumulative_revenue: int
    cumulative_cost: int
    cumulative_profit: int
    attendance: int | None = None
    revenue_breakdown: dict[str, int] = field(default_factory=dict)
    cost_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ForecastLines:
    """Unrounded per-period amounts for every revenue and cost line over the full duration."""

    slots: list[PeriodSlot]
    revenue: dict[str, np.ndarray]
    costs: dict[str, np.ndarray]
    warnings: list[str]


def ceil_money(values: np.ndarray) -> np.ndarray:
    return np.ceil(np.round(np.asarray(values, dtype=float), MONEY_ROUND_DECIMALS)).astype(np.int64)


def _add_line(lines: dict[str, np.ndarray], name: str, values: np.ndarray) -> None:
    if name in lines:
        lines[name] = lines[name] + values
    else:
        lines[name] = values


def _per_customer_active(model: ModelAssumptions) -> bool:
    return model.metadata.cadence is Cadence.WEEKLY and model.metadata.per_customer is not None


def _revenue_lines(model: ModelAssumptions, attendance: np.ndarray, horizon: int) -> dict[str, np.ndarray]:
    lines: dict[str, np.ndarray] = {}
    t = np.arange(horizon, dtype=float)
    per_customer_active = _per_customer_active(model)

    if per_customer_active:
        spend = model.metadata.per_customer
        growth = model.metadata.growth
        for stream_name, (spend_field, growth_field) in PER_CUSTOMER_STREAMS.items():
            base_spend = float(getattr(spend, spend_field))
            if growth.use_customer_spend_growth:
                spend_curve = (1.0 + float(getattr(growth, growth_field))) ** t
            else:
                spend_curve = np.ones(horizon)
            _add_line(lines, stream_name, attendance * base_spend * spend_curve)

    gm = model.growth_model
    curve = growth_curve(gm.type, gm.rate, horizon, gm.seasonal_factors)
    for stream in model.revenue_streams:
        if per_customer_active and stream.name in PER_CUSTOMER_STREAMS:
            continue
        if stream.type is RevenueType.FIXED:
            values = np.zeros(horizon)
            values[0] = stream.value
        elif stream.type is RevenueType.RECURRING or stream.type is RevenueType.VARIABLE:
            values = stream.value * curve
        else:
            assert_never(stream.type)
        _add_line(lines, stream.name, values)
    return lines


def cost_item_series(
    item: CostItem,
    horizon: int,
    revenue_lines: Mapping[str, np.ndarray],
    warnings: list[str] | None = None,
) -> np.ndarray:
    """Per-period amounts for one cost item over the full duration."""
    values = np.zeros(horizon)
    if horizon <= 0:
        return values
    if item.type is CostType.FIXED:
        if item.spread:
            values[:] = item.value / horizon
        else:
            values[0] = item.value
    elif item.type is CostType.VARIABLE:
        if item.driver:
            driver = revenue_lines.get(item.driver)
            if driver is None:
                if warnings is not None:
                    warnings.append(f"Cost '{item.name}' is driven by unknown stream '{item.driver}'; charged 0.")
            else:
                values = driver * (item.value / 100.0)
        else:
            values = item.value * growth_curve(GrowthType.EXPONENTIAL, item.growth_rate, horizon)
    elif item.type is CostType.RECURRING:
        values[:] = item.value / horizon if item.spread else item.value
    else:
        assert_never(item.type)
    return values


def channel_series(channel: MarketingChannel, horizon: int) -> np.ndarray:
    """One channel's spend per period, before any cadence conversion.

    A channel without a distribution spends its weekly budget every period.
    """
    values = np.zeros(horizon)
    distribution = channel.distribution
    if horizon <= 0:
        return values
    if distribution is None:
        values[:] = channel.weekly_budget
    elif distribution is ChannelDistribution.UPFRONT:
        values[0] = channel.weekly_budget
    elif distribution is ChannelDistribution.SPREAD_EVENLY:
        values[:] = channel.weekly_budget / horizon
    elif distribution is ChannelDistribution.SPREAD_CUSTOM:
        window = channel.spread_duration or horizon
        values[: min(window, horizon)] = channel.weekly_budget / window
    else:
        assert_never(distribution)
    return values


def marketing_series(marketing: MarketingSetup, cadence: Cadence, horizon: int) -> np.ndarray | None:
    """Marketing spend per period, or None when no marketing is allocated."""
    mode = marketing.allocation_mode
    values = np.zeros(horizon)
    if mode is MarketingAllocation.NONE:
        return None
    if mode is MarketingAllocation.CHANNELS:
        for channel in marketing.channels:
            values += channel_series(channel, horizon)
        if cadence is Cadence.MONTHLY:
            values *= WEEKS_PER_MONTH
        elif cadence is not Cadence.WEEKLY:
            assert_never(cadence)
    elif mode is MarketingAllocation.UPFRONT:
        if horizon > 0:
            values[0] = marketing.budget
    elif mode is MarketingAllocation.SPREAD_EVENLY:
        if horizon > 0:
            values[:] = marketing.budget / horizon
    elif mode is MarketingAllocation.SPREAD_CUSTOM:
        window = marketing.spread_duration or horizon
        if window > 0:
            values[: min(window, horizon)] = marketing.budget / window
    else:
        assert_never(mode)
    return values


def _cost_lines(
    model: ModelAssumptions,
    revenue_lines: dict[str, np.ndarray],
    horizon: int,
    warnings: list[str],
) -> dict[str, np.ndarray]:
    lines: dict[str, np.ndarray] = {}
    for item in model.costs:
        _add_line(lines, item.name, cost_item_series(item, horizon, revenue_lines, warnings))

    meta_costs = model.metadata.costs
    if meta_costs.fb_cogs_percent > 0 and FB_SALES_STREAM in revenue_lines:
        _add_line(lines, FB_COGS_LINE, revenue_lines[FB_SALES_STREAM] * meta_costs.fb_cogs_percent)
    if meta_costs.merchandise_cogs_percent > 0 and MERCHANDISE_SALES_STREAM in revenue_lines:
        _add_line(
            lines,
            MERCHANDISE_COGS_LINE,
            revenue_lines[MERCHANDISE_SALES_STREAM] * meta_costs.merchandise_cogs_percent,
        )
    if model.metadata.cadence is Cadence.WEEKLY:
        staff = meta_costs.staff_count * meta_costs.staff_cost_per_person
        if staff > 0:
            _add_line(lines, STAFF_COSTS_LINE, np.full(horizon, staff))
        if meta_costs.management_costs > 0:
            _add_line(lines, MANAGEMENT_COSTS_LINE, np.full(horizon, meta_costs.management_costs))

    marketing = marketing_series(model.marketing, model.metadata.cadence, horizon)
    if marketing is not None:
        _add_line(lines, MARKETING_LINE, marketing)
    return lines


def build_forecast_lines(model: ModelAssumptions) -> ForecastLines:
    meta = model.metadata
    horizon = max(int(meta.duration_periods), 0)
    gm = model.growth_model
    slots = generate_periods(
        horizon,
        meta.cadence,
        meta.initial_attendance,
        meta.growth.attendance_growth_rate,
        gm.type,
        gm.seasonal_factors,
    )
    attendance = np.array([s.attendance or 0 for s in slots], dtype=float)
    warnings: list[str] = []
    revenue = _revenue_lines(model, attendance, horizon)
    costs = _cost_lines(model, revenue, horizon, warnings)
    return ForecastLines(slots=slots, revenue=revenue, costs=costs, warnings=warnings)


def _sum_lines(lines: dict[str, np.ndarray], horizon: int) -> np.ndarray:
    total = np.zeros(horizon)
    for values in lines.values():
        total = total + values
    return total


def run_forecast(assumptions: ModelAssumptions | Mapping[str, Any], period_count: int | None = None) -> list[PeriodRecord]:
    """Project revenue, cost and profit per period with running totals.

    Accepts either normalized assumptions or a raw stored payload. Insufficient
    input yields an empty list and a logged warning rather than an exception.
    ``period_count`` trims the emitted window; spread costs stay amortized over
    the model's full duration.
    """
    model, warnings, unknown_keys = normalize_assumptions(assumptions)
    if warnings:
        log_warnings(ASSUMPTION_NORMALIZATION, warnings)
    if unknown_keys:
        append_runtime_event(
            level="INFO",
            event=UNKNOWN_ASSUMPTION_KEYS,
            message="Assumptions carry keys the engine does not read.",
            context={"keys": unknown_keys},
        )
    if model is None:
        append_runtime_event(level="WARNING", event=FORECAST_SKIPPED, message="Insufficient assumptions for a forecast.")
        return []

    horizon = int(model.metadata.duration_periods)
    if horizon <= 0:
        append_runtime_event(
            level="WARNING",
            event=FORECAST_SKIPPED,
            message="Forecast duration must be positive.",
            context={"duration_periods": horizon},
        )
        return []

    window = horizon if period_count is None else max(min(int(period_count), horizon), 0)
    if window == 0:
        return []

    lines = build_forecast_lines(model)
    if lines.warnings:
        log_warnings(FORECAST_CALCULATION, lines.warnings)

    revenue = ceil_money(_sum_lines(lines.revenue, horizon))[:window]
    cost = ceil_money(_sum_lines(lines.costs, horizon))[:window]
    profit = revenue - cost
    cum_revenue = np.cumsum(revenue)
    cum_cost = np.cumsum(cost)
    cum_profit = np.cumsum(profit)
    revenue_breakdown = {name: ceil_money(values) for name, values in lines.revenue.items()}
    cost_breakdown = {name: ceil_money(values) for name, values in lines.costs.items()}

    records: list[PeriodRecord] = []
    for i in range(window):
        slot = lines.slots[i]
        records.append(
            PeriodRecord(
                period=slot.period,
                label=slot.label,
                revenue=int(revenue[i]),
                cost=int(cost[i]),
                profit=int(profit[i]),
                cumulative_revenue=int(cum_revenue[i]),
                cumulative_cost=int(cum_cost[i]),
                cumulative_profit=int(cum_profit[i]),
                attendance=slot.attendance,
                revenue_breakdown={name: int(values[i]) for name, values in revenue_breakdown.items()},
                cost_breakdown={name: int(values[i]) for name, values in cost_breakdown.items()},
            )
        )
    return records


def forecast_frame(records: list[PeriodRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        row: dict[str, Any] = {
            "Period": r.period,
            "Label": r.label,
            "Attendance": r.attendance,
            "Revenue": r.revenue,
            "Cost": r.cost,
            "Profit": r.profit,
            "Cumulative Revenue": r.cumulative_revenue,
            "Cumulative Cost": r.cumulative_cost,
            "Cumulative Profit": r.cumulative_profit,
        }
        for name, value in r.revenue_breakdown.items():
            row[f"Revenue: {name}"] = value
        for name, value in r.cost_breakdown.items():
            row[f"Cost: {name}"] = value
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=BASE_COLUMNS)
    return pd.DataFrame(rows)


def forecast_totals(records: list[PeriodRecord]) -> dict[str, int]:
    if not records:
        return {"revenue": 0, "cost": 0, "profit": 0}
    last = records[-1]
    return {"revenue": last.cumulative_revenue, "cost": last.cumulative_cost, "profit": last.cumulative_profit}
