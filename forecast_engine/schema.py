"""Assumption schema, enumerations, and normalization helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from forecast_engine.defaults import DEFAULT_DURATION_PERIODS, MAX_DURATION_PERIODS


class Cadence(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RevenueType(str, Enum):
    FIXED = "fixed"
    VARIABLE = "variable"
    RECURRING = "recurring"


class CostType(str, Enum):
    FIXED = "fixed"
    VARIABLE = "variable"
    RECURRING = "recurring"


class GrowthType(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    SEASONAL = "seasonal"


class MarketingAllocation(str, Enum):
    NONE = "none"
    CHANNELS = "channels"
    UPFRONT = "upfront"
    SPREAD_EVENLY = "spread_evenly"
    SPREAD_CUSTOM = "spread_custom"


class ChannelDistribution(str, Enum):
    UPFRONT = "upfront"
    SPREAD_EVENLY = "spread_evenly"
    SPREAD_CUSTOM = "spread_custom"


WEEKLY_EVENT_TYPES = {"WeeklyEvent", "Weekly"}

# Stream name -> (per-customer spend field, spend growth field).
PER_CUSTOMER_STREAMS = {
    "Ticket Sales": ("ticket_price", "ticket_price_growth"),
    "F&B Sales": ("fb_spend", "fb_spend_growth"),
    "Merchandise Sales": ("merchandise_spend", "merchandise_spend_growth"),
    "Online Sales": ("online_spend", "online_spend_growth"),
    "Miscellaneous Revenue": ("misc_spend", "misc_spend_growth"),
}

FB_SALES_STREAM = "F&B Sales"
MERCHANDISE_SALES_STREAM = "Merchandise Sales"
LEGACY_SETUP_COST_NAME = "Setup Costs"

# Marketing "highLevel" budget applications as stored by the model editor.
_BUDGET_APPLICATIONS = {
    "upfront": MarketingAllocation.UPFRONT,
    "spreadEvenly": MarketingAllocation.SPREAD_EVENLY,
    "spreadCustom": MarketingAllocation.SPREAD_CUSTOM,
}

_CHANNEL_DISTRIBUTIONS = {
    "upfront": ChannelDistribution.UPFRONT,
    "spreadEvenly": ChannelDistribution.SPREAD_EVENLY,
    "spreadCustom": ChannelDistribution.SPREAD_CUSTOM,
}

KNOWN_TOP_LEVEL_KEYS = {
    "revenue",
    "revenueStreams",
    "revenue_streams",
    "costs",
    "metadata",
    "marketing",
    "growthModel",
    "growth_model",
    "duration",
    "durationPeriods",
}


@dataclass(frozen=True)
class RevenueStream:
    name: str
    value: float
    type: RevenueType = RevenueType.RECURRING


@dataclass(frozen=True)
class CostItem:
    name: str
    value: float
    type: CostType = CostType.RECURRING
    spread: bool = False
    driver: str | None = None
    growth_rate: float = 0.0
    category: str = "other"


@dataclass(frozen=True)
class PerCustomerSpend:
    ticket_price: float = 0.0
    fb_spend: float = 0.0
    merchandise_spend: float = 0.0
    online_spend: float = 0.0
    misc_spend: float = 0.0


@dataclass(frozen=True)
class SpendGrowth:
    """Growth rates as fractions per period."""

    attendance_growth_rate: float = 0.0
    use_customer_spend_growth: bool = False
    ticket_price_growth: float = 0.0
    fb_spend_growth: float = 0.0
    merchandise_spend_growth: float = 0.0
    online_spend_growth: float = 0.0
    misc_spend_growth: float = 0.0


@dataclass(frozen=True)
class MetadataCosts:
    fb_cogs_percent: float = 0.0
    merchandise_cogs_percent: float = 0.0
    staff_count: float = 0.0
    staff_cost_per_person: float = 0.0
    management_costs: float = 0.0


@dataclass(frozen=True)
class ModelMetadata:
    event_type: str = "Custom"
    cadence: Cadence = Cadence.MONTHLY
    duration_periods: int = DEFAULT_DURATION_PERIODS
    initial_attendance: float | None = None
    per_customer: PerCustomerSpend | None = None
    growth: SpendGrowth = field(default_factory=SpendGrowth)
    costs: MetadataCosts = field(default_factory=MetadataCosts)


@dataclass(frozen=True)
class GrowthModel:
    type: GrowthType = GrowthType.EXPONENTIAL
    rate: float = 0.0
    seasonal_factors: tuple[float, ...] = ()


@dataclass(frozen=True)
class MarketingChannel:
    name: str
    channel_type: str
    weekly_budget: float
    distribution: ChannelDistribution | None = None
    spread_duration: int | None = None


@dataclass(frozen=True)
class MarketingSetup:
    allocation_mode: MarketingAllocation = MarketingAllocation.NONE
    budget: float = 0.0
    channels: tuple[MarketingChannel, ...] = ()
    spread_duration: int | None = None


@dataclass(frozen=True)
class ModelAssumptions:
    revenue_streams: tuple[RevenueStream, ...] = ()
    costs: tuple[CostItem, ...] = ()
    metadata: ModelMetadata = field(default_factory=ModelMetadata)
    marketing: MarketingSetup = field(default_factory=MarketingSetup)
    growth_model: GrowthModel = field(default_factory=GrowthModel)


@dataclass(frozen=True)
class ActualsEntry:
    period: int
    revenue_actuals: dict[str, float] = field(default_factory=dict)
    cost_actuals: dict[str, float] = field(default_factory=dict)
    attendance_actual: float | None = None


def _pick(mapping: Mapping, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return default


def _as_mapping(value: Any, key_name: str, warnings: list[str]) -> Mapping:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    warnings.append(f"{key_name} ignored because it is not an object.")
    return {}


def _as_records(value: Any, key_name: str, warnings: list[str]) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    warnings.append(f"{key_name} ignored because it is not a list.")
    return []


def _coerce_float(value: Any, default: float, key_name: str, warnings: list[str], minimum: float | None = 0.0) -> float:
    if value is None:
        return float(default)
    try:
        out = float(value)
    except (TypeError, ValueError):
        warnings.append(f"{key_name} invalid and reset to default.")
        return float(default)
    if not math.isfinite(out):
        warnings.append(f"{key_name} is not finite and was reset to default.")
        return float(default)
    if minimum is not None and out < minimum:
        warnings.append(f"{key_name} below {minimum:g} and was clamped.")
        return float(minimum)
    return out


def _coerce_percent(value: Any, key_name: str, warnings: list[str]) -> float:
    """Convert a 0-100 percentage into a fraction, clamped to [0, 1]."""
    pct = _coerce_float(value, 0.0, key_name, warnings)
    if pct > 100:
        warnings.append(f"{key_name} above 100 and was clamped.")
        pct = 100.0
    return pct / 100.0


def _coerce_bool(value: Any, default: bool, key_name: str, warnings: list[str]) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        txt = value.strip().lower()
        if txt in {"1", "true", "yes", "y", "on"}:
            return True
        if txt in {"0", "false", "no", "n", "off"}:
            return False
    warnings.append(f"{key_name} invalid and reset to default.")
    return default


def _coerce_int(value: Any, default: int, key_name: str, warnings: list[str]) -> int:
    if value is None:
        return int(default)
    try:
        out = float(value)
    except (TypeError, ValueError):
        warnings.append(f"{key_name} invalid and reset to default.")
        return int(default)
    if not math.isfinite(out):
        warnings.append(f"{key_name} is not finite and was reset to default.")
        return int(default)
    return int(out)


def _parse_enum(enum_cls: type[Enum], raw: Any, default: Enum, key_name: str, warnings: list[str]) -> Any:
    if raw is None:
        return default
    text = str(raw).strip().lower()
    for member in enum_cls:
        if member.value == text:
            return member
    warnings.append(f"{key_name} '{raw}' is not recognized; treated as {default.value}.")
    return default


def _cadence_for(event_type: str, raw_cadence: Any, warnings: list[str]) -> Cadence:
    if raw_cadence is not None:
        return _parse_enum(Cadence, raw_cadence, Cadence.MONTHLY, "metadata.cadence", warnings)
    return Cadence.WEEKLY if event_type in WEEKLY_EVENT_TYPES else Cadence.MONTHLY


def _normalize_metadata(raw: Mapping, duration_override: Any, warnings: list[str]) -> ModelMetadata:
    event_type = str(_pick(raw, "type", "eventType", default="Custom"))
    cadence = _cadence_for(event_type, _pick(raw, "cadence"), warnings)

    if duration_override is not None:
        raw_duration = duration_override
    elif cadence is Cadence.WEEKLY:
        raw_duration = _pick(raw, "durationPeriods", "weeks")
    else:
        raw_duration = _pick(raw, "durationPeriods", "months")
    duration = _coerce_int(raw_duration, DEFAULT_DURATION_PERIODS, "metadata.durationPeriods", warnings)
    if duration > MAX_DURATION_PERIODS:
        warnings.append(f"metadata.durationPeriods clamped to {MAX_DURATION_PERIODS}.")
        duration = int(min(MAX_DURATION_PERIODS, duration))

    raw_attendance = _pick(raw, "initialWeeklyAttendance", "initialAttendance")
    initial_attendance = None
    if raw_attendance is not None:
        initial_attendance = _coerce_float(raw_attendance, 0.0, "metadata.initialWeeklyAttendance", warnings)

    per_customer = None
    if _pick(raw, "perCustomer") is not None:
        pc = _as_mapping(raw["perCustomer"], "metadata.perCustomer", warnings)
        per_customer = PerCustomerSpend(
            ticket_price=_coerce_float(pc.get("ticketPrice"), 0.0, "metadata.perCustomer.ticketPrice", warnings),
            fb_spend=_coerce_float(pc.get("fbSpend"), 0.0, "metadata.perCustomer.fbSpend", warnings),
            merchandise_spend=_coerce_float(
                pc.get("merchandiseSpend"), 0.0, "metadata.perCustomer.merchandiseSpend", warnings
            ),
            online_spend=_coerce_float(pc.get("onlineSpend"), 0.0, "metadata.perCustomer.onlineSpend", warnings),
            misc_spend=_coerce_float(pc.get("miscSpend"), 0.0, "metadata.perCustomer.miscSpend", warnings),
        )

    g = _as_mapping(_pick(raw, "growth"), "metadata.growth", warnings)
    growth = SpendGrowth(
        attendance_growth_rate=_coerce_percent(g.get("attendanceGrowthRate"), "metadata.growth.attendanceGrowthRate", warnings),
        use_customer_spend_growth=_coerce_bool(
            g.get("useCustomerSpendGrowth"), False, "metadata.growth.useCustomerSpendGrowth", warnings
        ),
        ticket_price_growth=_coerce_percent(g.get("ticketPriceGrowth"), "metadata.growth.ticketPriceGrowth", warnings),
        fb_spend_growth=_coerce_percent(g.get("fbSpendGrowth"), "metadata.growth.fbSpendGrowth", warnings),
        merchandise_spend_growth=_coerce_percent(
            g.get("merchandiseSpendGrowth"), "metadata.growth.merchandiseSpendGrowth", warnings
        ),
        online_spend_growth=_coerce_percent(g.get("onlineSpendGrowth"), "metadata.growth.onlineSpendGrowth", warnings),
        misc_spend_growth=_coerce_percent(g.get("miscSpendGrowth"), "metadata.growth.miscSpendGrowth", warnings),
    )

    c = _as_mapping(_pick(raw, "costs"), "metadata.costs", warnings)
    costs = MetadataCosts(
        fb_cogs_percent=_coerce_percent(_pick(c, "fbCOGSPercent", "fbCogsPercent"), "metadata.costs.fbCOGSPercent", warnings),
        merchandise_cogs_percent=_coerce_percent(
            _pick(c, "merchandiseCOGSPercent", "merchandiseCogsPercent"), "metadata.costs.merchandiseCOGSPercent", warnings
        ),
        staff_count=_coerce_float(c.get("staffCount"), 0.0, "metadata.costs.staffCount", warnings),
        staff_cost_per_person=_coerce_float(c.get("staffCostPerPerson"), 0.0, "metadata.costs.staffCostPerPerson", warnings),
        management_costs=_coerce_float(c.get("managementCosts"), 0.0, "metadata.costs.managementCosts", warnings),
    )

    return ModelMetadata(
        event_type=event_type,
        cadence=cadence,
        duration_periods=duration,
        initial_attendance=initial_attendance,
        per_customer=per_customer,
        growth=growth,
        costs=costs,
    )


def _normalize_revenue(raw_streams: list, warnings: list[str]) -> tuple[RevenueStream, ...]:
    out: list[RevenueStream] = []
    for idx, item in enumerate(raw_streams):
        if not isinstance(item, Mapping):
            warnings.append(f"revenue[{idx}] ignored because entry is not an object.")
            continue
        name = str(item.get("name", "")).strip()
        if not name:
            warnings.append(f"revenue[{idx}] ignored because it has no name.")
            continue
        out.append(
            RevenueStream(
                name=name,
                value=_coerce_float(item.get("value"), 0.0, f"revenue[{idx}].value", warnings),
                type=_parse_enum(RevenueType, item.get("type"), RevenueType.RECURRING, f"revenue[{idx}].type", warnings),
            )
        )
    return tuple(out)


def _normalize_costs(raw_costs: list, cadence: Cadence, warnings: list[str]) -> tuple[CostItem, ...]:
    out: list[CostItem] = []
    for idx, item in enumerate(raw_costs):
        if not isinstance(item, Mapping):
            warnings.append(f"costs[{idx}] ignored because entry is not an object.")
            continue
        name = str(item.get("name", "")).strip()
        if not name:
            warnings.append(f"costs[{idx}] ignored because it has no name.")
            continue
        cost_type = _parse_enum(CostType, item.get("type"), CostType.RECURRING, f"costs[{idx}].type", warnings)
        raw_spread = _pick(item, "spread", "amortize", "spreadEvenly")
        spread = _coerce_bool(raw_spread, False, f"costs[{idx}].spread", warnings)

        # Older weekly models stored setup cost as recurring and divided it over the run.
        if raw_spread is None and name == LEGACY_SETUP_COST_NAME and cost_type is CostType.RECURRING and cadence is Cadence.WEEKLY:
            spread = True
            warnings.append(f"costs[{idx}] recurring '{name}' migrated to a spread cost.")

        driver = _pick(item, "driver", "linkedStream")
        out.append(
            CostItem(
                name=name,
                value=_coerce_float(item.get("value"), 0.0, f"costs[{idx}].value", warnings),
                type=cost_type,
                spread=spread,
                driver=str(driver).strip() if driver is not None else None,
                growth_rate=_coerce_percent(_pick(item, "growthRate", "growth_rate"), f"costs[{idx}].growthRate", warnings),
                category=str(item.get("category", "other")),
            )
        )
    return tuple(out)


def _normalize_growth_model(raw: Mapping, warnings: list[str]) -> GrowthModel:
    factors: list[float] = []
    for idx, factor in enumerate(_as_records(_pick(raw, "seasonalFactors", "seasonal_factors"), "growthModel.seasonalFactors", warnings)):
        factors.append(_coerce_float(factor, 1.0, f"growthModel.seasonalFactors[{idx}]", warnings))
    return GrowthModel(
        type=_parse_enum(GrowthType, raw.get("type"), GrowthType.EXPONENTIAL, "growthModel.type", warnings),
        rate=_coerce_float(raw.get("rate"), 0.0, "growthModel.rate", warnings),
        seasonal_factors=tuple(factors),
    )


def _normalize_marketing(raw: Mapping, warnings: list[str]) -> MarketingSetup:
    raw_mode = _pick(raw, "allocationMode", "allocation_mode", default="none")
    if raw_mode == "highLevel":
        application = raw.get("budgetApplication")
        mode = _BUDGET_APPLICATIONS.get(str(application))
        if mode is None:
            if application is not None:
                warnings.append(f"marketing.budgetApplication '{application}' invalid; reset to spreadEvenly.")
            mode = MarketingAllocation.SPREAD_EVENLY
    elif raw_mode in _BUDGET_APPLICATIONS:
        mode = _BUDGET_APPLICATIONS[raw_mode]
    else:
        mode = _parse_enum(MarketingAllocation, raw_mode, MarketingAllocation.NONE, "marketing.allocationMode", warnings)

    channels: list[MarketingChannel] = []
    for idx, ch in enumerate(_as_records(raw.get("channels"), "marketing.channels", warnings)):
        if not isinstance(ch, Mapping):
            warnings.append(f"marketing.channels[{idx}] ignored because entry is not an object.")
            continue
        key = f"marketing.channels[{idx}]"
        distribution = None
        raw_distribution = ch.get("distribution")
        if raw_distribution is not None:
            distribution = _CHANNEL_DISTRIBUTIONS.get(str(raw_distribution))
            if distribution is None:
                distribution = _parse_enum(
                    ChannelDistribution,
                    raw_distribution,
                    ChannelDistribution.SPREAD_EVENLY,
                    f"{key}.distribution",
                    warnings,
                )
        channel_window = None
        raw_channel_window = _pick(ch, "spreadDuration", "spread_duration")
        if raw_channel_window is not None:
            window = _coerce_int(raw_channel_window, 0, f"{key}.spreadDuration", warnings)
            if window > 0:
                channel_window = window
            else:
                warnings.append(f"{key}.spreadDuration must be positive; the full duration is used.")
        channels.append(
            MarketingChannel(
                name=str(ch.get("name", "")).strip() or f"Channel {idx + 1}",
                channel_type=str(_pick(ch, "channelType", "channel_type", default="other")),
                weekly_budget=_coerce_float(
                    _pick(ch, "weeklyBudget", "weekly_budget"), 0.0, f"{key}.weeklyBudget", warnings
                ),
                distribution=distribution,
                spread_duration=channel_window,
            )
        )

    spread_duration = None
    raw_window = _pick(raw, "spreadDuration", "spread_duration")
    if raw_window is not None:
        window = _coerce_int(raw_window, 0, "marketing.spreadDuration", warnings)
        if window > 0:
            spread_duration = window
        else:
            warnings.append("marketing.spreadDuration must be positive; the full duration is used.")

    return MarketingSetup(
        allocation_mode=mode,
        budget=_coerce_float(_pick(raw, "totalBudget", "budget"), 0.0, "marketing.totalBudget", warnings),
        channels=tuple(channels),
        spread_duration=spread_duration,
    )


def normalize_assumptions(raw: Any) -> tuple[ModelAssumptions | None, list[str], list[str]]:
    """Coerce a stored assumptions payload into ModelAssumptions.

    Returns (assumptions, warnings, unknown_keys). ``assumptions`` is None when
    the payload carries nothing to forecast from.
    """
    if isinstance(raw, ModelAssumptions):
        return raw, [], []
    if not isinstance(raw, Mapping):
        return None, ["Assumptions payload is not an object."], []

    warnings: list[str] = []
    unknown_keys = sorted(str(k) for k in raw if k not in KNOWN_TOP_LEVEL_KEYS)

    raw_revenue = _pick(raw, "revenue", "revenueStreams", "revenue_streams")
    raw_costs = _pick(raw, "costs")
    raw_metadata = _pick(raw, "metadata")
    if raw_revenue is None and raw_costs is None and raw_metadata is None:
        warnings.append("Assumptions have no revenue, costs or metadata; nothing to forecast.")
        return None, warnings, unknown_keys

    metadata = _normalize_metadata(
        _as_mapping(raw_metadata, "metadata", warnings),
        _pick(raw, "durationPeriods", "duration"),
        warnings,
    )
    assumptions = ModelAssumptions(
        revenue_streams=_normalize_revenue(_as_records(raw_revenue, "revenue", warnings), warnings),
        costs=_normalize_costs(_as_records(raw_costs, "costs", warnings), metadata.cadence, warnings),
        metadata=metadata,
        marketing=_normalize_marketing(_as_mapping(_pick(raw, "marketing"), "marketing", warnings), warnings),
        growth_model=_normalize_growth_model(
            _as_mapping(_pick(raw, "growthModel", "growth_model"), "growthModel", warnings), warnings
        ),
    )
    return assumptions, warnings, unknown_keys


def _amount_map(raw: Any, key_name: str, warnings: list[str]) -> dict[str, float]:
    out: dict[str, float] = {}
    for name, value in _as_mapping(raw, key_name, warnings).items():
        if value is None:
            continue
        try:
            amount = float(value)
        except (TypeError, ValueError):
            warnings.append(f"{key_name}['{name}'] ignored because value is invalid.")
            continue
        if not math.isfinite(amount):
            warnings.append(f"{key_name}['{name}'] ignored because value is not finite.")
            continue
        out[str(name)] = amount
    return out


def _actuals_period(raw: Any, key_name: str, warnings: list[str]) -> int | None:
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        warnings.append(f"{key_name} ignored because period is invalid.")
        return None
    if not math.isfinite(value) or value != int(value):
        warnings.append(f"{key_name} ignored because period {raw!r} is not a whole number.")
        return None
    return int(value)


def normalize_actuals(raw_entries: Iterable[Any] | None, horizon: int | None = None) -> tuple[dict[int, ActualsEntry], list[str]]:
    """Index actuals by period. Later entries for the same period replace earlier ones.

    Typed ``ActualsEntry`` items are checked the same way as stored mappings.
    """
    warnings: list[str] = []
    by_period: dict[int, ActualsEntry] = {}
    if raw_entries is None:
        return by_period, warnings
    if isinstance(raw_entries, Mapping):
        raw_entries = list(raw_entries.values())

    for idx, item in enumerate(raw_entries):
        key = f"actuals[{idx}]"
        if isinstance(item, ActualsEntry):
            raw_period = item.period
            raw_revenue, raw_costs, attendance = item.revenue_actuals, item.cost_actuals, item.attendance_actual
        elif isinstance(item, Mapping):
            raw_period = item.get("period")
            raw_revenue = _pick(item, "revenueActuals", "revenue_actuals")
            raw_costs = _pick(item, "costActuals", "cost_actuals")
            attendance = _pick(item, "attendanceActual", "attendance_actual")
        else:
            warnings.append(f"{key} ignored because entry is not an object.")
            continue

        period = _actuals_period(raw_period, key, warnings)
        if period is None:
            continue
        if attendance is not None:
            attendance = _coerce_float(attendance, 0.0, f"{key}.attendanceActual", warnings)
        entry = ActualsEntry(
            period=period,
            revenue_actuals=_amount_map(raw_revenue, f"{key}.revenueActuals", warnings),
            cost_actuals=_amount_map(raw_costs, f"{key}.costActuals", warnings),
            attendance_actual=attendance,
        )

        if entry.period < 1 or (horizon is not None and entry.period > horizon):
            warnings.append(f"{key} ignored because period {entry.period} is outside the forecast horizon.")
            continue
        if entry.period in by_period:
            warnings.append(f"{key} replaces an earlier entry for period {entry.period}.")
        by_period[entry.period] = entry
    return by_period, warnings
