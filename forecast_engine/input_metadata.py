"""Input guidance metadata and advisory range checks."""

from __future__ import annotations

from typing import Any, Mapping


# Keys are dotted paths into the stored assumptions payload.
INPUT_GUIDANCE: dict[str, dict[str, Any]] = {
    "metadata.weeks": {"min": 1, "max": 52, "note": "Weekly events usually run for a season of up to a year."},
    "metadata.months": {"min": 1, "max": 60, "note": "Monthly product plans typically cover one to five years."},
    "metadata.initialWeeklyAttendance": {"min": 10, "max": 50000, "note": "Opening-week attendance for the event."},
    "metadata.growth.attendanceGrowthRate": {"min": 0.0, "max": 20.0, "note": "Weekly attendance growth in percent; sustained double digits are rare."},
    "metadata.growth.ticketPriceGrowth": {"min": 0.0, "max": 5.0, "note": "Per-period ticket price growth in percent."},
    "metadata.growth.fbSpendGrowth": {"min": 0.0, "max": 5.0, "note": "Per-period F&B spend growth in percent."},
    "metadata.growth.merchandiseSpendGrowth": {"min": 0.0, "max": 5.0, "note": "Per-period merchandise spend growth in percent."},
    "metadata.perCustomer.ticketPrice": {"min": 0.0, "max": 500.0, "note": "Average ticket revenue per attendee."},
    "metadata.perCustomer.fbSpend": {"min": 0.0, "max": 200.0, "note": "Average food and beverage spend per attendee."},
    "metadata.perCustomer.merchandiseSpend": {"min": 0.0, "max": 200.0, "note": "Average merchandise spend per attendee."},
    "metadata.costs.fbCOGSPercent": {"min": 20.0, "max": 45.0, "note": "F&B cost of goods as a percent of F&B sales."},
    "metadata.costs.merchandiseCOGSPercent": {"min": 0.0, "max": 70.0, "note": "Merchandise cost of goods as a percent of merchandise sales."},
    "metadata.costs.staffCount": {"min": 0, "max": 200, "note": "Event staff on shift each week."},
    "growthModel.rate": {"min": 0.0, "max": 0.2, "note": "Per-period growth as a fraction; 0.05 means 5% per period."},
    "marketing.spreadDuration": {"min": 1, "max": 52, "note": "Number of periods a custom marketing spread covers."},
}


def _fmt(v: float) -> str:
    if abs(v - round(v)) < 1e-9:
        return f"{int(round(v))}"
    return f"{v:.3f}".rstrip("0").rstrip(".")


def _lookup(raw: Mapping, path: str) -> Any:
    node: Any = raw
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def help_with_guidance(key: str, base_help: str) -> str:
    g = INPUT_GUIDANCE.get(key)
    if not g:
        return base_help
    return f"{base_help} Reasonable range: {_fmt(g['min'])} to {_fmt(g['max'])}. {g['note']}"


def advisory_warnings(raw: Mapping) -> list[str]:
    """Out-of-range values are reported, never rejected."""
    warnings: list[str] = []
    if not isinstance(raw, Mapping):
        return warnings
    for key, g in INPUT_GUIDANCE.items():
        value = _lookup(raw, key)
        if value is None or isinstance(value, bool):
            continue
        try:
            v = float(value)
        except (TypeError, ValueError):
            continue
        if v < g["min"] or v > g["max"]:
            warnings.append(
                f"{key}={v:.3f} is outside the recommended range [{_fmt(g['min'])}, {_fmt(g['max'])}]."
            )
    return warnings
