"""Period skeletons and growth curves."""

from __future__ import annotations

from dataclasses import dataclass
from typing import assert_never

import numpy as np

from forecast_engine.schema import Cadence, GrowthType


@dataclass(frozen=True)
class PeriodSlot:
    """One period of the forecast horizon before any money is attached."""

    period: int
    label: str
    attendance: int | None


def period_label(cadence: Cadence, period: int) -> str:
    if cadence is Cadence.WEEKLY:
        return f"Week {period}"
    if cadence is Cadence.MONTHLY:
        return f"Month {period}"
    assert_never(cadence)


def growth_curve(
    growth_type: GrowthType,
    rate: float,
    horizon: int,
    seasonal_factors: tuple[float, ...] | list[float] = (),
) -> np.ndarray:
    """Multiplier per period; period 1 is always 1.0 before seasonal factors.

    Linear growth adds ``rate`` of the base per period, exponential compounds it.
    Seasonal growth compounds like exponential and then applies the factors
    cyclically, so a 12-entry factor list repeats every 12 periods.
    """
    if horizon <= 0:
        return np.zeros(0, dtype=float)
    t = np.arange(horizon, dtype=float)
    if growth_type is GrowthType.LINEAR:
        return 1.0 + float(rate) * t
    if growth_type is GrowthType.EXPONENTIAL:
        return (1.0 + float(rate)) ** t
    if growth_type is GrowthType.SEASONAL:
        base = (1.0 + float(rate)) ** t
        if not seasonal_factors:
            return base
        return base * np.resize(np.asarray(seasonal_factors, dtype=float), horizon)
    assert_never(growth_type)


def round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(np.asarray(values, dtype=float) + 0.5)


def attendance_series(
    initial_attendance: float | None,
    growth_rate: float,
    horizon: int,
    growth_type: GrowthType = GrowthType.EXPONENTIAL,
    seasonal_factors: tuple[float, ...] = (),
) -> np.ndarray:
    """Whole-attendee counts per period, rounded half up."""
    initial = float(initial_attendance or 0.0)
    curve = growth_curve(growth_type, growth_rate, horizon, seasonal_factors)
    return round_half_up(initial * curve)


def generate_periods(
    duration: int,
    cadence: Cadence,
    initial_attendance: float | None = None,
    attendance_growth_rate: float = 0.0,
    growth_type: GrowthType = GrowthType.EXPONENTIAL,
    seasonal_factors: tuple[float, ...] = (),
) -> list[PeriodSlot]:
    if duration <= 0:
        return []
    if cadence is Cadence.WEEKLY:
        attendance = attendance_series(initial_attendance, attendance_growth_rate, duration, growth_type, seasonal_factors)
        return [
            PeriodSlot(period=i + 1, label=period_label(cadence, i + 1), attendance=int(attendance[i]))
            for i in range(duration)
        ]
    if cadence is Cadence.MONTHLY:
        return [PeriodSlot(period=i + 1, label=period_label(cadence, i + 1), attendance=None) for i in range(duration)]
    assert_never(cadence)
