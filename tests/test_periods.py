from __future__ import annotations

import numpy as np

from forecast_engine.periods import attendance_series, generate_periods, growth_curve
from forecast_engine.schema import Cadence, GrowthType


def test_weekly_attendance_compounds_and_rounds():
    slots = generate_periods(4, Cadence.WEEKLY, initial_attendance=100, attendance_growth_rate=0.10)
    assert [s.attendance for s in slots] == [100, 110, 121, 133]
    assert [s.label for s in slots] == ["Week 1", "Week 2", "Week 3", "Week 4"]
    assert [s.period for s in slots] == [1, 2, 3, 4]


def test_weekly_linear_attendance():
    slots = generate_periods(
        4, Cadence.WEEKLY, initial_attendance=100, attendance_growth_rate=0.10, growth_type=GrowthType.LINEAR
    )
    assert [s.attendance for s in slots] == [100, 110, 120, 130]


def test_monthly_periods_have_no_attendance():
    slots = generate_periods(3, Cadence.MONTHLY, initial_attendance=500, attendance_growth_rate=0.5)
    assert [s.attendance for s in slots] == [None, None, None]
    assert slots[-1].label == "Month 3"


def test_non_positive_duration_is_empty():
    assert generate_periods(0, Cadence.WEEKLY, 100, 0.1) == []
    assert generate_periods(-3, Cadence.MONTHLY) == []


def test_missing_initial_attendance_is_zero_for_weekly():
    slots = generate_periods(2, Cadence.WEEKLY, initial_attendance=None, attendance_growth_rate=0.1)
    assert [s.attendance for s in slots] == [0, 0]


def test_attendance_rounds_half_up():
    # 10 * 1.25 = 12.5 rounds to 13, matching commercial rounding.
    assert attendance_series(10, 0.25, 2).tolist() == [10.0, 13.0]


def test_seasonal_curve_cycles_factors():
    curve = growth_curve(GrowthType.SEASONAL, 0.0, 5, seasonal_factors=(1.0, 2.0))
    np.testing.assert_allclose(curve, [1.0, 2.0, 1.0, 2.0, 1.0])


def test_seasonal_curve_without_factors_matches_exponential():
    seasonal = growth_curve(GrowthType.SEASONAL, 0.05, 4)
    exponential = growth_curve(GrowthType.EXPONENTIAL, 0.05, 4)
    np.testing.assert_allclose(seasonal, exponential)


def test_growth_curve_first_period_is_base():
    for growth_type in GrowthType:
        assert growth_curve(growth_type, 0.3, 3)[0] == 1.0
