"""Default model template and engine constants."""

from __future__ import annotations


DEFAULT_DURATION_PERIODS = 12

# Ten years of weeks. Longer durations are clamped with a warning.
MAX_DURATION_PERIODS = 520

# Weekly channel budgets are converted to a calendar month with this factor.
WEEKS_PER_MONTH = 365.25 / 7 / 12

# Monetary values are rounded to this many decimals before the ceiling is taken,
# so float noise such as 100.00000000001 does not round up to 101.
MONEY_ROUND_DECIMALS = 6

DEFAULTS = {
    "revenue": [],
    "costs": [
        {"name": "Setup Costs", "value": 1000.0, "type": "fixed", "category": "operations"},
    ],
    "growthModel": {"type": "exponential", "rate": 0.0},
    "marketing": {"allocationMode": "none", "channels": []},
    "metadata": {
        "type": "WeeklyEvent",
        "weeks": 12,
        "initialWeeklyAttendance": 100,
        "perCustomer": {
            "ticketPrice": 20.0,
            "fbSpend": 10.0,
            "merchandiseSpend": 5.0,
            "onlineSpend": 2.0,
            "miscSpend": 1.0,
        },
        "growth": {
            "attendanceGrowthRate": 10.0,
            "useCustomerSpendGrowth": False,
            "ticketPriceGrowth": 0.0,
            "fbSpendGrowth": 0.0,
            "merchandiseSpendGrowth": 0.0,
            "onlineSpendGrowth": 0.0,
            "miscSpendGrowth": 0.0,
        },
        "costs": {
            "fbCOGSPercent": 30.0,
            "merchandiseCOGSPercent": 0.0,
            "staffCount": 5,
            "staffCostPerPerson": 100.0,
            "managementCosts": 500.0,
        },
    },
}
