"""
Pure energy computations: integration, windowing, solar sizing, peak tracking.

CHANGELOG:
- 2026-10-15: Initial creation
"""

from meterbill.engine.integration import (
    DEFAULT_RATE_PER_KWH,
    EnergyWindow,
    HourBuckets,
    PowerStats,
    Sample,
    bill_for,
    integrate,
    integrate_by_start_hour,
    integrate_hour_buckets,
    peak_and_average,
    power_of,
)
from meterbill.engine.peak import DailyPeakState, advance_peak
from meterbill.engine.solar import SolarSizing, size_solar, split_day_night
from meterbill.engine.windows import (
    InvalidDateError,
    InvalidRangeError,
    TimeFrame,
    custom_window,
    day_window,
    frame_tz,
    hour_slice_window,
    parse_date,
)

__all__ = [
    "DEFAULT_RATE_PER_KWH",
    "DailyPeakState",
    "EnergyWindow",
    "HourBuckets",
    "InvalidDateError",
    "InvalidRangeError",
    "PowerStats",
    "Sample",
    "SolarSizing",
    "TimeFrame",
    "advance_peak",
    "bill_for",
    "custom_window",
    "day_window",
    "frame_tz",
    "hour_slice_window",
    "integrate",
    "integrate_by_start_hour",
    "integrate_hour_buckets",
    "parse_date",
    "peak_and_average",
    "power_of",
    "size_solar",
    "split_day_night",
]
