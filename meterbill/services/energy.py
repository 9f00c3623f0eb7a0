"""
Energy and billing reports built on the reading store and the engine.

Each report resolves its window, fetches a fresh ascending series from the
store (nothing is cached between requests), runs the pure engine functions
and rounds energy and money figures to 2 decimals only when building the
result dict.

CHANGELOG:
- 2026-10-16: Add calendar, daily diff and custom range reports
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from collections import defaultdict
from datetime import UTC, date, datetime
from typing import Any

from meterbill.engine.integration import (
    DEFAULT_RATE_PER_KWH,
    HOURS_PER_DAY,
    EnergyWindow,
    bill_for,
    integrate,
    integrate_by_start_hour,
    integrate_hour_buckets,
    peak_and_average,
    power_of,
)
from meterbill.engine.solar import SUN_HOURS, size_solar
from meterbill.engine.windows import (
    DEFAULT_LOCAL_OFFSET_HOURS,
    TimeFrame,
    calendar_window,
    day_window,
    frame_tz,
    previous_utc_day,
)
from meterbill.services.store import ENERGY_FIELDS, ReadingStore

logger = logging.getLogger(__name__)


def _r2(value: float) -> float:
    return round(value, 2)


def _hour_label(hour: int) -> str:
    return f"{hour:02d}:00"


async def fetch_window(
    store: ReadingStore,
    start: datetime,
    end: datetime,
) -> EnergyWindow:
    """Fetch the ascending ``(ts, active_power_total)`` series for a range."""
    samples = await store.query_range(start, end, ascending=True, fields=ENERGY_FIELDS)
    return EnergyWindow(start=start, end=end, samples=samples)


async def daily_energy(
    store: ReadingStore,
    day: date,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any]:
    """Return energy, bill and sample count for one UTC day."""
    window = await fetch_window(store, *day_window(day, TimeFrame.UTC))
    energy = window.energy_kwh
    return {
        "date": day.isoformat(),
        "energy_kwh": _r2(energy),
        "electricity_bill": bill_for(energy, rate_per_kwh),
        "samples": len(window),
    }


async def daily_bill(
    store: ReadingStore,
    day: date,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any] | None:
    """Return the bill summary for one UTC day, or None when it has no samples."""
    window = await fetch_window(store, *day_window(day, TimeFrame.UTC))
    if not window.samples:
        return None

    energy = window.energy_kwh
    stats = peak_and_average(window.samples)
    return {
        "date": day.isoformat(),
        "samples": stats.count,
        "total_energy_kwh": _r2(energy),
        "avg_power_kw": _r2(stats.avg_power),
        "max_power_kw": _r2(stats.max_power),
        "min_power_kw": _r2(stats.min_power),
        "electricity_bill": bill_for(energy, rate_per_kwh),
        "rate_per_kwh": rate_per_kwh,
    }


async def daily_diff(
    store: ReadingStore,
    now: datetime | None = None,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any]:
    """Compare yesterday with the day before (UTC days).

    ``diff`` is ``day_before - yesterday``, so a positive value means
    yesterday consumed less.
    """
    yesterday = await daily_energy(store, previous_utc_day(now, 1), rate_per_kwh)
    day_before = await daily_energy(store, previous_utc_day(now, 2), rate_per_kwh)
    return {
        "yesterday": yesterday,
        "day_before": day_before,
        "diff": {
            "kwh": _r2(day_before["energy_kwh"] - yesterday["energy_kwh"]),
            "electricity_bill": _r2(
                day_before["electricity_bill"] - yesterday["electricity_bill"]
            ),
        },
    }


async def calendar(
    store: ReadingStore,
    now: datetime | None = None,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> list[dict[str, Any]]:
    """Return per-day energy and bill for the previous and current UTC month.

    Samples are grouped by UTC date before integrating, so no pair spans
    midnight. Days without samples are omitted.
    """
    window = await fetch_window(store, *calendar_window(now))

    by_day: dict[date, list[Any]] = defaultdict(list)
    for sample in window.samples:
        by_day[sample.ts.astimezone(UTC).date()].append(sample)

    days = []
    for day in sorted(by_day):
        energy = _r2(integrate(by_day[day]))
        days.append(
            {
                "date": day.isoformat(),
                "energy_kwh": energy,
                "electricity_bill": bill_for(energy, rate_per_kwh),
                "samples": len(by_day[day]),
            }
        )
    return days


async def hourly_bill(
    store: ReadingStore,
    day: date,
    frame: TimeFrame = TimeFrame.LOCAL,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
    offset_hours: int = DEFAULT_LOCAL_OFFSET_HOURS,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return 24 hourly energy/bill buckets for *day* in *frame*.

    Pairs are split at hour boundaries. When *day* is today in *frame*,
    hours after the current one are reported as 0.
    """
    if now is None:
        now = datetime.now(tz=UTC)
    tz = frame_tz(frame, offset_hours)
    window = await fetch_window(store, *day_window(day, frame, offset_hours))
    buckets = integrate_hour_buckets(window.samples, tz, day=day, now=now)

    return {
        "date": day.isoformat(),
        "frame": frame.value,
        "hourly": [
            {
                "hour": _hour_label(hour),
                "energy_kwh": _r2(energy),
                "electricity_bill": bill_for(energy, rate_per_kwh),
            }
            for hour, energy in enumerate(buckets.energy)
        ],
        "total_energy_kwh": _r2(buckets.total),
        "samples": len(window),
    }


async def hourly_summary(
    store: ReadingStore,
    day: date,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any]:
    """Return 24 UTC hour buckets, each pair credited whole to its start hour."""
    window = await fetch_window(store, *day_window(day, TimeFrame.UTC))
    energy = integrate_by_start_hour(window.samples, UTC)

    hourly = []
    for hour in range(HOURS_PER_DAY):
        kwh = _r2(energy[hour])
        hourly.append(
            {
                "hour": _hour_label(hour),
                "energy_kwh": kwh,
                "electricity_bill": bill_for(kwh, rate_per_kwh),
            }
        )
    return {"date": day.isoformat(), "hourly": hourly}


async def energy_range(
    store: ReadingStore,
    start: datetime,
    end: datetime,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any]:
    """Return energy, bill and power statistics for an explicit range."""
    window = await fetch_window(store, start, end)
    energy = window.energy_kwh
    stats = peak_and_average(window.samples)
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "samples": stats.count,
        "total_energy_kwh": _r2(energy),
        "electricity_bill": bill_for(energy, rate_per_kwh),
        "avg_power_kw": _r2(stats.avg_power),
        "max_power_kw": _r2(stats.max_power),
        "min_power_kw": _r2(stats.min_power) if stats.count else None,
        "rate_per_kwh": rate_per_kwh,
    }


def empty_solar_report(day: date) -> dict[str, Any]:
    """Zeroed solar report returned alongside a 404 for days without data."""
    return {
        "date": day.isoformat(),
        "hourly": [
            {
                "hour": _hour_label(hour),
                "energy_kwh": 0.0,
                "electricity_bill": 0.0,
                "peak_power": 0.0,
            }
            for hour in range(HOURS_PER_DAY)
        ],
        "day_energy": 0.0,
        "night_energy": 0.0,
        "day_cost": 0.0,
        "night_cost": 0.0,
        "total_energy_kwh": 0.0,
        "total_cost": 0.0,
        "sun_hours": SUN_HOURS,
        "solar_capacity_kw": 0.0,
        "peak_power_day": 0.0,
        "savings_day": 0.0,
        "savings_month": 0.0,
        "savings_year": 0.0,
    }


async def solar_size(
    store: ReadingStore,
    day: date,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any] | None:
    """Return the day/night solar sizing report for a UTC day.

    Returns None when the day has no samples.
    """
    window = await fetch_window(store, *day_window(day, TimeFrame.UTC))
    if not window.samples:
        return None

    buckets = integrate_hour_buckets(window.samples, UTC)
    sizing = size_solar(buckets, rate_per_kwh)

    return {
        "date": day.isoformat(),
        "hourly": [
            {
                "hour": _hour_label(hour),
                "energy_kwh": _r2(buckets.energy[hour]),
                "electricity_bill": bill_for(buckets.energy[hour], rate_per_kwh),
                "peak_power": _r2(buckets.peak[hour]),
            }
            for hour in range(HOURS_PER_DAY)
        ],
        "day_energy": _r2(sizing.day_energy_kwh),
        "night_energy": _r2(sizing.night_energy_kwh),
        "day_cost": _r2(sizing.day_cost),
        "night_cost": _r2(sizing.night_cost),
        "total_energy_kwh": _r2(sizing.total_energy_kwh),
        "total_cost": _r2(sizing.total_cost),
        "sun_hours": sizing.sun_hours,
        "solar_capacity_kw": _r2(sizing.solar_capacity_kw),
        "peak_power_day": _r2(sizing.peak_power_day),
        "savings_day": _r2(sizing.savings_day),
        "savings_month": _r2(sizing.savings_month),
        "savings_year": _r2(sizing.savings_year),
    }


async def day_series(
    store: ReadingStore,
    day: date,
    limit: int,
) -> dict[str, Any]:
    """Return the raw power series of a UTC day for charting.

    Zero power is reported as None so charts show gaps instead of flat lines.
    """
    start, end = day_window(day, TimeFrame.UTC)
    samples = await store.query_range(
        start, end, ascending=True, fields=ENERGY_FIELDS, limit=limit
    )
    points = []
    for sample in samples:
        value = power_of(sample)
        points.append(
            {
                "ts": sample.ts.astimezone(UTC).isoformat(),
                "value": None if value == 0 else value,
            }
        )
    logger.debug("Day series %s: %d point(s)", day.isoformat(), len(points))
    return {"date": day.isoformat(), "points": points}
