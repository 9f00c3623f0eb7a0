"""
Trapezoidal energy integration over irregularly sampled power readings.

Converts ordered (timestamp, active power) samples into energy in kWh, either
as a single total or split into 24 hour-of-day buckets. All functions are
pure: no I/O, no clock unless ``now`` is passed in explicitly.

Samples are any objects exposing ``ts`` (timezone-aware datetime) and
``active_power_total`` (kW, may be None). ORM rows, projected result rows and
the :class:`Sample` dataclass all qualify. Callers are responsible for
ordering; nothing here sorts or clamps.

CHANGELOG:
- 2026-10-16: Add start-hour attribution for the hourly summary view
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo
from itertools import pairwise
from typing import Any

DEFAULT_RATE_PER_KWH = 4.4
"""Default electricity tariff in currency units per kWh."""

HOURS_PER_DAY = 24

_ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class Sample:
    """Minimal reading used by the engine.

    Attributes:
        ts: Measurement instant (timezone-aware).
        active_power_total: Total active power in kW, or None when absent.
    """

    ts: datetime
    active_power_total: float | None = None


@dataclass(frozen=True)
class EnergyWindow:
    """Read-only view over the samples of a half-open ``[start, end)`` range."""

    start: datetime
    end: datetime
    samples: Sequence[Any] = ()

    @property
    def energy_kwh(self) -> float:
        return integrate(self.samples)

    def __len__(self) -> int:
        return len(self.samples)


@dataclass
class HourBuckets:
    """Energy and peak power per hour of day.

    Attributes:
        energy: 24 energy accumulators in kWh, index = hour of day.
        peak: 24 running maxima of sample power in kW.
    """

    energy: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    peak: list[float] = field(default_factory=lambda: [0.0] * HOURS_PER_DAY)

    @property
    def total(self) -> float:
        return sum(self.energy)


@dataclass(frozen=True)
class PowerStats:
    """Single-pass power statistics.

    ``min_power`` is ``math.inf`` when no samples were seen; callers must
    special-case ``count == 0`` before reporting it.
    """

    max_power: float
    min_power: float
    avg_power: float
    count: int


def power_of(sample: Any) -> float:
    """Return the sample's active power in kW, treating missing values as 0."""
    value = getattr(sample, "active_power_total", None)
    if value is None:
        return 0.0
    return float(value)


def hours_between(start: datetime, end: datetime) -> float:
    """Return the signed number of hours from *start* to *end*."""
    return (end - start).total_seconds() / 3600.0


def integrate(samples: Sequence[Any]) -> float:
    """Integrate power over time with the trapezoidal rule.

    Each consecutive pair contributes ``(p_prev + p_curr) / 2 * hours``.
    Zero or one sample yields 0. Out-of-order timestamps produce negative
    intervals, which are summed as-is.

    Args:
        samples: Samples sorted ascending by ``ts``.

    Returns:
        float: Energy in kWh.
    """
    total = 0.0
    for prev, curr in pairwise(samples):
        avg_power = (power_of(prev) + power_of(curr)) / 2
        total += avg_power * hours_between(prev.ts, curr.ts)
    return total


def _next_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0) + _ONE_HOUR


def integrate_hour_buckets(
    samples: Sequence[Any],
    tz: tzinfo = UTC,
    *,
    day: date | None = None,
    now: datetime | None = None,
) -> HourBuckets:
    """Integrate samples into 24 hour-of-day buckets.

    Each pair's interval is cut at the wall-clock hour boundaries of *tz*.
    Every sub-interval ``[t, min(next_hour, pair_end))`` adds
    ``avg_power * hours`` to the bucket of the hour containing ``t``, so a
    pair spanning 07:58-08:02 is split at 08:00 between buckets 7 and 8.
    The peak of a bucket is the largest sample power of any pair touching it.

    When *day* and *now* are both given and *day* is today in *tz*, every
    bucket after the current hour is forced to 0.

    Args:
        samples: Samples sorted ascending by ``ts``.
        tz: Time reference for hour boundaries (UTC or a fixed offset).
        day: Calendar day being integrated, in *tz*.
        now: Current instant, used only for the future-hours policy.

    Returns:
        HourBuckets: Energy (kWh) and peak power (kW) per hour.
    """
    buckets = HourBuckets()

    for prev, curr in pairwise(samples):
        p_prev = power_of(prev)
        p_curr = power_of(curr)
        avg_power = (p_prev + p_curr) / 2
        pair_peak = max(p_prev, p_curr)

        cursor = prev.ts.astimezone(tz)
        pair_end = curr.ts.astimezone(tz)
        while cursor < pair_end:
            boundary = min(_next_hour(cursor), pair_end)
            hour = cursor.hour
            buckets.energy[hour] += avg_power * hours_between(cursor, boundary)
            if pair_peak > buckets.peak[hour]:
                buckets.peak[hour] = pair_peak
            cursor = boundary

    if day is not None and now is not None:
        zero_future_hours(buckets, day=day, now=now, tz=tz)

    return buckets


def zero_future_hours(
    buckets: HourBuckets,
    *,
    day: date,
    now: datetime,
    tz: tzinfo = UTC,
) -> HourBuckets:
    """Force buckets after the current hour to 0 when *day* is today in *tz*."""
    local_now = now.astimezone(tz)
    if day != local_now.date():
        return buckets
    for hour in range(local_now.hour + 1, HOURS_PER_DAY):
        buckets.energy[hour] = 0.0
        buckets.peak[hour] = 0.0
    return buckets


def integrate_by_start_hour(samples: Sequence[Any], tz: tzinfo = UTC) -> list[float]:
    """Attribute each pair's whole trapezoid to the hour its first sample falls in.

    Coarser than :func:`integrate_hour_buckets`: pairs crossing an hour
    boundary are not split.
    """
    energy = [0.0] * HOURS_PER_DAY
    for prev, curr in pairwise(samples):
        avg_power = (power_of(prev) + power_of(curr)) / 2
        energy[prev.ts.astimezone(tz).hour] += avg_power * hours_between(
            prev.ts, curr.ts
        )
    return energy


def bill_for(kwh: float, rate_per_kwh: float = DEFAULT_RATE_PER_KWH) -> float:
    """Return the cost of *kwh* at *rate_per_kwh*, rounded to 2 decimals."""
    return round(kwh * rate_per_kwh, 2)


def peak_and_average(samples: Sequence[Any]) -> PowerStats:
    """Compute max, min and mean power in one pass.

    ``max_power`` starts at 0, so it never reports a negative peak.
    On empty input ``min_power`` is ``math.inf`` and ``avg_power`` is 0.
    """
    max_power = 0.0
    min_power = math.inf
    power_sum = 0.0
    count = 0
    for sample in samples:
        power = power_of(sample)
        power_sum += power
        count += 1
        if power > max_power:
            max_power = power
        if power < min_power:
            min_power = power
    avg_power = power_sum / count if count else 0.0
    return PowerStats(
        max_power=max_power,
        min_power=min_power,
        avg_power=avg_power,
        count=count,
    )
