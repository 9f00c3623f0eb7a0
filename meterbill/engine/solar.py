"""
Day/night split and solar sizing derived from hour buckets.

"Day" is the 13 buckets covering 06:00-19:00 (indices 6 through 18), "night"
is everything else. Required PV capacity is daytime energy divided by a
fixed number of peak sun hours. Savings projections scale one day linearly
(30 days a month, 365 a year); they are an approximation, not calendar
accurate.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

from meterbill.engine.integration import DEFAULT_RATE_PER_KWH, HourBuckets

DAY_HOURS = range(6, 19)
SUN_HOURS = 4
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365


@dataclass(frozen=True)
class SolarSizing:
    """Unrounded solar sizing figures for one day.

    Attributes:
        day_energy_kwh: Energy consumed in buckets 6-18.
        night_energy_kwh: Energy consumed in buckets 0-5 and 19-23.
        total_energy_kwh: Sum of day and night energy.
        sun_hours: Assumed peak sun hours used for sizing.
        solar_capacity_kw: PV capacity needed to cover daytime energy.
        peak_power_day: Largest hourly peak power in kW.
        rate_per_kwh: Tariff used for costs and savings.
        savings_day: Daytime energy cost avoided per day.
        savings_month: ``savings_day * 30``.
        savings_year: ``savings_day * 365``.
    """

    day_energy_kwh: float
    night_energy_kwh: float
    total_energy_kwh: float
    sun_hours: int
    solar_capacity_kw: float
    peak_power_day: float
    rate_per_kwh: float
    savings_day: float
    savings_month: float
    savings_year: float

    @property
    def day_cost(self) -> float:
        return self.day_energy_kwh * self.rate_per_kwh

    @property
    def night_cost(self) -> float:
        return self.night_energy_kwh * self.rate_per_kwh

    @property
    def total_cost(self) -> float:
        return self.total_energy_kwh * self.rate_per_kwh


def split_day_night(energy: list[float]) -> tuple[float, float]:
    """Return ``(day_kwh, night_kwh)`` from 24 hourly energy buckets."""
    day = sum(energy[hour] for hour in DAY_HOURS)
    night = sum(kwh for hour, kwh in enumerate(energy) if hour not in DAY_HOURS)
    return day, night


def size_solar(
    buckets: HourBuckets,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
    sun_hours: int = SUN_HOURS,
) -> SolarSizing:
    """Derive day/night energy, PV capacity and savings from hour buckets."""
    day, night = split_day_night(buckets.energy)
    savings_day = day * rate_per_kwh
    return SolarSizing(
        day_energy_kwh=day,
        night_energy_kwh=night,
        total_energy_kwh=day + night,
        sun_hours=sun_hours,
        solar_capacity_kw=day / sun_hours,
        peak_power_day=max(buckets.peak),
        rate_per_kwh=rate_per_kwh,
        savings_day=savings_day,
        savings_month=savings_day * DAYS_PER_MONTH,
        savings_year=savings_day * DAYS_PER_YEAR,
    )
