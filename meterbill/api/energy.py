"""
Energy and billing report endpoints.

Daily bill, day-over-day diff, monthly calendar, hourly breakdowns, custom
range energy and day/night solar sizing. Every report is computed fresh
from the reading store per request; energy and money figures are rounded to
2 decimals. ``rate_per_kwh`` overrides the configured default rate.

CHANGELOG:
- 2026-10-16: Add calendar, daily diff, hourly summary and energy range
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from meterbill.api.deps import SettingsDep, StoreDep, resolve_date
from meterbill.engine.windows import InvalidRangeError, TimeFrame, custom_window
from meterbill.services import energy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["energy"])

RateParam = Annotated[
    float | None,
    Query(ge=0, description="Electricity rate per kWh; defaults to RATE_PER_KWH."),
]


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class DailyBillOut(BaseModel):
    """Bill summary for one UTC day."""

    date: str
    samples: int
    total_energy_kwh: float
    avg_power_kw: float
    max_power_kw: float
    min_power_kw: float
    electricity_bill: float
    rate_per_kwh: float


class DayEnergyOut(BaseModel):
    """Energy, bill and sample count of one day."""

    date: str
    energy_kwh: float
    electricity_bill: float
    samples: int


class DiffOut(BaseModel):
    """Day-before minus yesterday."""

    kwh: float
    electricity_bill: float


class DailyDiffOut(BaseModel):
    """Comparison of the last two complete UTC days."""

    yesterday: DayEnergyOut
    day_before: DayEnergyOut
    diff: DiffOut


class HourOut(BaseModel):
    """One hour-of-day bucket."""

    hour: str
    energy_kwh: float
    electricity_bill: float


class HourlyBillOut(BaseModel):
    """24 hour buckets for one day in the selected frame."""

    date: str
    frame: TimeFrame
    hourly: list[HourOut]
    total_energy_kwh: float
    samples: int


class HourlySummaryOut(BaseModel):
    """24 UTC hour buckets with whole-pair start-hour attribution."""

    date: str
    hourly: list[HourOut]


class EnergyRangeOut(BaseModel):
    """Energy and power statistics for an explicit range."""

    start: datetime
    end: datetime
    samples: int
    total_energy_kwh: float
    electricity_bill: float
    avg_power_kw: float
    max_power_kw: float
    min_power_kw: float | None
    rate_per_kwh: float


class SolarHourOut(HourOut):
    """Hour bucket with the peak power seen in that hour."""

    peak_power: float


class SolarSizeOut(BaseModel):
    """Day/night split and solar sizing for one UTC day.

    Monthly and yearly savings scale one day linearly (x30, x365).
    """

    date: str
    hourly: list[SolarHourOut]
    day_energy: float
    night_energy: float
    day_cost: float
    night_cost: float
    total_energy_kwh: float
    total_cost: float
    sun_hours: int
    solar_capacity_kw: float
    peak_power_day: float
    savings_day: float
    savings_month: float
    savings_year: float


def _rate(value: float | None, settings: SettingsDep) -> float:
    return settings.rate_per_kwh if value is None else value


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def _daily_bill(
    date: str | None,
    settings: SettingsDep,
    store: StoreDep,
    rate_per_kwh: float | None,
) -> DailyBillOut | JSONResponse:
    day = resolve_date(date, "/v1/daily-bill/{date}", default_today=True)
    report = await energy.daily_bill(store, day, _rate(rate_per_kwh, settings))
    if report is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": f"No data found for {day.isoformat()}",
                "date": day.isoformat(),
                "total_energy_kwh": 0,
                "electricity_bill": 0,
            },
        )
    return DailyBillOut(**report)


@router.get("/daily-bill", response_model=DailyBillOut)
async def get_daily_bill(
    settings: SettingsDep,
    store: StoreDep,
    date: Annotated[str | None, Query(description="UTC day, YYYY-MM-DD.")] = None,
    rate_per_kwh: RateParam = None,
) -> DailyBillOut | JSONResponse:
    """Return energy, power statistics and bill for a UTC day (default today).

    Responds 404 with zeroed figures when the day has no readings.
    """
    return await _daily_bill(date, settings, store, rate_per_kwh)


@router.get("/daily-bill/{date}", response_model=DailyBillOut)
async def get_daily_bill_for_date(
    date: str,
    settings: SettingsDep,
    store: StoreDep,
    rate_per_kwh: RateParam = None,
) -> DailyBillOut | JSONResponse:
    """Path-parameter form of ``/v1/daily-bill``."""
    return await _daily_bill(date, settings, store, rate_per_kwh)


@router.get("/daily-diff", response_model=DailyDiffOut)
async def get_daily_diff(
    settings: SettingsDep,
    store: StoreDep,
    rate_per_kwh: RateParam = None,
) -> DailyDiffOut:
    """Compare yesterday with the day before (UTC days)."""
    report = await energy.daily_diff(store, rate_per_kwh=_rate(rate_per_kwh, settings))
    return DailyDiffOut(**report)


@router.get("/calendar", response_model=list[DayEnergyOut])
async def get_calendar(
    settings: SettingsDep,
    store: StoreDep,
    rate_per_kwh: RateParam = None,
) -> list[DayEnergyOut]:
    """Return per-day energy and bill for the previous and current month."""
    days = await energy.calendar(store, rate_per_kwh=_rate(rate_per_kwh, settings))
    return [DayEnergyOut(**day) for day in days]


@router.get("/hourly-bill/{date}", response_model=HourlyBillOut)
async def get_hourly_bill(
    date: str,
    settings: SettingsDep,
    store: StoreDep,
    frame: Annotated[TimeFrame, Query(description="Hour frame: utc or local.")] = (
        TimeFrame.LOCAL
    ),
    rate_per_kwh: RateParam = None,
) -> HourlyBillOut:
    """Return 24 hourly energy/bill buckets, future hours of today zeroed.

    Days without readings return 24 zero buckets.
    """
    day = resolve_date(date, "/v1/hourly-bill/{date}")
    report = await energy.hourly_bill(
        store,
        day,
        frame=frame,
        rate_per_kwh=_rate(rate_per_kwh, settings),
        offset_hours=settings.local_utc_offset_hours,
    )
    return HourlyBillOut(**report)


@router.get("/hourly-summary", response_model=HourlySummaryOut)
async def get_hourly_summary(
    settings: SettingsDep,
    store: StoreDep,
    date: Annotated[str | None, Query()] = None,
    rate_per_kwh: RateParam = None,
) -> HourlySummaryOut:
    """Return 24 UTC buckets crediting each pair to the hour it starts in."""
    day = resolve_date(date, "/v1/hourly-summary?date={date}")
    report = await energy.hourly_summary(store, day, _rate(rate_per_kwh, settings))
    return HourlySummaryOut(**report)


@router.get("/energy-range", response_model=EnergyRangeOut)
async def get_energy_range(
    settings: SettingsDep,
    store: StoreDep,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
    rate_per_kwh: RateParam = None,
) -> EnergyRangeOut:
    """Return energy, bill and power statistics between two instants."""
    if start is None or end is None:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing query params",
                "example": "/v1/energy-range"
                "?start=2025-10-02T00:00:00Z&end=2025-10-03T00:00:00Z",
            },
        )
    try:
        start, end = custom_window(start, end)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None

    report = await energy.energy_range(store, start, end, _rate(rate_per_kwh, settings))
    return EnergyRangeOut(**report)


@router.get("/solar-size", response_model=SolarSizeOut)
async def get_solar_size(
    settings: SettingsDep,
    store: StoreDep,
    date: Annotated[str | None, Query()] = None,
    rate_per_kwh: RateParam = None,
) -> SolarSizeOut | JSONResponse:
    """Return day/night energy split and solar capacity for a UTC day.

    Responds 404 with a zeroed report when the day has no readings.
    """
    day = resolve_date(date, "/v1/solar-size?date={date}")
    report = await energy.solar_size(store, day, _rate(rate_per_kwh, settings))
    if report is None:
        content: dict[str, Any] = {"error": f"No data for {day.isoformat()}"}
        content.update(energy.empty_solar_report(day))
        return JSONResponse(status_code=404, content=content)

    logger.debug(
        "Solar size %s: day=%.2f night=%.2f",
        day.isoformat(),
        report["day_energy"],
        report["night_energy"],
    )
    return SolarSizeOut(**report)
