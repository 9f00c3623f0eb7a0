"""
Scheduled computations: realtime peak check and daily rollup.

Both operations take their collaborators explicitly (store, sink, clock) so
the scheduler decides when they run and tests can drive them directly.
``run_peak_check`` takes the tracker state and returns the new one; it reads
the latest reading straight from the store on every tick.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from datetime import UTC, datetime
from typing import Any

from meterbill.engine.integration import DEFAULT_RATE_PER_KWH, bill_for, power_of
from meterbill.engine.peak import DailyPeakState, advance_peak
from meterbill.engine.windows import TimeFrame, day_window, previous_utc_day, today_in
from meterbill.services.energy import fetch_window
from meterbill.services.notifications import NotificationKind, NotificationSink
from meterbill.services.store import ENERGY_FIELDS, ReadingStore

logger = logging.getLogger(__name__)

PEAK_TITLE = "New Daily Peak"
DAILY_SUMMARY_TITLE = "Daily Energy Report"


async def run_peak_check(
    store: ReadingStore,
    sink: NotificationSink,
    state: DailyPeakState,
    now: datetime | None = None,
) -> DailyPeakState:
    """Compare the latest reading with today's peak and notify on a new high.

    Args:
        store: Reading store to fetch the latest reading from.
        sink: Destination for ``peak`` events.
        state: Current tracker state.
        now: Current instant; defaults to the wall clock.

    Returns:
        DailyPeakState: The updated state (unchanged if the store is empty).
    """
    latest = await store.find_latest(fields=ENERGY_FIELDS)
    if latest is None:
        return state

    today = today_in(TimeFrame.UTC, now).isoformat()
    if state.date != today:
        logger.info("Reset daily peak for %s", today)

    power = power_of(latest)
    state, is_new_peak = advance_peak(state, power, today)
    if is_new_peak:
        ts = latest.ts.astimezone(UTC).isoformat()
        logger.info("New peak %.2f kW at %s", power, ts)
        await sink.notify(
            NotificationKind.PEAK,
            PEAK_TITLE,
            f"Power reached {power:.2f} kW",
            {"power": power, "ts": ts, "date": today},
        )
    return state


async def run_daily_rollup(
    store: ReadingStore,
    sink: NotificationSink,
    now: datetime | None = None,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
) -> dict[str, Any] | None:
    """Integrate yesterday's UTC day and emit a ``daily_summary`` event.

    Skipped silently (returns None) when yesterday has no samples.

    Returns:
        dict | None: The summary payload that was sent.
    """
    day = previous_utc_day(now)
    window = await fetch_window(store, *day_window(day, TimeFrame.UTC))
    if not window.samples:
        logger.info("No readings for %s, skipping daily rollup", day.isoformat())
        return None

    energy = round(window.energy_kwh, 2)
    summary = {
        "date": day.isoformat(),
        "energy_kwh": energy,
        "electricity_bill": bill_for(energy, rate_per_kwh),
        "samples": len(window),
        "rate_per_kwh": rate_per_kwh,
    }
    logger.info(
        "Daily rollup %s: %.2f kWh = %.2f (%d samples)",
        summary["date"],
        energy,
        summary["electricity_bill"],
        summary["samples"],
    )
    await sink.notify(
        NotificationKind.DAILY_SUMMARY,
        DAILY_SUMMARY_TITLE,
        f"{energy} kWh used on {summary['date']}, bill {summary['electricity_bill']}",
        summary,
    )
    return summary
