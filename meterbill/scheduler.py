"""
Scheduler loops for peak detection and the daily rollup.

Runs two concurrent asyncio loops:
1. **Peak loop**: every ``peak_check_interval_s`` reads the latest reading,
   folds it into the in-memory DailyPeakState and emits a ``peak`` event on
   a new daily high. Iterations run back to back, so ticks never overlap.
2. **Rollup loop**: sleeps until ``daily_rollup_hour:00`` in the local
   frame, then integrates yesterday's UTC day and emits a ``daily_summary``.

Both loops are resilient: an exception in one iteration is logged and does
not stop either loop. Each iteration opens its own database session. The
loops run inside the API lifespan when ``scheduler_enabled`` is set, or
stand-alone via ``python -m meterbill.scheduler`` with SIGTERM/SIGINT
triggering a graceful shutdown.

CHANGELOG:
- 2026-10-16: Record peak state in the scheduler health file
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from meterbill.engine.peak import DailyPeakState
from meterbill.engine.windows import TimeFrame, frame_tz
from meterbill.health import SchedulerHealth
from meterbill.services.notifications import NotificationSink
from meterbill.services.store import ReadingStore
from meterbill.services.triggers import run_daily_rollup, run_peak_check

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from meterbill.config import AppSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging on the root logger (stderr)."""

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: AppSettings) -> None:
    """Log the scheduler configuration at startup, without connection URLs."""
    logger.info(
        "Scheduler starting with config: "
        "peak_check_interval_s=%s, daily_rollup_hour=%s, "
        "local_utc_offset_hours=%s, rate_per_kwh=%s, "
        "store_timeout_s=%s, webhook_enabled=%s, health_path=%s",
        settings.peak_check_interval_s,
        settings.daily_rollup_hour,
        settings.local_utc_offset_hours,
        settings.rate_per_kwh,
        settings.store_timeout_s,
        bool(settings.notify_webhook_url),
        settings.health_path,
    )


def seconds_until_next_rollup(
    now: datetime,
    hour: int,
    offset_hours: int,
) -> float:
    """Return seconds from *now* until the next ``hour:00`` in the local frame.

    If *now* is exactly on the hour the next run is a full day away.
    """
    local_now = now.astimezone(frame_tz(TimeFrame.LOCAL, offset_hours))
    target = local_now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= local_now:
        target += timedelta(days=1)
    return (target - local_now).total_seconds()


# ---------------------------------------------------------------------------
# Single-iteration functions (easily testable)
# ---------------------------------------------------------------------------


async def _peak_once(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    state: DailyPeakState,
    health: SchedulerHealth | None,
) -> DailyPeakState:
    """Execute one peak check, returning the (possibly unchanged) state.

    Catches all exceptions so that the caller's loop is never broken.
    """
    try:
        async with session_factory() as session:
            store = ReadingStore(session, timeout_s=settings.store_timeout_s)
            sink = NotificationSink(session, webhook_url=settings.notify_webhook_url)
            state = await run_peak_check(store, sink, state)
    except Exception:
        logger.error("Peak check error", exc_info=True)

    if health is not None:
        try:
            health.record_peak_check(state)
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
    return state


async def _rollup_once(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    health: SchedulerHealth | None,
) -> bool:
    """Execute one daily rollup.

    Returns:
        True if a summary was emitted, False if skipped or failed.
    """
    try:
        async with session_factory() as session:
            store = ReadingStore(session, timeout_s=settings.store_timeout_s)
            sink = NotificationSink(session, webhook_url=settings.notify_webhook_url)
            summary = await run_daily_rollup(
                store, sink, rate_per_kwh=settings.rate_per_kwh
            )
    except Exception:
        logger.error("Daily rollup error", exc_info=True)
        return False

    if health is not None:
        try:
            health.record_rollup()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
    return summary is not None


# ---------------------------------------------------------------------------
# Loop runners
# ---------------------------------------------------------------------------


async def _peak_loop(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    shutdown_event: asyncio.Event,
    health: SchedulerHealth | None,
) -> DailyPeakState:
    """Run peak checks until shutdown_event is set.

    Owns the single DailyPeakState for the process and returns its final
    value on shutdown.
    """
    interval = settings.peak_check_interval_s
    logger.info("Peak loop started (interval=%ss)", interval)
    state = DailyPeakState()
    while not shutdown_event.is_set():
        state = await _peak_once(
            session_factory=session_factory,
            settings=settings,
            state=state,
            health=health,
        )
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
    logger.info("Peak loop stopped")
    return state


async def _rollup_loop(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    shutdown_event: asyncio.Event,
    health: SchedulerHealth | None,
) -> None:
    """Run the daily rollup at the configured local hour until shutdown."""
    logger.info(
        "Rollup loop started (daily at %02d:00, UTC%+d)",
        settings.daily_rollup_hour,
        settings.local_utc_offset_hours,
    )
    while not shutdown_event.is_set():
        delay = seconds_until_next_rollup(
            datetime.now(tz=UTC),
            settings.daily_rollup_hour,
            settings.local_utc_offset_hours,
        )
        logger.debug("Next daily rollup in %.0fs", delay)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
        if shutdown_event.is_set():
            break
        logger.info("Running daily rollup job")
        await _rollup_once(
            session_factory=session_factory,
            settings=settings,
            health=health,
        )
    logger.info("Rollup loop stopped")


async def run_loops(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: AppSettings,
    shutdown_event: asyncio.Event,
    health: SchedulerHealth | None = None,
) -> None:
    """Run peak and rollup loops concurrently until shutdown."""
    logger.info("Starting peak and rollup loops")
    await asyncio.gather(
        _peak_loop(
            session_factory=session_factory,
            settings=settings,
            shutdown_event=shutdown_event,
            health=health,
        ),
        _rollup_loop(
            session_factory=session_factory,
            settings=settings,
            shutdown_event=shutdown_event,
            health=health,
        ),
    )
    logger.info("Scheduler shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


async def async_main() -> None:
    """Async entrypoint: load config, open the database, run loops."""
    configure_logging()

    from meterbill.config import get_settings
    from meterbill.db.session import dispose_engine, init_engine

    settings = get_settings()
    log_config_summary(settings)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: _handle_signal(shutdown_event))

    session_factory = init_engine(settings.database_url)
    try:
        await run_loops(
            session_factory=session_factory,
            settings=settings,
            shutdown_event=shutdown_event,
            health=SchedulerHealth(settings.health_path),
        )
    finally:
        await dispose_engine()


def main() -> None:
    """Synchronous entrypoint for the stand-alone scheduler."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
