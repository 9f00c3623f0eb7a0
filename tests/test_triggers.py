"""
Unit tests for the peak check and daily rollup operations.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from meterbill.engine.peak import DailyPeakState
from meterbill.services.notifications import NotificationKind, NotificationSink
from meterbill.services.triggers import (
    DAILY_SUMMARY_TITLE,
    PEAK_TITLE,
    run_daily_rollup,
    run_peak_check,
)
from tests.fakes import FakeReadingStore, reading, series

NOW = datetime(2025, 10, 2, 10, 0, 5, tzinfo=UTC)


class TestPeakCheck:
    """Tests for the realtime peak check."""

    @pytest.mark.asyncio
    async def test_empty_store_leaves_state_unchanged(self) -> None:
        sink = AsyncMock()
        state = DailyPeakState(date="2025-10-02", max_power=3.0)

        result = await run_peak_check(FakeReadingStore(), sink, state, now=NOW)

        assert result is state
        sink.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_peak_notifies(self) -> None:
        store = FakeReadingStore([reading(datetime(2025, 10, 2, 10, 0, tzinfo=UTC), 7.25)])
        sink = AsyncMock()

        state = await run_peak_check(store, sink, DailyPeakState(), now=NOW)

        assert state == DailyPeakState(date="2025-10-02", max_power=7.25)
        sink.notify.assert_awaited_once()
        kind, title, _body, payload = sink.notify.call_args.args
        assert kind is NotificationKind.PEAK
        assert title == PEAK_TITLE
        assert payload == {
            "power": 7.25,
            "ts": "2025-10-02T10:00:00+00:00",
            "date": "2025-10-02",
        }

    @pytest.mark.asyncio
    async def test_lower_power_does_not_notify(self) -> None:
        store = FakeReadingStore([reading(NOW, 2.0)])
        sink = AsyncMock()
        state = DailyPeakState(date="2025-10-02", max_power=5.0)

        result = await run_peak_check(store, sink, state, now=NOW)

        assert result == state
        sink.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_day_resets_peak(self) -> None:
        store = FakeReadingStore([reading(NOW, 2.0)])
        sink = AsyncMock()
        state = DailyPeakState(date="2025-10-01", max_power=50.0)

        result = await run_peak_check(store, sink, state, now=NOW)

        assert result == DailyPeakState(date="2025-10-02", max_power=2.0)
        sink.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_uses_latest_reading(self) -> None:
        store = FakeReadingStore(
            [
                reading(datetime(2025, 10, 2, 9, 0, tzinfo=UTC), 9.0),
                reading(datetime(2025, 10, 2, 10, 0, tzinfo=UTC), 4.0),
            ]
        )
        state = await run_peak_check(store, AsyncMock(), DailyPeakState(), now=NOW)
        assert state.max_power == 4.0


class TestDailyRollup:
    """Tests for the daily summary of yesterday's UTC day."""

    @pytest.mark.asyncio
    async def test_rollup_integrates_yesterday(self) -> None:
        store = FakeReadingStore(
            series((2025, 10, 2), [(0, 0, 2.0), (1, 0, 2.0), (2, 0, 2.0)])
            + series((2025, 10, 3), [(0, 0, 100.0), (0, 10, 100.0)])
        )
        sink = AsyncMock()
        now = datetime(2025, 10, 3, 0, 30, tzinfo=UTC)

        summary = await run_daily_rollup(store, sink, now=now)

        assert summary == {
            "date": "2025-10-02",
            "energy_kwh": 4.0,
            "electricity_bill": 17.6,
            "samples": 3,
            "rate_per_kwh": 4.4,
        }
        kind, title, _body, payload = sink.notify.call_args.args
        assert kind is NotificationKind.DAILY_SUMMARY
        assert title == DAILY_SUMMARY_TITLE
        assert payload == summary

    @pytest.mark.asyncio
    async def test_window_excludes_next_midnight(self) -> None:
        store = FakeReadingStore()
        now = datetime(2025, 10, 3, 0, 30, tzinfo=UTC)

        await run_daily_rollup(store, AsyncMock(), now=now)

        start, end = store.range_calls[0]
        assert start == datetime(2025, 10, 2, tzinfo=UTC)
        assert end == datetime(2025, 10, 3, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_custom_rate(self) -> None:
        store = FakeReadingStore(series((2025, 10, 2), [(0, 0, 1.0), (2, 0, 1.0)]))
        now = datetime(2025, 10, 3, 0, 30, tzinfo=UTC)

        summary = await run_daily_rollup(store, AsyncMock(), now=now, rate_per_kwh=5.0)

        assert summary["electricity_bill"] == 10.0
        assert summary["rate_per_kwh"] == 5.0

    @pytest.mark.asyncio
    async def test_no_data_skips_silently(self) -> None:
        sink = AsyncMock()
        now = datetime(2025, 10, 3, 0, 30, tzinfo=UTC)

        assert await run_daily_rollup(FakeReadingStore(), sink, now=now) is None
        sink.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_rollup(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.commit.side_effect = RuntimeError("database gone")
        store = FakeReadingStore(series((2025, 10, 2), [(0, 0, 1.0), (1, 0, 1.0)]))
        now = datetime(2025, 10, 3, 0, 30, tzinfo=UTC)

        summary = await run_daily_rollup(store, NotificationSink(mock_db_session), now=now)

        assert summary["energy_kwh"] == 1.0
