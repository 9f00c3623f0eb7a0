"""
Unit tests for the ReadingStore adapter.

Tests verify:
- Range queries use a half-open ``[start, end)`` filter ordered by ts.
- Projections return rows, full queries return ORM instances.
- Timeouts raise StoreTimeoutError; database errors raise
  StoreUnavailableError; both roll the session back.
- Inserts and updates go through the session and commit.

CHANGELOG:
- 2026-10-17: Add rollback tests
- 2026-10-16: Add insert_many and update tests
- 2026-10-15: Initial creation

TODO:
- None
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from meterbill.db.models import MeterReading
from meterbill.services.store import (
    ENERGY_FIELDS,
    ReadingStore,
    StoreError,
    StoreTimeoutError,
    StoreUnavailableError,
)

START = datetime(2025, 10, 2, tzinfo=UTC)
END = datetime(2025, 10, 3, tzinfo=UTC)


def _session_returning(rows: list, *, scalars: bool) -> AsyncMock:
    """Create a mock session whose execute result yields *rows*."""
    session = AsyncMock()
    result = MagicMock()
    if scalars:
        result.scalars.return_value.all.return_value = rows
    else:
        result.all.return_value = rows
    session.execute = AsyncMock(return_value=result)
    return session


def _sql(session: AsyncMock) -> str:
    return str(session.execute.call_args.args[0])


class TestQueryRange:
    """Tests for time-range queries."""

    @pytest.mark.asyncio
    async def test_half_open_filter_and_ascending_order(self) -> None:
        session = _session_returning([], scalars=True)
        store = ReadingStore(session)

        await store.query_range(START, END)

        sql = _sql(session)
        assert "meter_readings.ts >=" in sql
        assert "meter_readings.ts <" in sql
        assert "meter_readings.ts <=" not in sql
        assert "ORDER BY meter_readings.ts ASC" in sql

    @pytest.mark.asyncio
    async def test_descending_order_and_limit(self) -> None:
        session = _session_returning([], scalars=True)
        store = ReadingStore(session)

        await store.query_range(START, END, ascending=False, limit=5)

        sql = _sql(session)
        assert "ORDER BY meter_readings.ts DESC" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_full_rows_are_orm_instances(self) -> None:
        rows = [MeterReading(ts=START, active_power_total=1.0)]
        session = _session_returning(rows, scalars=True)

        result = await ReadingStore(session).query_range(START, END)

        assert result == rows

    @pytest.mark.asyncio
    async def test_projection_returns_rows(self) -> None:
        rows = [MagicMock(ts=START, active_power_total=1.0)]
        session = _session_returning(rows, scalars=False)

        result = await ReadingStore(session).query_range(START, END, fields=ENERGY_FIELDS)

        assert result == rows
        sql = _sql(session)
        assert "meter_readings.active_power_total" in sql
        assert "meter_readings.voltage" not in sql

    @pytest.mark.asyncio
    async def test_projection_always_includes_ts(self) -> None:
        session = _session_returning([], scalars=False)

        await ReadingStore(session).query_range(START, END, fields=("active_power_total",))

        assert "meter_readings.ts," in _sql(session)

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self) -> None:
        session = _session_returning([], scalars=False)

        with pytest.raises(ValueError, match="no_such_column"):
            await ReadingStore(session).query_range(START, END, fields=("no_such_column",))
        session.execute.assert_not_awaited()


class TestFailures:
    """Tests for timeout and database failure mapping."""

    @pytest.mark.asyncio
    async def test_slow_query_raises_timeout(self) -> None:
        async def _slow(*args, **kwargs):
            await asyncio.sleep(5)

        session = AsyncMock()
        session.execute = _slow
        store = ReadingStore(session, timeout_s=0.01)

        with pytest.raises(StoreTimeoutError):
            await store.query_range(START, END)

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_default(self) -> None:
        async def _slow(*args, **kwargs):
            await asyncio.sleep(5)

        session = AsyncMock()
        session.execute = _slow
        store = ReadingStore(session, timeout_s=60.0)

        with pytest.raises(StoreTimeoutError):
            await store.find_latest(timeout=0.01)

    @pytest.mark.asyncio
    async def test_database_error_raises_unavailable(self) -> None:
        session = AsyncMock()
        session.execute = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )

        with pytest.raises(StoreUnavailableError):
            await ReadingStore(session).query_range(START, END)

    def test_store_errors_share_a_base(self) -> None:
        assert issubclass(StoreTimeoutError, StoreError)
        assert issubclass(StoreUnavailableError, StoreError)


class TestLatestAndRecent:
    """Tests for latest-reading lookups."""

    @pytest.mark.asyncio
    async def test_find_latest_on_empty_store(self) -> None:
        session = _session_returning([], scalars=True)
        assert await ReadingStore(session).find_latest() is None

    @pytest.mark.asyncio
    async def test_find_latest_returns_first_row(self) -> None:
        newest = MeterReading(ts=END, active_power_total=2.0)
        session = _session_returning([newest], scalars=True)

        assert await ReadingStore(session).find_latest() is newest
        sql = _sql(session)
        assert "ORDER BY meter_readings.ts DESC" in sql
        assert "LIMIT" in sql


class TestWrites:
    """Tests for inserts and updates."""

    @pytest.mark.asyncio
    async def test_insert_many_adds_and_commits(self, mock_db_session: AsyncMock) -> None:
        def _assign_ids(rows):
            for index, row in enumerate(rows, start=1):
                row.id = index

        mock_db_session.add_all.side_effect = _assign_ids
        store = ReadingStore(mock_db_session)

        ids = await store.insert_many(
            [
                {"ts": START, "active_power_total": 1.0},
                {"ts": END, "active_power_total": 2.0},
            ]
        )

        assert ids == [1, 2]
        added = mock_db_session.add_all.call_args.args[0]
        assert all(isinstance(row, MeterReading) for row in added)
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_many_empty_is_noop(self, mock_db_session: AsyncMock) -> None:
        assert await ReadingStore(mock_db_session).insert_many([]) == []
        mock_db_session.add_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_returns_single_id(self, mock_db_session: AsyncMock) -> None:
        def _assign_ids(rows):
            rows[0].id = 42

        mock_db_session.add_all.side_effect = _assign_ids

        assert await ReadingStore(mock_db_session).insert({"ts": START}) == 42

    @pytest.mark.asyncio
    async def test_commit_failure_raises_unavailable(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.commit.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with pytest.raises(StoreUnavailableError):
            await ReadingStore(mock_db_session).insert({"ts": START})
        mock_db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_rolls_back(self, mock_db_session: AsyncMock) -> None:
        async def _slow():
            await asyncio.sleep(5)

        mock_db_session.commit.side_effect = _slow

        with pytest.raises(StoreTimeoutError):
            await ReadingStore(mock_db_session, timeout_s=0.01).insert({"ts": START})
        mock_db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_rollback_still_raises_store_error(
        self, mock_db_session: AsyncMock
    ) -> None:
        mock_db_session.commit.side_effect = OperationalError("INSERT", {}, Exception("down"))
        mock_db_session.rollback.side_effect = OperationalError(
            "ROLLBACK", {}, Exception("gone")
        )

        with pytest.raises(StoreUnavailableError):
            await ReadingStore(mock_db_session).insert({"ts": START})

    @pytest.mark.asyncio
    async def test_update_applies_changes(self, mock_db_session: AsyncMock) -> None:
        existing = MeterReading(ts=START, active_power_total=1.0)
        mock_db_session.get = AsyncMock(return_value=existing)
        mock_db_session.refresh = AsyncMock()

        updated = await ReadingStore(mock_db_session).update(7, {"active_power_total": 9.5})

        assert updated is existing
        assert existing.active_power_total == 9.5
        mock_db_session.get.assert_awaited_once_with(MeterReading, 7)
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_missing_reading(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.get = AsyncMock(return_value=None)

        assert await ReadingStore(mock_db_session).update(7, {"voltage": 230.0}) is None
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, mock_db_session: AsyncMock) -> None:
        with pytest.raises(ValueError, match="id"):
            await ReadingStore(mock_db_session).update(7, {"id": 8})
