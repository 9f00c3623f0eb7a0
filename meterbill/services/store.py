"""
Reading store adapter over the meter_readings table.

Wraps an AsyncSession with the small set of operations the energy engine
needs: insert, time-range query sorted by timestamp, latest reading, recent
readings and update by id. Every query runs under ``asyncio.wait_for`` so a
slow database cannot hold a request or scheduler tick indefinitely.

Failures surface as :class:`StoreUnavailableError` (query failed) or
:class:`StoreTimeoutError` (timed out). No retries happen here.

CHANGELOG:
- 2026-10-17: Roll back the session after a failed or timed-out operation
- 2026-10-16: Add insert_many and recent() listing
- 2026-10-15: Initial creation

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from meterbill.db.models import MeterReading

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENERGY_FIELDS: tuple[str, ...] = ("ts", "active_power_total")
"""Projection used by every energy computation."""

DIAGNOSTIC_FIELDS: tuple[str, ...] = (
    "id",
    "ts",
    "active_power_total",
    "voltage",
    "current",
)

_UPDATABLE_FIELDS = frozenset(
    col.key for col in MeterReading.__table__.columns if col.key != "id"
)


class StoreError(RuntimeError):
    """Base class for reading store failures."""


class StoreUnavailableError(StoreError):
    """Raised when the underlying database query fails."""


class StoreTimeoutError(StoreError):
    """Raised when a store query exceeds its timeout."""


def _columns(fields: Sequence[str] | None) -> list[Any]:
    if not fields:
        return [MeterReading]
    names = list(fields)
    if "ts" not in names:
        names.insert(0, "ts")
    unknown = [name for name in names if not hasattr(MeterReading, name)]
    if unknown:
        raise ValueError(f"Unknown reading field(s): {', '.join(unknown)}")
    return [getattr(MeterReading, name) for name in names]


class ReadingStore:
    """Async adapter for reading persistence.

    Args:
        session: SQLAlchemy session bound to the meter database.
        timeout_s: Default timeout for every operation, in seconds.
    """

    def __init__(self, session: AsyncSession, timeout_s: float = 10.0) -> None:
        self.session = session
        self.timeout_s = timeout_s

    async def _rollback(self, operation: str) -> None:
        try:
            await self.session.rollback()
        except Exception:
            logger.warning("Rollback after failed store %s also failed", operation)

    async def _run(self, operation: str, aw: Awaitable[T], timeout: float | None) -> T:
        limit = self.timeout_s if timeout is None else timeout
        try:
            return await asyncio.wait_for(aw, timeout=limit)
        except TimeoutError:
            logger.error("Store %s timed out after %.1fs", operation, limit)
            await self._rollback(operation)
            raise StoreTimeoutError(
                f"Reading store {operation} timed out after {limit}s"
            ) from None
        except SQLAlchemyError as exc:
            logger.error("Store %s failed", operation, exc_info=True)
            await self._rollback(operation)
            raise StoreUnavailableError(f"Reading store {operation} failed") from exc

    async def insert(self, reading: dict[str, Any], timeout: float | None = None) -> int:
        """Insert one reading and return its id."""
        ids = await self.insert_many([reading], timeout=timeout)
        return ids[0]

    async def insert_many(
        self,
        readings: Sequence[dict[str, Any]],
        timeout: float | None = None,
    ) -> list[int]:
        """Insert a batch of readings in one transaction.

        Returns:
            list[int]: Ids of the new rows, in input order.
        """
        if not readings:
            return []

        async def _insert() -> list[int]:
            rows = [MeterReading(**reading) for reading in readings]
            self.session.add_all(rows)
            await self.session.commit()
            return [row.id for row in rows]

        ids = await self._run("insert", _insert(), timeout)
        logger.info("Inserted %d reading(s)", len(ids))
        return ids

    async def query_range(
        self,
        start: datetime,
        end: datetime,
        *,
        ascending: bool = True,
        fields: Sequence[str] | None = None,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[Any]:
        """Return readings with ``start <= ts < end`` ordered by ts.

        Args:
            start: Inclusive lower bound.
            end: Exclusive upper bound.
            ascending: Sort direction on ts.
            fields: Optional column projection; ``ts`` is always included.
                When given, rows are returned instead of ORM instances.
            limit: Optional row cap.
            timeout: Overrides the store's default timeout.

        Returns:
            list: ORM instances or projected rows, both with attribute access.
        """
        columns = _columns(fields)
        order = MeterReading.ts.asc() if ascending else MeterReading.ts.desc()
        stmt = (
            select(*columns)
            .where(MeterReading.ts >= start, MeterReading.ts < end)
            .order_by(order)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async def _query() -> list[Any]:
            result = await self.session.execute(stmt)
            if fields:
                return list(result.all())
            return list(result.scalars().all())

        rows = await self._run("range query", _query(), timeout)
        logger.debug(
            "Range query %s -> %s returned %d row(s)",
            start.isoformat(),
            end.isoformat(),
            len(rows),
        )
        return rows

    async def find_latest(
        self,
        fields: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> Any | None:
        """Return the most recent reading, or None when the store is empty."""
        rows = await self.recent(1, fields=fields, timeout=timeout)
        return rows[0] if rows else None

    async def recent(
        self,
        limit: int,
        *,
        fields: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> list[Any]:
        """Return up to *limit* readings, newest first."""
        stmt = select(*_columns(fields)).order_by(MeterReading.ts.desc()).limit(limit)

        async def _query() -> list[Any]:
            result = await self.session.execute(stmt)
            if fields:
                return list(result.all())
            return list(result.scalars().all())

        return await self._run("recent query", _query(), timeout)

    async def update(
        self,
        reading_id: int,
        updates: dict[str, Any],
        timeout: float | None = None,
    ) -> MeterReading | None:
        """Apply *updates* to one reading.

        Unknown keys are rejected rather than silently ignored.

        Returns:
            MeterReading | None: The updated row, or None if the id is unknown.

        Raises:
            ValueError: If *updates* contains a field that cannot be updated.
        """
        unknown = sorted(set(updates) - _UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Field(s) cannot be updated: {', '.join(unknown)}")

        async def _update() -> MeterReading | None:
            reading = await self.session.get(MeterReading, reading_id)
            if reading is None:
                return None
            for key, value in updates.items():
                setattr(reading, key, value)
            await self.session.commit()
            await self.session.refresh(reading)
            return reading

        reading = await self._run("update", _update(), timeout)
        if reading is not None:
            logger.info("Updated reading %d (%s)", reading_id, ", ".join(sorted(updates)))
        return reading
