"""
Ingestion service for meter readings.

Turns validated reading payloads into meter_readings rows: known electrical
fields map to columns, unknown sensor fields are preserved under ``extra``,
the device's ``raw`` debug blob is dropped and the timestamp is normalized
to UTC (defaulting to the ingestion time). Invalidates the Redis
latest-reading cache after every successful write.

CHANGELOG:
- 2026-10-16: Add correction path (update by id)
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from meterbill.cache.redis_client import invalidate_latest_cache
from meterbill.db.models import MEASUREMENT_COLUMNS, MeterReading
from meterbill.engine.windows import ensure_utc
from meterbill.services.store import ReadingStore

logger = logging.getLogger(__name__)

KNOWN_FIELDS = frozenset((*MEASUREMENT_COLUMNS, "mac_address", "ts"))
DROPPED_FIELDS = frozenset(("raw", "id", "extra"))


def to_row(payload: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Build a MeterReading column dict from a reading payload.

    Args:
        payload: Known fields plus any extra sensor keys.
        now: Ingestion time used when the payload carries no timestamp.

    Returns:
        dict: Column values with unknown keys nested under ``extra``.
    """
    row: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in payload.items():
        if key in DROPPED_FIELDS:
            continue
        if key in KNOWN_FIELDS:
            row[key] = value
        else:
            extra[key] = value

    ts = row.get("ts")
    if ts is None:
        ts = now or datetime.now(tz=UTC)
    row["ts"] = ensure_utc(ts)
    row["extra"] = extra
    return row


async def ingest_readings(
    store: ReadingStore,
    payloads: Sequence[dict[str, Any]],
    now: datetime | None = None,
) -> list[int]:
    """Insert a batch of reading payloads.

    Args:
        store: Reading store bound to the request session.
        payloads: Validated reading dicts.
        now: Ingestion time for payloads without a timestamp.

    Returns:
        list[int]: Ids of the inserted readings.
    """
    if not payloads:
        return []

    rows = [to_row(payload, now=now) for payload in payloads]
    ids = await store.insert_many(rows)
    logger.info("Ingested %d reading(s)", len(ids))

    if ids:
        await invalidate_latest_cache()
    return ids


async def correct_reading(
    store: ReadingStore,
    reading_id: int,
    updates: dict[str, Any],
) -> MeterReading | None:
    """Apply a correction to a stored reading.

    Only known columns can be changed; a new ``ts`` is normalized to UTC.
    Callers must reject empty *updates* beforehand.

    Returns:
        MeterReading | None: The corrected reading, or None if not found.
    """
    changes = {key: value for key, value in updates.items() if key in KNOWN_FIELDS}
    if changes.get("ts") is not None:
        changes["ts"] = ensure_utc(changes["ts"])

    reading = await store.update(reading_id, changes)
    if reading is not None:
        await invalidate_latest_cache()
    return reading


def reading_to_dict(reading: Any) -> dict[str, Any]:
    """Serialise a reading (ORM instance or projected row) to a JSON-ready dict.

    Only attributes present on *reading* are emitted; ``ts`` is ISO 8601.
    """
    out: dict[str, Any] = {}
    for name in ("id", "ts", *MEASUREMENT_COLUMNS, "mac_address", "extra"):
        if not hasattr(reading, name):
            continue
        value = getattr(reading, name)
        if isinstance(value, datetime):
            value = ensure_utc(value).isoformat()
        out[name] = value
    return out
