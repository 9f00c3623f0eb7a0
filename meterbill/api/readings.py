"""
Reading ingestion, correction and raw listing endpoints.

POST/PUT /v1/readings accept one meter snapshot, POST /v1/readings/batch a
list. PATCH /v1/readings/{id} corrects known fields of a stored reading.
The GET routes expose recent readings, the Redis-cached latest reading and
raw series for a day, an hour slice or an explicit range.

CHANGELOG:
- 2026-10-17: Reject empty timestamps on correction; add phase power fields
- 2026-10-16: Add minute-power and diagnostics range listings
- 2026-10-16: Add latest reading endpoint with Redis cache
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from meterbill.api.deps import SettingsDep, StoreDep, resolve_date
from meterbill.cache.redis_client import cache_latest, get_cached_latest
from meterbill.engine.windows import InvalidRangeError, custom_window, hour_slice_window
from meterbill.services.energy import day_series
from meterbill.services.ingestion import (
    correct_reading,
    ingest_readings,
    reading_to_dict,
)
from meterbill.services.store import DIAGNOSTIC_FIELDS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/readings", tags=["readings"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ReadingIn(BaseModel):
    """One meter snapshot as sent by a sensor device.

    Known electrical fields are typed; any other keys are accepted and kept
    as extra sensor data.
    """

    model_config = ConfigDict(extra="allow")

    ts: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("ts", "timestamp"),
    )
    voltage: float | None = None
    current: float | None = None
    power: float | None = None
    voltage_an: float | None = None
    voltage_bn: float | None = None
    voltage_cn: float | None = None
    voltage_ab: float | None = None
    voltage_bc: float | None = None
    voltage_ca: float | None = None
    current_a: float | None = None
    current_b: float | None = None
    current_c: float | None = None
    active_power_a: float | None = None
    active_power_b: float | None = None
    active_power_c: float | None = None
    active_power_total: float | None = None
    reactive_power_total: float | None = None
    apparent_power_total: float | None = None
    power_factor_total: float | None = None
    frequency: float | None = None
    current_avg: float | None = None
    reactive_power_a: float | None = None
    reactive_power_b: float | None = None
    reactive_power_c: float | None = None
    apparent_power_a: float | None = None
    apparent_power_b: float | None = None
    apparent_power_c: float | None = None
    power_factor_a: float | None = None
    power_factor_b: float | None = None
    power_factor_c: float | None = None
    mac_address: str | None = None

    @field_validator("ts", mode="before")
    @classmethod
    def empty_timestamp_is_missing(cls, v: Any) -> Any:
        """Treat an empty string as a missing timestamp."""
        if v == "":
            return None
        return v


class BatchIn(BaseModel):
    """Batch payload for the batch ingest endpoint."""

    readings: list[ReadingIn]


class IngestResponse(BaseModel):
    """Response from the single-reading ingest endpoint."""

    success: bool
    id: int


class BatchResponse(BaseModel):
    """Response from the batch ingest endpoint."""

    inserted: int
    ids: list[int]


async def _json_object(request: Request) -> dict[str, Any]:
    """Read the request body as a non-empty JSON object or raise 400."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be valid JSON") from None
    if not isinstance(body, dict) or not body:
        raise HTTPException(status_code=400, detail="Empty payload")
    return body


def _validate(body: dict[str, Any]) -> ReadingIn:
    """Validate a reading body, converting pydantic errors to HTTP 422."""
    try:
        return ReadingIn.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from None


# ---------------------------------------------------------------------------
# Ingestion routes
# ---------------------------------------------------------------------------


async def _ingest_one(request: Request, store: StoreDep) -> IngestResponse:
    reading = _validate(await _json_object(request))
    ids = await ingest_readings(store, [reading.model_dump()])
    logger.info("Reading saved: id=%d", ids[0])
    return IngestResponse(success=True, id=ids[0])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=IngestResponse)
async def create_reading(request: Request, store: StoreDep) -> IngestResponse:
    """Ingest one reading and return its id."""
    return await _ingest_one(request, store)


@router.put("", status_code=status.HTTP_201_CREATED, response_model=IngestResponse)
async def put_reading(request: Request, store: StoreDep) -> IngestResponse:
    """Same as POST, for devices that can only send HTTP PUT."""
    return await _ingest_one(request, store)


@router.post("/batch", response_model=BatchResponse)
async def create_readings_batch(
    payload: BatchIn,
    settings: SettingsDep,
    store: StoreDep,
) -> BatchResponse:
    """Ingest a list of readings in one transaction.

    Raises:
        HTTPException: 413 if the batch exceeds ``max_readings_per_query``.
    """
    if not payload.readings:
        return BatchResponse(inserted=0, ids=[])
    if len(payload.readings) > settings.max_readings_per_query:
        raise HTTPException(
            status_code=413,
            detail=f"Batch size {len(payload.readings)} exceeds limit of "
            f"{settings.max_readings_per_query}. Split into smaller batches.",
        )
    ids = await ingest_readings(store, [r.model_dump() for r in payload.readings])
    return BatchResponse(inserted=len(ids), ids=ids)


@router.patch("/{reading_id}")
async def update_reading(
    reading_id: int,
    request: Request,
    store: StoreDep,
) -> dict[str, Any]:
    """Correct known fields of a stored reading.

    Raises:
        HTTPException: 400 if no updatable field is supplied, or if the
            timestamp is null or empty.
        HTTPException: 404 if the reading does not exist.
    """
    body = await _json_object(request)
    validated = _validate(body)
    updates: dict[str, Any] = {}
    for key in body:
        field = "ts" if key == "timestamp" else key
        if field in ReadingIn.model_fields:
            updates[field] = getattr(validated, field)
    if not updates:
        raise HTTPException(status_code=400, detail="No allowed fields to update")
    # ts is NOT NULL; a correction may move it but never clear it.
    if "ts" in updates and updates["ts"] is None:
        raise HTTPException(status_code=400, detail="Timestamp cannot be empty")

    reading = await correct_reading(store, reading_id, updates)
    if reading is None:
        raise HTTPException(status_code=404, detail="Reading not found")
    return {"success": True, "reading": reading_to_dict(reading)}


# ---------------------------------------------------------------------------
# Listing routes
# ---------------------------------------------------------------------------


@router.get("/recent")
async def recent_readings(
    store: StoreDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 20,
) -> list[dict[str, Any]]:
    """Return the newest readings first."""
    rows = await store.recent(limit)
    return [reading_to_dict(row) for row in rows]


@router.get("/latest")
async def latest_reading(settings: SettingsDep, store: StoreDep) -> dict[str, Any]:
    """Return the most recent reading, served from Redis when cached.

    Raises:
        HTTPException: 404 if no reading exists.
    """
    cached = await get_cached_latest()
    if cached is not None:
        return cached

    reading = await store.find_latest()
    if reading is None:
        raise HTTPException(status_code=404, detail="No readings stored yet.")

    reading_dict = reading_to_dict(reading)
    await cache_latest(reading_dict, settings.cache_ttl_s)
    return reading_dict


@router.get("/day")
async def readings_for_day(
    settings: SettingsDep,
    store: StoreDep,
    date: Annotated[str | None, Query(description="UTC day, YYYY-MM-DD.")] = None,
) -> dict[str, Any]:
    """Return the power series of a UTC day (defaults to today)."""
    day = resolve_date(date, "/v1/readings/day?date={date}", default_today=True)
    return await day_series(store, day, limit=settings.max_readings_per_query)


@router.get("/minute-power")
async def minute_power(
    settings: SettingsDep,
    store: StoreDep,
    date: Annotated[str | None, Query()] = None,
    start_hour: Annotated[int | None, Query()] = None,
    end_hour: Annotated[int | None, Query()] = None,
) -> list[dict[str, Any]]:
    """Return raw readings for an hour slice of a UTC day.

    ``end_hour`` is inclusive.
    """
    day = resolve_date(
        date, "/v1/readings/minute-power?date={date}&start_hour=8&end_hour=17"
    )
    try:
        start, end = hour_slice_window(day, start_hour, end_hour)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None

    rows = await store.query_range(
        start,
        end,
        fields=DIAGNOSTIC_FIELDS,
        limit=settings.max_readings_per_query,
    )
    return [reading_to_dict(row) for row in rows]


@router.get("/range")
async def readings_in_range(
    settings: SettingsDep,
    store: StoreDep,
    start: Annotated[datetime | None, Query()] = None,
    end: Annotated[datetime | None, Query()] = None,
) -> list[dict[str, Any]]:
    """Return raw readings between two explicit instants (naive = UTC)."""
    if start is None or end is None:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Missing query params",
                "example": "/v1/readings/range"
                "?start=2025-10-02T17:00:00Z&end=2025-10-02T17:05:00Z",
            },
        )
    try:
        start, end = custom_window(start, end)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None

    rows = await store.query_range(
        start,
        end,
        fields=DIAGNOSTIC_FIELDS,
        limit=settings.max_readings_per_query,
    )
    return [reading_to_dict(row) for row in rows]
