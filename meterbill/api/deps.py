"""
FastAPI dependency injection providers.

Provides database sessions, the reading store, the application settings
and shared query-parameter parsing for use with FastAPI's Depends()
mechanism.

CHANGELOG:
- 2026-10-17: Drop the unused notification sink provider
- 2026-10-16: Add date parameter parsing shared by report routes
- 2026-10-15: Initial creation
"""

from collections.abc import AsyncGenerator
from datetime import date, datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from meterbill.config import AppSettings
from meterbill.db.session import get_async_session
from meterbill.engine.windows import (
    DATE_FORMAT_HINT,
    InvalidDateError,
    TimeFrame,
    parse_date,
    today_in,
)
from meterbill.services.store import ReadingStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


def get_app_settings(request: Request) -> AppSettings:
    """Return the settings loaded during application startup."""
    return request.app.state.settings


SettingsDep = Annotated[AppSettings, Depends(get_app_settings)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_store(db: DbSession, settings: SettingsDep) -> ReadingStore:
    """Build a ReadingStore bound to the request session."""
    return ReadingStore(db, timeout_s=settings.store_timeout_s)


StoreDep = Annotated[ReadingStore, Depends(get_store)]


def bad_date(exc: InvalidDateError, example_path: str) -> HTTPException:
    """Build the 400 response for a malformed date parameter."""
    return HTTPException(
        status_code=400,
        detail={
            "error": f"Invalid date format. Use {DATE_FORMAT_HINT}",
            "value": exc.value,
            "example": example_path.format(date=exc.example),
        },
    )


def resolve_date(
    value: str | None,
    example_path: str,
    *,
    default_today: bool = False,
    frame: TimeFrame = TimeFrame.UTC,
    now: datetime | None = None,
) -> date:
    """Parse a ``YYYY-MM-DD`` parameter or raise HTTP 400.

    Args:
        value: Raw parameter, or None when the client omitted it.
        example_path: Example URL with a ``{date}`` placeholder.
        default_today: Use today (in *frame*) when *value* is None.
        frame: Frame used to resolve "today".
        now: Clock override for tests.
    """
    if value is None and default_today:
        return today_in(frame, now)
    try:
        return parse_date(value)
    except InvalidDateError as exc:
        raise bad_date(exc, example_path) from None
