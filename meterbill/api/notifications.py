"""
Notification history endpoints.

Lists the peak and daily summary events recorded by the notification sink
one page at a time, reports per-kind counts, and lets the dashboard mark
events as read or delete them.

CHANGELOG:
- 2026-10-17: Add paging, stats and delete endpoints
- 2026-10-16: Initial creation

TODO:
- None
"""

import math
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from meterbill.api.deps import DbSession
from meterbill.services.notifications import (
    NotificationKind,
    count_notifications,
    delete_notification,
    delete_notifications,
    list_notifications,
    mark_read,
    notification_stats,
)

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


class NotificationOut(BaseModel):
    """A recorded notification event."""

    id: int
    kind: NotificationKind
    title: str
    body: str
    payload: dict[str, Any]
    created_at: datetime
    read: bool

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    """One page of notifications with the counts a dashboard badge needs."""

    items: list[NotificationOut]
    page: int
    limit: int
    total: int
    pages: int
    unread_count: int


class KindStatsOut(BaseModel):
    """Counts and most recent event for one kind."""

    total: int
    unread: int
    read: int
    latest: NotificationOut | None


class StatsOut(BaseModel):
    """Counts over all kinds plus the per-kind breakdown."""

    total: int
    unread: int
    read: int
    by_kind: dict[NotificationKind, KindStatsOut]


class MarkReadIn(BaseModel):
    """Selection of notifications to mark as read."""

    ids: list[int] | None = None
    kind: NotificationKind | None = None
    all: bool = False


class MarkReadOut(BaseModel):
    """Number of notifications updated."""

    updated: int


class DeleteOut(BaseModel):
    """Number of notifications deleted."""

    deleted: int


@router.get("", response_model=NotificationPage)
async def get_notifications(
    db: DbSession,
    kind: Annotated[NotificationKind | None, Query()] = None,
    unread: Annotated[bool, Query(description="Only unread notifications.")] = False,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> NotificationPage:
    """Return one page of recorded notifications, newest first.

    ``total`` and ``pages`` count the filtered set; ``unread_count`` counts
    unread notifications of the requested kind.
    """
    rows = await list_notifications(
        db,
        kind=kind,
        unread_only=unread,
        limit=limit,
        offset=(page - 1) * limit,
    )
    total = await count_notifications(db, kind=kind, unread_only=unread)
    unread_count = (
        total if unread else await count_notifications(db, kind=kind, unread_only=True)
    )
    return NotificationPage(
        items=[NotificationOut.model_validate(row) for row in rows],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
        unread_count=unread_count,
    )


@router.get("/stats", response_model=StatsOut)
async def get_notification_stats(db: DbSession) -> StatsOut:
    """Return total, unread and read counts, overall and per kind."""
    stats = await notification_stats(db)
    by_kind = {
        kind: KindStatsOut(
            total=entry.total,
            unread=entry.unread,
            read=entry.read,
            latest=(
                NotificationOut.model_validate(entry.latest)
                if entry.latest is not None
                else None
            ),
        )
        for kind, entry in stats.items()
    }
    total = sum(entry.total for entry in stats.values())
    unread = sum(entry.unread for entry in stats.values())
    return StatsOut(total=total, unread=unread, read=total - unread, by_kind=by_kind)


@router.patch("/mark-read", response_model=MarkReadOut)
async def patch_mark_read(payload: MarkReadIn, db: DbSession) -> MarkReadOut:
    """Mark notifications as read by ids, by kind, or all of them.

    Raises:
        HTTPException: 400 if no selection is given.
    """
    if not payload.ids and payload.kind is None and not payload.all:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Provide ids, kind, or all=true",
                "example": {"kind": "peak", "ids": [1, 2]},
            },
        )
    updated = await mark_read(db, ids=payload.ids, kind=payload.kind)
    return MarkReadOut(updated=updated)


@router.delete("/{notification_id}", response_model=DeleteOut)
async def remove_notification(notification_id: int, db: DbSession) -> DeleteOut:
    """Delete one notification.

    Raises:
        HTTPException: 404 if the notification does not exist.
    """
    if not await delete_notification(db, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return DeleteOut(deleted=1)


@router.delete("", response_model=DeleteOut)
async def remove_notifications(
    db: DbSession,
    kind: Annotated[
        NotificationKind | None,
        Query(description="Kind to clear; omit to clear every kind."),
    ] = None,
) -> DeleteOut:
    """Delete every notification of one kind, or all notifications."""
    deleted = await delete_notifications(db, kind=kind)
    return DeleteOut(deleted=deleted)
