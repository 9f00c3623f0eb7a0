"""
Notification sink and notification history.

``NotificationSink.notify`` is fire-and-forget: it records the event in the
notifications table and, when a relay URL is configured, POSTs it over HTTP
for push delivery. Any failure is logged and swallowed so the computation
that produced the event never fails because of delivery.

CHANGELOG:
- 2026-10-17: Add paging, counts, per-kind stats and delete helpers
- 2026-10-16: Add history listing and mark-read helpers
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meterbill.db.models import Notification

logger = logging.getLogger(__name__)

_RELAY_TIMEOUT_S = 10.0


class NotificationKind(str, Enum):
    """Kinds of events the scheduler emits."""

    PEAK = "peak"
    DAILY_SUMMARY = "daily_summary"


class NotificationSink:
    """Records notification events and relays them to a push webhook.

    Args:
        session: Session used to persist the notification history.
        webhook_url: Optional relay endpoint. Empty disables relaying.
        http_client: Optional shared ``httpx.AsyncClient``; a short-lived
            client is created per event when omitted.
    """

    def __init__(
        self,
        session: AsyncSession,
        webhook_url: str = "",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.session = session
        self.webhook_url = webhook_url
        self._http_client = http_client

    async def notify(
        self,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: dict[str, Any],
    ) -> None:
        """Record and relay one event. Never raises."""
        await self._record(kind, title, body, payload)
        if self.webhook_url:
            await self._relay(kind, title, body, payload)

    async def _record(
        self,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: dict[str, Any],
    ) -> None:
        try:
            notification = Notification(
                kind=kind.value,
                title=title,
                body=body,
                payload=payload,
            )
            self.session.add(notification)
            await self.session.commit()
            logger.info("Recorded %s notification: %s", kind.value, title)
        except Exception:
            logger.error("Failed to record %s notification", kind.value, exc_info=True)
            try:
                await self.session.rollback()
            except Exception:
                logger.warning("Rollback after notification failure also failed")

    async def _relay(
        self,
        kind: NotificationKind,
        title: str,
        body: str,
        payload: dict[str, Any],
    ) -> None:
        message = {"kind": kind.value, "title": title, "body": body, "payload": payload}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.webhook_url, json=message)
            else:
                async with httpx.AsyncClient(timeout=_RELAY_TIMEOUT_S) as client:
                    response = await client.post(self.webhook_url, json=message)
            response.raise_for_status()
            logger.info("Relayed %s notification (status=%d)", kind.value, response.status_code)
        except httpx.HTTPError:
            logger.warning(
                "Failed to relay %s notification to webhook",
                kind.value,
                exc_info=True,
            )


@dataclass(frozen=True)
class KindStats:
    """Counts for one notification kind.

    Attributes:
        total: Number of recorded notifications.
        unread: Number not yet acknowledged.
        latest: Most recent notification, or None when there is none.
    """

    total: int = 0
    unread: int = 0
    latest: Notification | None = None

    @property
    def read(self) -> int:
        return self.total - self.unread


def _filtered(stmt: Any, kind: NotificationKind | None, unread_only: bool) -> Any:
    if kind is not None:
        stmt = stmt.where(Notification.kind == kind.value)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    return stmt


async def list_notifications(
    session: AsyncSession,
    kind: NotificationKind | None = None,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    """Return recorded notifications, newest first."""
    stmt = (
        select(Notification)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(_filtered(stmt, kind, unread_only))
    return list(result.scalars().all())


async def count_notifications(
    session: AsyncSession,
    kind: NotificationKind | None = None,
    unread_only: bool = False,
) -> int:
    """Return the number of notifications matching the same filters as the list."""
    stmt = select(func.count(Notification.id))
    result = await session.execute(_filtered(stmt, kind, unread_only))
    return result.scalar_one()


async def notification_stats(session: AsyncSession) -> dict[NotificationKind, KindStats]:
    """Return total, unread and latest notification for every kind.

    Kinds with no recorded notifications are reported with zero counts.
    """
    counts = await session.execute(
        select(
            Notification.kind,
            func.count(Notification.id),
            func.sum(case((Notification.read.is_(False), 1), else_=0)),
        ).group_by(Notification.kind)
    )
    totals = {row[0]: (row[1], int(row[2] or 0)) for row in counts.all()}

    stats: dict[NotificationKind, KindStats] = {}
    for kind in NotificationKind:
        total, unread = totals.get(kind.value, (0, 0))
        latest = None
        if total:
            result = await session.execute(
                select(Notification)
                .where(Notification.kind == kind.value)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(1)
            )
            latest = result.scalars().first()
        stats[kind] = KindStats(total=total, unread=unread, latest=latest)
    return stats


async def mark_read(
    session: AsyncSession,
    ids: Sequence[int] | None = None,
    kind: NotificationKind | None = None,
) -> int:
    """Mark notifications as read by id list and/or kind.

    With neither filter every unread notification is marked.

    Returns:
        int: Number of notifications updated.
    """
    stmt = update(Notification).where(Notification.read.is_(False)).values(read=True)
    if ids:
        stmt = stmt.where(Notification.id.in_(list(ids)))
    if kind is not None:
        stmt = stmt.where(Notification.kind == kind.value)
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount


async def delete_notification(session: AsyncSession, notification_id: int) -> bool:
    """Delete one notification.

    Returns:
        bool: False when no notification has that id.
    """
    result = await session.execute(
        delete(Notification).where(Notification.id == notification_id)
    )
    await session.commit()
    if result.rowcount:
        logger.info("Deleted notification id=%d", notification_id)
    return bool(result.rowcount)


async def delete_notifications(
    session: AsyncSession,
    kind: NotificationKind | None = None,
) -> int:
    """Delete every notification of *kind*, or all of them when kind is None.

    Returns:
        int: Number of notifications deleted.
    """
    stmt = delete(Notification)
    if kind is not None:
        stmt = stmt.where(Notification.kind == kind.value)
    result = await session.execute(stmt)
    await session.commit()
    logger.info(
        "Deleted %d %s notification(s)",
        result.rowcount,
        kind.value if kind is not None else "all",
    )
    return result.rowcount
