"""
Unit tests for the notification sink and notification history helpers.

Tests verify:
- Events are recorded in the notifications table.
- Recording and relay failures are logged and never raised.
- The webhook relay POSTs the event as JSON only when configured.
- History listing, counts, stats, mark-read and delete helpers.

CHANGELOG:
- 2026-10-17: Add paging, stats and delete tests
- 2026-10-16: Add history helper tests
- 2026-10-15: Initial creation

TODO:
- None
"""

import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from meterbill.db.models import Notification
from meterbill.services.notifications import (
    NotificationKind,
    NotificationSink,
    count_notifications,
    delete_notification,
    delete_notifications,
    list_notifications,
    mark_read,
    notification_stats,
)

WEBHOOK = "https://push.example.com/hook"
PAYLOAD = {"power": 7.25, "ts": "2025-10-02T10:00:00+00:00", "date": "2025-10-02"}


def _http_client(response: MagicMock | None = None) -> AsyncMock:
    client = AsyncMock()
    if response is None:
        response = MagicMock(status_code=200)
    client.post = AsyncMock(return_value=response)
    return client


class TestRecord:
    """Tests for persisting notification events."""

    @pytest.mark.asyncio
    async def test_notify_records_event(self, mock_db_session: AsyncMock) -> None:
        sink = NotificationSink(mock_db_session)

        await sink.notify(NotificationKind.PEAK, "New Daily Peak", "7.25 kW", PAYLOAD)

        notification = mock_db_session.add.call_args.args[0]
        assert isinstance(notification, Notification)
        assert notification.kind == "peak"
        assert notification.title == "New Daily Peak"
        assert notification.payload == PAYLOAD
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_commit_failure_is_swallowed(
        self, mock_db_session: AsyncMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_db_session.commit.side_effect = RuntimeError("database gone")
        sink = NotificationSink(mock_db_session)

        with caplog.at_level(logging.ERROR):
            await sink.notify(NotificationKind.DAILY_SUMMARY, "Daily", "body", {})

        mock_db_session.rollback.assert_awaited_once()
        assert "Failed to record daily_summary notification" in caplog.text

    @pytest.mark.asyncio
    async def test_rollback_failure_is_swallowed(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.commit.side_effect = RuntimeError("database gone")
        mock_db_session.rollback.side_effect = RuntimeError("still gone")
        sink = NotificationSink(mock_db_session)

        await sink.notify(NotificationKind.PEAK, "title", "body", {})

    @pytest.mark.asyncio
    async def test_record_failure_still_relays(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.commit.side_effect = RuntimeError("database gone")
        client = _http_client()
        sink = NotificationSink(mock_db_session, webhook_url=WEBHOOK, http_client=client)

        await sink.notify(NotificationKind.PEAK, "title", "body", PAYLOAD)

        client.post.assert_awaited_once()


class TestRelay:
    """Tests for the webhook relay."""

    @pytest.mark.asyncio
    async def test_no_webhook_means_no_relay(self, mock_db_session: AsyncMock) -> None:
        client = _http_client()
        sink = NotificationSink(mock_db_session, http_client=client)

        await sink.notify(NotificationKind.PEAK, "title", "body", PAYLOAD)

        client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relay_posts_event_json(self, mock_db_session: AsyncMock) -> None:
        client = _http_client()
        sink = NotificationSink(mock_db_session, webhook_url=WEBHOOK, http_client=client)

        await sink.notify(NotificationKind.PEAK, "New Daily Peak", "7.25 kW", PAYLOAD)

        client.post.assert_awaited_once_with(
            WEBHOOK,
            json={
                "kind": "peak",
                "title": "New Daily Peak",
                "body": "7.25 kW",
                "payload": PAYLOAD,
            },
        )

    @pytest.mark.asyncio
    async def test_connection_error_is_swallowed(
        self, mock_db_session: AsyncMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = AsyncMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        sink = NotificationSink(mock_db_session, webhook_url=WEBHOOK, http_client=client)

        with caplog.at_level(logging.WARNING):
            await sink.notify(NotificationKind.PEAK, "title", "body", PAYLOAD)

        assert "Failed to relay peak notification" in caplog.text

    @pytest.mark.asyncio
    async def test_error_status_is_swallowed(self, mock_db_session: AsyncMock) -> None:
        response = MagicMock(status_code=500)
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "server error", request=MagicMock(), response=MagicMock()
        )
        sink = NotificationSink(
            mock_db_session, webhook_url=WEBHOOK, http_client=_http_client(response)
        )

        await sink.notify(NotificationKind.PEAK, "title", "body", PAYLOAD)

        response.raise_for_status.assert_called_once()


class TestHistory:
    """Tests for listing and acknowledging notifications."""

    @pytest.mark.asyncio
    async def test_list_notifications(self, mock_db_session: AsyncMock) -> None:
        rows = [Notification(kind="peak", title="t", body="b", payload={})]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows
        mock_db_session.execute = AsyncMock(return_value=result)

        listed = await list_notifications(
            mock_db_session, kind=NotificationKind.PEAK, unread_only=True, limit=10
        )

        assert listed == rows
        sql = str(mock_db_session.execute.call_args.args[0])
        assert "notifications.kind =" in sql
        assert "ORDER BY notifications.created_at DESC" in sql

    @pytest.mark.asyncio
    async def test_mark_read_returns_rowcount(self, mock_db_session: AsyncMock) -> None:
        result = MagicMock(rowcount=3)
        mock_db_session.execute = AsyncMock(return_value=result)

        updated = await mark_read(mock_db_session, ids=[1, 2, 3])

        assert updated == 3
        mock_db_session.commit.assert_awaited_once()
        sql = str(mock_db_session.execute.call_args.args[0])
        assert sql.startswith("UPDATE notifications")

    @pytest.mark.asyncio
    async def test_list_applies_offset(self, mock_db_session: AsyncMock) -> None:
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_db_session.execute = AsyncMock(return_value=result)

        await list_notifications(mock_db_session, limit=20, offset=40)

        sql = str(mock_db_session.execute.call_args.args[0])
        assert "LIMIT" in sql
        assert "OFFSET" in sql

    @pytest.mark.asyncio
    async def test_count_notifications(self, mock_db_session: AsyncMock) -> None:
        result = MagicMock()
        result.scalar_one.return_value = 12
        mock_db_session.execute = AsyncMock(return_value=result)

        count = await count_notifications(
            mock_db_session, kind=NotificationKind.DAILY_SUMMARY, unread_only=True
        )

        assert count == 12
        sql = str(mock_db_session.execute.call_args.args[0])
        assert "count(notifications.id)" in sql
        assert "notifications.kind =" in sql

    @pytest.mark.asyncio
    async def test_delete_notification(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.execute = AsyncMock(return_value=MagicMock(rowcount=1))

        assert await delete_notification(mock_db_session, 9) is True
        mock_db_session.commit.assert_awaited_once()
        sql = str(mock_db_session.execute.call_args.args[0])
        assert sql.startswith("DELETE FROM notifications")
        assert "notifications.id =" in sql

    @pytest.mark.asyncio
    async def test_delete_unknown_notification(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.execute = AsyncMock(return_value=MagicMock(rowcount=0))
        assert await delete_notification(mock_db_session, 9) is False

    @pytest.mark.asyncio
    async def test_delete_by_kind(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.execute = AsyncMock(return_value=MagicMock(rowcount=4))

        deleted = await delete_notifications(mock_db_session, kind=NotificationKind.PEAK)

        assert deleted == 4
        sql = str(mock_db_session.execute.call_args.args[0])
        assert "notifications.kind =" in sql

    @pytest.mark.asyncio
    async def test_delete_all(self, mock_db_session: AsyncMock) -> None:
        mock_db_session.execute = AsyncMock(return_value=MagicMock(rowcount=6))

        assert await delete_notifications(mock_db_session) == 6
        sql = str(mock_db_session.execute.call_args.args[0])
        assert "WHERE" not in sql


class TestStats:
    """Tests for per-kind notification counts."""

    @pytest.mark.asyncio
    async def test_counts_and_latest_per_kind(self, mock_db_session: AsyncMock) -> None:
        latest_peak = Notification(
            id=3,
            kind="peak",
            title="New Daily Peak",
            body="Power reached 7.25 kW",
            payload={},
            created_at=datetime(2025, 10, 2, 10, 0, tzinfo=UTC),
            read=False,
        )
        counts = MagicMock()
        counts.all.return_value = [("peak", 3, 2)]
        latest = MagicMock()
        latest.scalars.return_value.first.return_value = latest_peak
        mock_db_session.execute = AsyncMock(side_effect=[counts, latest])

        stats = await notification_stats(mock_db_session)

        peak = stats[NotificationKind.PEAK]
        assert (peak.total, peak.unread, peak.read) == (3, 2, 1)
        assert peak.latest is latest_peak
        summary = stats[NotificationKind.DAILY_SUMMARY]
        assert (summary.total, summary.unread, summary.latest) == (0, 0, None)
        assert mock_db_session.execute.await_count == 2
