"""Client subscriber: connection states, level-up modal, idempotent notification merges."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from quizify.client.subscriber import ConnectionState, LevelUpModal, NotificationSubscriber
from quizify.realtime.events import (
    NotificationItem,
    level_up_event,
    notification_created_event,
    notification_deleted_event,
    notification_read_event,
    notification_snapshot_event,
    notifications_deleted_all_event,
    notifications_read_all_event,
)


def _item(id_: str, *, is_read: bool = False) -> NotificationItem:
    return NotificationItem(
        id=id_,
        type="system",
        title=f"Notification {id_}",
        message="hello",
        is_read=is_read,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _subscriber(modal: LevelUpModal | None = None) -> tuple[NotificationSubscriber, AsyncMock, AsyncMock]:
    send = AsyncMock()
    api = AsyncMock()
    return NotificationSubscriber(send=send, api=api, modal=modal or LevelUpModal(display_seconds=0.05)), send, api


class TestConnectionLifecycle:
    def test_starts_disconnected(self) -> None:
        sub, _, _ = _subscriber()
        assert sub.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_fetches_notifications(self) -> None:
        sub, send, _ = _subscriber()
        sub.on_connecting()
        assert sub.state is ConnectionState.CONNECTING
        await sub.on_connected()
        assert sub.state is ConnectionState.CONNECTED
        send.assert_awaited_once_with({"action": "notification:get"})

    @pytest.mark.asyncio
    async def test_every_reconnect_refetches(self) -> None:
        sub, send, _ = _subscriber()
        await sub.on_connected()
        sub.on_disconnected()
        assert sub.state is ConnectionState.DISCONNECTED
        sub.on_connecting()
        await sub.on_connected()
        assert send.await_count == 2


class TestLevelUpModal:
    @pytest.mark.asyncio
    async def test_level_up_shows_modal(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(level_up_event(1, 2, 6))
        assert sub.modal.visible is True
        assert sub.modal.new_level == 2
        assert sub.modal.previous_level == 1

    @pytest.mark.asyncio
    async def test_modal_auto_hides(self) -> None:
        sub, _, _ = _subscriber(LevelUpModal(display_seconds=0.05))
        sub.handle_event(level_up_event(1, 2, 6))
        await asyncio.sleep(0.1)
        assert sub.modal.visible is False

    @pytest.mark.asyncio
    async def test_dismiss_hides_immediately(self) -> None:
        modal = LevelUpModal(display_seconds=10)
        sub, _, _ = _subscriber(modal)
        sub.handle_event(level_up_event(4, 5, 31))
        modal.dismiss()
        assert modal.visible is False

    @pytest.mark.asyncio
    async def test_second_level_up_restarts_timer(self) -> None:
        modal = LevelUpModal(display_seconds=0.1)
        sub, _, _ = _subscriber(modal)
        sub.handle_event(level_up_event(1, 2, 6))
        await asyncio.sleep(0.06)
        sub.handle_event(level_up_event(2, 3, 13))
        await asyncio.sleep(0.06)
        assert modal.visible is True
        assert modal.new_level == 3
        await asyncio.sleep(0.1)
        assert modal.visible is False

    def test_default_duration_is_three_seconds(self) -> None:
        assert LevelUpModal().display_seconds == 3.0


class TestNotificationMerge:
    def test_snapshot_replaces_list(self) -> None:
        sub, _, _ = _subscriber()
        sub.notifications = [_item("old")]
        sub.handle_event(notification_snapshot_event([_item("2"), _item("1")]))
        assert [n.id for n in sub.notifications] == ["2", "1"]

    def test_delta_inserts_newest_first(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1")]))
        sub.handle_event(notification_created_event(_item("2")))
        assert [n.id for n in sub.notifications] == ["2", "1"]

    def test_duplicate_delta_is_ignored(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_created_event(_item("1")))
        sub.handle_event(notification_created_event(_item("1")))
        assert len(sub.notifications) == 1

    def test_read_marks_item(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1"), _item("2")]))
        sub.handle_event(notification_read_event("1"))
        assert sub.find("1").is_read is True
        assert sub.find("2").is_read is False
        assert sub.unread_count == 1

    def test_read_of_absent_item_is_noop(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1")]))
        sub.handle_event(notification_read_event("99"))
        sub.handle_event(notification_read_event("1"))
        sub.handle_event(notification_read_event("1"))
        assert [(n.id, n.is_read) for n in sub.notifications] == [("1", True)]

    def test_read_all(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1"), _item("2", is_read=True)]))
        sub.handle_event(notifications_read_all_event())
        assert sub.unread_count == 0
        assert len(sub.notifications) == 2

    def test_delete_is_idempotent(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1"), _item("2")]))
        sub.handle_event(notification_deleted_event("1"))
        sub.handle_event(notification_deleted_event("1"))
        assert [n.id for n in sub.notifications] == ["2"]

    def test_delete_all(self) -> None:
        sub, _, _ = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1"), _item("2")]))
        sub.handle_event(notifications_deleted_all_event())
        assert sub.notifications == []
        sub.handle_event(notifications_deleted_all_event())
        assert sub.notifications == []


class TestUserActions:
    @pytest.mark.asyncio
    async def test_mark_as_read_calls_api_then_applies(self) -> None:
        sub, _, api = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1")]))
        await sub.mark_as_read("1")
        api.mark_as_read.assert_awaited_once_with("1")
        assert sub.find("1").is_read is True

    @pytest.mark.asyncio
    async def test_failed_call_leaves_state(self) -> None:
        sub, _, api = _subscriber()
        api.delete.side_effect = RuntimeError("boom")
        sub.handle_event(notification_snapshot_event([_item("1")]))
        with pytest.raises(RuntimeError):
            await sub.delete("1")
        assert [n.id for n in sub.notifications] == ["1"]

    @pytest.mark.asyncio
    async def test_delete_after_push_removed_item(self) -> None:
        """The push delta and the call's own effect together remove the item once."""
        sub, _, api = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1"), _item("2")]))

        async def push_arrives_first(notification_id: str) -> None:
            sub.handle_event(notification_deleted_event(notification_id))

        api.delete.side_effect = push_arrives_first
        await sub.delete("1")
        assert [n.id for n in sub.notifications] == ["2"]

    @pytest.mark.asyncio
    async def test_mark_read_does_not_resurrect_deleted_item(self) -> None:
        sub, _, api = _subscriber()
        sub.handle_event(notification_snapshot_event([_item("1")]))

        async def deleted_meanwhile(notification_id: str) -> None:
            sub.handle_event(notification_deleted_event(notification_id))

        api.mark_as_read.side_effect = deleted_meanwhile
        await sub.mark_as_read("1")
        assert sub.notifications == []
