"""Unit tests for the WebSocket ConnectionManager (per-user rooms)."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from quizify.realtime.events import level_up_event
from quizify.realtime.manager import ConnectionManager


@pytest.fixture
def mgr() -> ConnectionManager:
    """Fresh ConnectionManager for each test."""
    return ConnectionManager(max_connections_per_user=3)


def _make_ws(*, fail_send: bool = False) -> MagicMock:
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    if fail_send:
        ws.send_text = AsyncMock(side_effect=RuntimeError("connection closed"))
    else:
        ws.send_text = AsyncMock()
    return ws


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_joins_room(self, mgr: ConnectionManager) -> None:
        ws = _make_ws()
        assert await mgr.connect(ws, "conn-1", user_id=42) is True
        ws.accept.assert_awaited_once()
        assert mgr.connection_count == 1
        assert mgr.room_size(42) == 1
        assert mgr.get_stats() == {"total_connections": 1, "unique_users": 1}

    @pytest.mark.asyncio
    async def test_multiple_connections_share_room(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.connect(_make_ws(), "conn-2", user_id=42)
        assert mgr.connection_count == 2
        assert mgr.room_size(42) == 2
        assert mgr.get_stats()["unique_users"] == 1

    @pytest.mark.asyncio
    async def test_connection_cap_per_user(self, mgr: ConnectionManager) -> None:
        for i in range(3):
            await mgr.connect(_make_ws(), f"conn-{i}", user_id=42)
        ws = _make_ws()
        assert await mgr.connect(ws, "conn-extra", user_id=42) is False
        ws.close.assert_awaited_once()
        assert ws.close.call_args.kwargs["code"] == 4008
        assert mgr.room_size(42) == 3


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_removes_empty_room(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.disconnect("conn-1")
        assert mgr.connection_count == 0
        assert mgr.room_size(42) == 0
        assert mgr.get_stats()["unique_users"] == 0

    @pytest.mark.asyncio
    async def test_disconnect_nonexistent(self, mgr: ConnectionManager) -> None:
        """Disconnecting an unknown conn_id is a no-op."""
        await mgr.disconnect("nonexistent")
        assert mgr.connection_count == 0


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_broadcast_to_every_connection_of_user(self, mgr: ConnectionManager) -> None:
        ws1, ws2, other = _make_ws(), _make_ws(), _make_ws()
        await mgr.connect(ws1, "conn-1", user_id=42)
        await mgr.connect(ws2, "conn-2", user_id=42)
        await mgr.connect(other, "conn-3", user_id=7)

        sent = await mgr.send_to_user(42, level_up_event(1, 2, 6))

        assert sent == 2
        expected = {"event": "levelUp", "data": {"newLevel": 2, "previousLevel": 1, "totalQuizzesAnswered": 6}}
        for ws in (ws1, ws2):
            assert json.loads(ws.send_text.call_args[0][0]) == expected
        other.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_room_is_dropped(self, mgr: ConnectionManager) -> None:
        """Nothing is queued for a user with no connection."""
        assert await mgr.send_to_user(99, level_up_event(1, 2, 6)) == 0

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self, mgr: ConnectionManager) -> None:
        good, bad = _make_ws(), _make_ws(fail_send=True)
        await mgr.connect(good, "conn-good", user_id=42)
        await mgr.connect(bad, "conn-bad", user_id=42)

        sent = await mgr.send_to_user(42, level_up_event(1, 2, 6))

        assert sent == 1
        assert mgr.room_size(42) == 1

    @pytest.mark.asyncio
    async def test_messages_sent_counter(self, mgr: ConnectionManager) -> None:
        await mgr.connect(_make_ws(), "conn-1", user_id=42)
        await mgr.send_raw_to_user(42, {"type": "pong"})
        await mgr.send_raw_to_user(42, {"type": "pong"})
        assert mgr._connections["conn-1"].messages_sent == 2
