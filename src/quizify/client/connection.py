"""aiohttp transport for the client: the WebSocket channel and the REST calls."""

from __future__ import annotations

import asyncio
import json
from typing import Any
from urllib.parse import urlencode

import aiohttp
import structlog

from quizify.client.subscriber import NotificationSubscriber
from quizify.realtime.events import InvalidEventError, decode_event

logger = structlog.get_logger()

AUTH_FAILED_CLOSE_CODE = 4001


def ws_url(base_url: str, token: str) -> str:
    """``http(s)://host`` -> ``ws(s)://host/ws?token=...``"""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/ws?{urlencode({'token': token})}"


class NotificationApi:
    """REST calls for notifications. Raises ``aiohttp.ClientResponseError`` on non-2xx."""

    def __init__(self, base_url: str, token: str, session: aiohttp.ClientSession | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=10))
        return self._session

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def mark_as_read(self, notification_id: str) -> None:
        url = f"{self.base_url}/api/v1/notifications/{notification_id}/read"
        async with self._get_session().patch(url, headers=self._headers) as resp:
            resp.raise_for_status()

    async def delete(self, notification_id: str) -> None:
        url = f"{self.base_url}/api/v1/notifications/{notification_id}"
        async with self._get_session().delete(url, headers=self._headers) as resp:
            resp.raise_for_status()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


class SocketConnection:
    """Keeps a WebSocket to ``/ws`` open and feeds decoded events to a subscriber.

    Reconnects with exponential backoff; an authentication rejection (close
    code 4001) stops the loop since retrying with the same token cannot succeed.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
    ) -> None:
        self.url = ws_url(base_url, token)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._running = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def send(self, message: dict[str, Any]) -> None:
        if not self.connected:
            raise ConnectionError("WebSocket is not connected")
        assert self._ws is not None
        await self._ws.send_str(json.dumps(message))

    async def run(self, subscriber: NotificationSubscriber) -> None:
        """Connect and dispatch until ``stop()`` is called or auth is rejected."""
        self._running = True
        delay = self.initial_backoff

        async with aiohttp.ClientSession() as session:
            while self._running:
                subscriber.on_connecting()
                close_code = None
                try:
                    async with session.ws_connect(self.url, heartbeat=30) as ws:
                        self._ws = ws
                        await subscriber.on_connected()
                        delay = self.initial_backoff
                        await self._read_loop(ws, subscriber)
                        close_code = ws.close_code
                except (aiohttp.ClientError, ConnectionError) as e:
                    logger.warning("ws_connect_failed", url=self.url.split("?")[0], error=str(e))
                finally:
                    self._ws = None
                    subscriber.on_disconnected()

                if close_code == AUTH_FAILED_CLOSE_CODE:
                    logger.error("ws_auth_rejected")
                    self._running = False
                    break
                if not self._running:
                    break

                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_backoff)

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close()

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse, subscriber: NotificationSubscriber) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                dispatch_frame(msg.data, subscriber)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("ws_error", error=str(ws.exception()))
                break


def dispatch_frame(raw: str, subscriber: NotificationSubscriber) -> None:
    """Decode one text frame and hand events to the subscriber; other frames are logged."""
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ws_invalid_frame")
        return
    if not isinstance(frame, dict):
        logger.warning("ws_invalid_frame")
        return

    if "event" in frame:
        try:
            event = decode_event(frame)
        except InvalidEventError as e:
            logger.warning("ws_invalid_event", error=str(e))
            return
        subscriber.handle_event(event)
    elif frame.get("type") == "error":
        logger.warning("ws_server_error", message=frame.get("message"))
