"""Bridges Redis pub/sub to WebSocket clients.

Pattern-subscribes to the per-user channels ``ws:user:*`` published by
``RedisNotifier`` (from any API instance) and forwards each message to the
matching user's room on this instance.
"""

import asyncio
import json

import redis.asyncio as aioredis
import structlog

from quizify.realtime.events import InvalidEventError, decode_event
from quizify.realtime.manager import ConnectionManager
from quizify.realtime.notifier import USER_CHANNEL_PREFIX

logger = structlog.get_logger()


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis, connections: ConnectionManager) -> None:
        self.redis = redis_client
        self.connections = connections
        self._running = False

    async def start(self) -> None:
        """Start listening to the per-user channels."""
        self._running = True
        pubsub = self.redis.pubsub()
        pattern = f"{USER_CHANNEL_PREFIX}*"
        await pubsub.psubscribe(pattern)

        logger.info("pubsub_bridge_started", patterns=[pattern])

        try:
            while self._running:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                try:
                    await self.handle_message(message)
                except Exception:
                    logger.exception("pubsub_handle_failed", channel=message.get("channel"))
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def handle_message(self, message: dict) -> int:
        """Route one pub/sub message. Returns the number of sockets reached."""
        if message.get("type") != "pmessage":
            return 0

        redis_channel = message.get("channel", "")
        if isinstance(redis_channel, bytes):
            redis_channel = redis_channel.decode()
        if not redis_channel.startswith(USER_CHANNEL_PREFIX):
            return 0

        try:
            user_id = int(redis_channel[len(USER_CHANNEL_PREFIX):])
        except ValueError:
            logger.warning("pubsub_invalid_user_id", channel=redis_channel)
            return 0

        try:
            data = message.get("data", b"")
            if isinstance(data, bytes):
                data = data.decode()
            event = decode_event(json.loads(data))
        except (json.JSONDecodeError, UnicodeDecodeError, InvalidEventError):
            logger.warning("pubsub_invalid_message", channel=redis_channel)
            return 0

        sent = await self.connections.send_to_user(user_id, event)
        if sent > 0:
            logger.debug("user_event_sent", user_id=user_id, kind=event.kind.value, recipients=sent)
        return sent

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
