"""WebSocket endpoint: JWT authentication, per-user room, notification actions."""

import json
import uuid

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect
import structlog

from quizify.auth.dependencies import user_from_token
from quizify.config import get_settings
from quizify.database import get_session_factory
from quizify.errors import NotFoundError
from quizify.notifications.service import (
    delete_all_notifications,
    delete_notification,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
    to_item,
)
from quizify.realtime.events import notification_snapshot_event
from quizify.realtime.manager import manager
from quizify.realtime.notifier import get_notifier

logger = structlog.get_logger()

router = APIRouter()

NOTIFICATION_ACTIONS = {
    "notification:get",
    "notification:read",
    "notification:read-all",
    "notification:delete",
    "notification:delete-all",
}


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    """Single WebSocket endpoint; every connection joins its user's room.

    Protocol:
        Client -> Server:
            {"action": "notification:get"}
            {"action": "notification:read", "notificationId": "12"}
            {"action": "notification:read-all"}
            {"action": "notification:delete", "notificationId": "12"}
            {"action": "notification:delete-all"}
            {"action": "ping"}

        Server -> Client:
            {"event": "levelUp", "data": {...}}
            {"event": "notification:data" | "notification:read" | ..., "data": {...}}
            {"type": "pong"}
            {"type": "error", "message": "..."}
    """
    try:
        async with get_session_factory()() as db:
            user = await user_from_token(db, token)
            user_id = user.id
    except HTTPException as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e.detail}")
        return

    conn_id = str(uuid.uuid4())
    if not await manager.connect(websocket, conn_id, user_id):
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = msg.get("action") if isinstance(msg, dict) else None

            if action == "ping":
                await websocket.send_json({"type": "pong"})
            elif action in NOTIFICATION_ACTIONS:
                await _handle_notification_action(websocket, user_id, action, msg)
            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown action: {action}",
                })

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)


async def _handle_notification_action(websocket: WebSocket, user_id: int, action: str, msg: dict) -> None:
    notifier = get_notifier()
    async with get_session_factory()() as db:
        if action == "notification:get":
            notifications = await get_user_notifications(db, user_id, get_settings().notification_list_limit)
            event = notification_snapshot_event([to_item(n) for n in notifications])
            await websocket.send_json(event.to_wire())
            return

        if action == "notification:read-all":
            await mark_all_as_read(db, notifier, user_id)
            return

        if action == "notification:delete-all":
            await delete_all_notifications(db, notifier, user_id)
            return

        try:
            notification_id = int(msg.get("notificationId"))
        except (TypeError, ValueError):
            await websocket.send_json({"type": "error", "message": "notificationId is required"})
            return

        try:
            if action == "notification:read":
                await mark_as_read(db, notifier, user_id, notification_id)
            else:
                await delete_notification(db, notifier, user_id, notification_id)
        except NotFoundError as e:
            await websocket.send_json({"type": "error", "message": e.detail})
