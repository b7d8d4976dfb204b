"""
WebSocket endpoint for the live notification feed.

Each connection hosts its own NotificationChannel for the user in the URL.
The channel subscribes to the process-wide push transport, so rows the
dispatcher publishes reach every open socket of that user.

Protocol:
    Server sends: { "type": "snapshot", "state": "live", "unread_count": 2,
                    "notifications": [...] }       after every feed change
    Server sends: { "type": "error", "code": "FETCH_FAILED", "severity": "high",
                    "message": "..." }
    Client sends: { "type": "mark_read", "id": 42 }
    Client sends: { "type": "mark_all_read" }
    Client sends: { "type": "ping", "timestamp": 1234567890 }
    Server sends: { "type": "pong", "timestamp": 1234567890, "serverTime": "..." }
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import WebSocket, WebSocketDisconnect

from weddingdesk.core.config import Config
from weddingdesk.core.errors import (
    ChannelClosedError,
    NotificationFetchError,
    NotificationWriteError,
)
from weddingdesk.notifications.channel import NotificationChannel
from weddingdesk.notifications.store import NotificationBackend
from weddingdesk.notifications.transport import PushTransport


logger = logging.getLogger(__name__)


def error_frame(code: str, message: str, severity: str = "low") -> Dict[str, Any]:
    return {
        "type": "error",
        "code": code,
        "severity": severity,
        "message": message,
    }


async def _drain(websocket: WebSocket, outbox: "asyncio.Queue[Dict[str, Any]]") -> None:
    """Send queued frames in order until cancelled or the socket fails."""
    while True:
        frame = await outbox.get()
        try:
            await websocket.send_text(json.dumps(frame))
        except Exception as e:
            logger.info(f"Stopped sending to closed socket: {e!r}")
            return


async def _handle_message(
    channel: NotificationChannel,
    outbox: "asyncio.Queue[Dict[str, Any]]",
    data: str,
) -> None:
    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        outbox.put_nowait(error_frame("INVALID_JSON", "Message must be valid JSON"))
        return
    if not isinstance(message, dict):
        outbox.put_nowait(error_frame("INVALID_MESSAGE", "Message must be a JSON object"))
        return

    msg_type = message.get("type")
    try:
        if msg_type == "mark_read":
            notification_id = message.get("id")
            if not isinstance(notification_id, int):
                outbox.put_nowait(error_frame("INVALID_MESSAGE", "mark_read requires an integer id"))
                return
            await channel.mark_read(notification_id)

        elif msg_type == "mark_all_read":
            await channel.mark_all_read()

        elif msg_type == "ping":
            outbox.put_nowait({
                "type": "pong",
                "timestamp": message.get("timestamp"),
                "serverTime": datetime.now(timezone.utc).isoformat(),
            })

        else:
            outbox.put_nowait(error_frame(
                "UNKNOWN_MESSAGE_TYPE", f"Unknown message type: {msg_type}"
            ))

    except NotificationWriteError as e:
        outbox.put_nowait(error_frame("WRITE_FAILED", str(e), severity="low"))
    except ChannelClosedError as e:
        outbox.put_nowait(error_frame("CHANNEL_CLOSED", str(e), severity="high"))


async def notification_socket(
    websocket: WebSocket,
    user_id: str,
    backend: NotificationBackend,
    transport: PushTransport,
    config: Config,
) -> None:
    """
    Serve one user's live feed over an accepted-on-entry WebSocket.

    The channel is closed when the client disconnects.
    """
    await websocket.accept()

    channel = NotificationChannel(
        backend,
        transport,
        silence_timeout=config.get("silence_timeout_seconds", "notifications", 90),
        watchdog_interval=config.get("watchdog_interval_seconds", "notifications", 15),
    )
    outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
    remove_listener = channel.add_listener(lambda snapshot: outbox.put_nowait(snapshot.to_dict()))
    sender = asyncio.create_task(_drain(websocket, outbox))
    logger.info(f"Notification socket opened for {user_id}")

    try:
        try:
            await channel.connect(user_id)
        except NotificationFetchError as e:
            outbox.put_nowait(error_frame("FETCH_FAILED", str(e), severity="high"))

        while True:
            data = await websocket.receive_text()
            await _handle_message(channel, outbox, data)

    except WebSocketDisconnect:
        logger.info(f"Notification socket closed for {user_id}")

    finally:
        remove_listener()
        await channel.close()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
