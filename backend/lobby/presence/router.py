"""WebSocket endpoint for the lobby.

This module provides:
    - WebSocket /ws/lobby: presence, chat and lobby notices

Every frame, in both directions, is a JSON object::

    {"event": "<name>", "data": <payload>}

Inbound events:
    - joinLobby: data is the requested display name
    - updateUsername: data is the new display name
    - chatMessage: data is {username, message, timestamp}; only ``message``
      is used, the server supplies the name and timestamp

Outbound events:
    - playersList: full list of joined participants
    - chatMessage: one chat event (history replay sends them one by one)
    - userJoined / userLeft: {username}
    - chatHistoryCleared, contractUpdated: no data

Frames that are not JSON objects with a string ``event`` are ignored.
"""
import json
import logging
from typing import Any, Optional, Tuple

from fastapi import APIRouter, WebSocket

from .controller import LobbyController

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lobby(websocket: WebSocket) -> LobbyController:
    return websocket.app.state.lobby


def parse_frame(raw: Optional[str]) -> Optional[Tuple[str, Any]]:
    """Decode an inbound text frame into ``(event, data)``.

    Returns:
        The event name and payload, or None for anything malformed.
    """
    if not raw:
        return None
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict):
        return None
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        return None
    return event, frame.get("data")


@router.websocket("/ws/lobby")
async def lobby_websocket(websocket: WebSocket) -> None:
    """WebSocket endpoint for a single lobby client.

    Protocol Flow:
        1. Client connects → server assigns an opaque connection id
        2. Client sends: {event: "joinLobby", data: name}
           → Client receives: playersList, then each history chatMessage
           → Everyone receives: playersList, userJoined
        3. Client sends: {event: "chatMessage", data: {message}}
           → Everyone receives: chatMessage
        4. Client sends: {event: "updateUsername", data: name}
           → Everyone receives: playersList
        5. On disconnect → Everyone receives: playersList, userLeft
    """
    lobby = get_lobby(websocket)
    await websocket.accept()
    connection_id = await lobby.connect(websocket)
    reason: Any = None

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                reason = message.get("code")
                break

            parsed = parse_frame(message.get("text"))
            if parsed is None:
                logger.debug("[WS] Dropped malformed frame from %s", connection_id)
                continue

            event, data = parsed
            logger.debug("[WS] %s received: event=%s", connection_id, event)
            await lobby.handle(connection_id, event, data)
    except Exception as exc:
        reason = f"transport error: {exc}"
        logger.warning("[WS] Connection %s failed: %s", connection_id, exc)
    finally:
        await lobby.disconnect(connection_id, reason)
