"""Lobby admin REST API router.

Endpoints:
    POST /api/clear-chat         - Clear chat history (dev key)
    GET  /api/lobby-stats        - Connected players and history size
    POST /api/broadcast-message  - Send a system chat message (dev key)
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from lobby.config import AppConfig
from lobby.presence.controller import LobbyController

from .schemas import AdminKeyRequest, BroadcastMessageRequest
from .security import invalid_key_response, is_valid_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["admin"])


def _lobby(request: Request) -> LobbyController:
    return request.app.state.lobby


def _config(request: Request) -> AppConfig:
    return request.app.state.config


@router.post("/clear-chat")
async def clear_chat(request: Request, body: AdminKeyRequest) -> JSONResponse:
    """Clear the lobby chat history.

    Every connected client receives ``chatHistoryCleared``.

    Returns:
        403 if the key is wrong, otherwise a success message.
    """
    if not is_valid_key(body.key, _config(request).secrets.admin.dev_key):
        logger.warning("[Admin] Rejected clear-chat: invalid key")
        return invalid_key_response()

    await _lobby(request).clear_history()
    logger.info("[Admin] Chat history cleared by admin")
    return JSONResponse({"success": True, "message": "Chat cleared"})


@router.get("/lobby-stats")
async def lobby_stats(request: Request) -> JSONResponse:
    """Get lobby counters.

    Returns:
        JSON with connectedPlayers, chatMessages and a players list of
        {username, joinedAt}.
    """
    return JSONResponse(_lobby(request).stats().model_dump())


@router.post("/broadcast-message")
async def broadcast_message(request: Request, body: BroadcastMessageRequest) -> JSONResponse:
    """Broadcast a system message to every connected client.

    The message is not added to chat history.

    Returns:
        403 if the key is wrong, 400 if the message is blank.
    """
    if not is_valid_key(body.key, _config(request).secrets.admin.dev_key):
        logger.warning("[Admin] Rejected broadcast-message: invalid key")
        return invalid_key_response()

    event = await _lobby(request).broadcast_system_message(body.message)
    if event is None:
        return JSONResponse({"success": False, "error": "Message required"}, status_code=400)

    return JSONResponse({"success": True, "message": "Broadcast sent"})
