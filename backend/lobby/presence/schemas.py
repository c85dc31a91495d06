"""Pydantic schemas for lobby presence and chat.

These are the records the lobby keeps in memory and sends over the wire.
Field names are the wire names used by the lobby client (``username``,
``joinedAt``, ``timestamp``), so ``model_dump()`` output can be emitted
as-is.

These schemas are used by:
    - SessionRegistry: Participant records keyed by connection id
    - HistoryBuffer: bounded list of ChatEvent
    - LobbyController: outbound event payloads
    - GET /api/lobby-stats: LobbyStats
"""
import time
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_DISPLAY_NAME = "Anonymous"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class LobbyEvent(str, Enum):
    """Names of the events exchanged with lobby clients.

    Inbound:
        JOIN_LOBBY, UPDATE_USERNAME, CHAT_MESSAGE.

    Outbound:
        PLAYERS_LIST, CHAT_MESSAGE, USER_JOINED, USER_LEFT,
        CHAT_HISTORY_CLEARED, CONTRACT_UPDATED.
    """
    JOIN_LOBBY = "joinLobby"
    UPDATE_USERNAME = "updateUsername"
    CHAT_MESSAGE = "chatMessage"
    PLAYERS_LIST = "playersList"
    USER_JOINED = "userJoined"
    USER_LEFT = "userLeft"
    CHAT_HISTORY_CLEARED = "chatHistoryCleared"
    CONTRACT_UPDATED = "contractUpdated"


class Participant(BaseModel):
    """A client that has joined the lobby.

    Attributes:
        id: Server-assigned connection id (opaque).
        username: Display name, mutable through rename.
        joinedAt: Join time in epoch milliseconds.
    """
    id: str = Field(..., description="Connection id")
    username: str = Field(default=DEFAULT_DISPLAY_NAME, description="Display name")
    joinedAt: int = Field(default_factory=now_ms, description="Join time (epoch ms)")


class ChatEvent(BaseModel):
    """A chat message as stored in history and broadcast to clients.

    The sender's display name is copied by value, so renaming a participant
    later does not rewrite history.

    Attributes:
        username: Sender display name at submission time.
        message: Trimmed, length-capped message text.
        timestamp: Server receive time in epoch milliseconds.
    """
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Sender display name")
    message: str = Field(..., description="Message text")
    timestamp: int = Field(default_factory=now_ms, description="Server time (epoch ms)")


class ParticipantSummary(BaseModel):
    """Participant view exposed by the admin stats endpoint."""
    username: str
    joinedAt: int


class LobbyStats(BaseModel):
    """Read-only lobby counters for the admin surface."""
    connectedPlayers: int = 0
    chatMessages: int = 0
    players: List[ParticipantSummary] = Field(default_factory=list)
