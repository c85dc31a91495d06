"""Lobby presence and chat broadcast engine."""

from .broadcast import BroadcastChannel
from .controller import LobbyController
from .history import HistoryBuffer
from .reaper import PresenceReaper
from .registry import SessionRegistry
from .schemas import ChatEvent, LobbyEvent, LobbyStats, Participant
from .router import router

__all__ = [
    "BroadcastChannel",
    "ChatEvent",
    "HistoryBuffer",
    "LobbyController",
    "LobbyEvent",
    "LobbyStats",
    "Participant",
    "PresenceReaper",
    "SessionRegistry",
    "router",
]
