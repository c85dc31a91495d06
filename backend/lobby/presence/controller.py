"""Lobby controller: presence, chat relay and history for one lobby.

The controller owns the SessionRegistry, HistoryBuffer and BroadcastChannel
and is the only code that mutates them. Every entry point that changes state
runs under a single asyncio.Lock that also covers the broadcasts triggered
by the change, so mutation-then-broadcast is atomic with respect to other
connections and to the PresenceReaper.

Per-connection state machine:

    Connected-NotJoined --joinLobby--> Joined --updateUsername--> Joined
            |                            |
            +--------- disconnect -------+--> Disconnected

"Connected" means the transport is in the BroadcastChannel, "Joined" means
the connection id is in the SessionRegistry. A send that fails or times out
counts as a disconnect: the channel drops the transport, and the controller
closes it and removes the participant before releasing the lock, so a
joined connection is always a connected one.

Broadcasts are awaited while the lock is held. A stalled client therefore
delays every other handler, and the reaper, by up to ``send_timeout_seconds``
per broadcast it is part of (twice that on a join), after which it is
dropped and stops delaying anyone.

Error handling:
    - Malformed input (blank names, blank messages, wrong payload types)
      is dropped without any client-visible error.
    - Events from connections that are not joined are dropped.
    - ``handle()`` logs and swallows handler failures so the transport loop
      never dies because of one bad frame.
"""
import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .broadcast import BroadcastChannel, Transport
from .history import HistoryBuffer
from .registry import SessionRegistry
from .schemas import (
    ChatEvent,
    LobbyEvent,
    LobbyStats,
    Participant,
    ParticipantSummary,
)

logger = logging.getLogger(__name__)

# Maximum characters kept from a chat message
MAX_MESSAGE_LENGTH = 500

SYSTEM_DISPLAY_NAME = "🏯 System"


def _extract_message_text(payload: Any) -> str:
    """Pull the message text out of a chatMessage payload.

    Accepts ``{"message": "..."}`` (the client's shape) or a bare string.
    Anything else yields "".
    """
    if isinstance(payload, dict):
        payload = payload.get("message")
    if not isinstance(payload, str):
        return ""
    return payload.strip()


class LobbyController:
    """Handles inbound lobby events and emits the resulting broadcasts.

    Args:
        registry: Participant store.
        history: Chat history buffer.
        channel: Broadcast channel holding the open transports.
        max_message_length: Characters kept from each chat message.
        system_name: Display name for admin system messages.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        history: HistoryBuffer,
        channel: BroadcastChannel,
        *,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        system_name: str = SYSTEM_DISPLAY_NAME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.history = history
        self.channel = channel
        self._max_message_length = max_message_length
        self._system_name = system_name
        self._clock = clock
        self._lock = asyncio.Lock()

        # event name -> handler(connection_id, payload)
        self._handlers: Dict[str, Callable[[str, Any], Awaitable[None]]] = {
            LobbyEvent.JOIN_LOBBY.value: self.join_lobby,
            LobbyEvent.UPDATE_USERNAME.value: self.update_username,
            LobbyEvent.CHAT_MESSAGE.value: self.chat_message,
        }

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _players_payload(self) -> List[dict]:
        return [p.model_dump() for p in self.registry.snapshot()]

    async def _broadcast_players(self) -> None:
        await self._broadcast(LobbyEvent.PLAYERS_LIST, self._players_payload())

    async def _broadcast(self, event: LobbyEvent, data: Any = None) -> int:
        delivered = await self.channel.broadcast(event, data)
        await self._release_dropped()
        return delivered

    async def _release_dropped(self) -> None:
        """End the sessions of connections the channel dropped on a failed send.

        A dropped transport is treated as a disconnect: its socket is closed,
        its participant is removed and the others get the players snapshot
        and a ``userLeft`` notice. Those broadcasts can drop further
        connections, so this repeats until nothing is left. Caller holds
        the lock.
        """
        dropped = self.channel.take_dropped()
        while dropped:
            left = []
            for connection_id, transport in dropped:
                await self.channel.close(transport)
                participant = self.registry.remove(connection_id)
                if participant is not None:
                    left.append(participant)
            for participant in left:
                logger.info(
                    "[Lobby] %s dropped after a failed send (remaining=%d)",
                    participant.username, self.registry.count(),
                )
                await self.channel.broadcast(LobbyEvent.PLAYERS_LIST, self._players_payload())
                await self.channel.broadcast(
                    LobbyEvent.USER_LEFT, {"username": participant.username}
                )
            dropped = self.channel.take_dropped()

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, transport: Transport) -> str:
        """Register an accepted transport and assign it a connection id."""
        connection_id = uuid.uuid4().hex
        async with self._lock:
            self.channel.add(connection_id, transport)
        logger.info(
            "[Lobby] Connection %s opened (%d connections)",
            connection_id, self.channel.connection_count(),
        )
        return connection_id

    async def disconnect(self, connection_id: str, reason: Any = None) -> Optional[Participant]:
        """End a connection's session.

        Returns:
            The removed Participant, or None if the connection never joined
            or was already reaped (in which case nothing is broadcast).
        """
        async with self._lock:
            self.channel.discard(connection_id)
            participant = self.registry.remove(connection_id)
            if participant is None:
                logger.info("[Lobby] Connection %s closed before joining (%s)", connection_id, reason)
                return None

            logger.info(
                "[Lobby] %s left (reason=%s, remaining=%d)",
                participant.username, reason, self.registry.count(),
            )
            await self._broadcast_players()
            await self._broadcast(LobbyEvent.USER_LEFT, {"username": participant.username})
            return participant

    # =========================================================================
    # Inbound events
    # =========================================================================

    async def handle(self, connection_id: str, event: Any, payload: Any = None) -> None:
        """Dispatch an inbound event by name. Never raises."""
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.debug("[Lobby] Ignoring unknown event %r from %s", event, connection_id)
            return
        try:
            await handler(connection_id, payload)
        except Exception:
            logger.exception("[Lobby] Error handling %s from %s", event, connection_id)

    async def join_lobby(self, connection_id: str, name: Any = None) -> Optional[Participant]:
        """Register a participant and bring the joiner up to date.

        The joiner first gets the players snapshot and each buffered chat
        event individually (oldest first), then everyone gets the new
        snapshot and a ``userJoined`` notice.
        """
        async with self._lock:
            if connection_id not in self.channel:
                logger.debug("[Lobby] Join from closed connection %s ignored", connection_id)
                return None

            announced = connection_id in self.registry
            participant = self.registry.register(connection_id, name)
            logger.info(
                "[Lobby] %s joined as %s (total=%d)",
                connection_id, participant.username, self.registry.count(),
            )

            players = self._players_payload()
            delivered = await self.channel.send(connection_id, LobbyEvent.PLAYERS_LIST, players)
            for event in self.history.snapshot():
                if not delivered:
                    break
                delivered = await self.channel.send(
                    connection_id, LobbyEvent.CHAT_MESSAGE, event.model_dump()
                )

            if not delivered:
                logger.info("[Lobby] %s dropped while joining", participant.username)
                if not announced:
                    # Nobody saw it join, so nobody is told it left
                    self.registry.remove(connection_id)
                await self._release_dropped()
                return None

            await self._broadcast(LobbyEvent.PLAYERS_LIST, players)
            await self._broadcast(LobbyEvent.USER_JOINED, {"username": participant.username})
            return participant

    async def update_username(self, connection_id: str, name: Any = None) -> Optional[Participant]:
        """Rename a joined participant and republish the players snapshot.

        Blank names, unchanged names and unknown connections are ignored.
        """
        async with self._lock:
            current = self.registry.get(connection_id)
            if current is None or not isinstance(name, str):
                return None
            new_name = name.strip()
            if not new_name or new_name == current.username:
                return None

            old_name = current.username
            participant = self.registry.rename(connection_id, new_name)
            if participant is None:
                return None
            logger.info("[Lobby] %s renamed to %s", old_name, participant.username)
            await self._broadcast_players()
            return participant

    async def chat_message(self, connection_id: str, payload: Any = None) -> Optional[ChatEvent]:
        """Record a chat message and relay it to everyone, sender included.

        The client's ``username`` and ``timestamp`` fields are ignored: the
        registry name and server time are authoritative.
        """
        async with self._lock:
            participant = self.registry.get(connection_id)
            if participant is None:
                logger.warning("[Lobby] Message from unknown connection %s dropped", connection_id)
                return None

            text = _extract_message_text(payload)
            if not text:
                logger.debug("[Lobby] Empty message from %s dropped", participant.username)
                return None

            event = ChatEvent(
                username=participant.username,
                message=text[: self._max_message_length],
                timestamp=self._now_ms(),
            )
            self.history.append(event)
            await self._broadcast(LobbyEvent.CHAT_MESSAGE, event.model_dump())
            return event

    # =========================================================================
    # Reaping
    # =========================================================================

    async def reap_idle(self, max_age_seconds: float) -> List[Participant]:
        """Remove participants that joined more than ``max_age_seconds`` ago.

        Age is measured from joinedAt, not from last activity. Each removal
        republishes the players snapshot and announces ``userLeft``. The
        transports stay open; a reaped client may join again.

        Returns:
            The removed participants.
        """
        async with self._lock:
            cutoff = self._now_ms() - int(max_age_seconds * 1000)
            reaped = []
            for stale in self.registry.idle_since(cutoff):
                participant = self.registry.remove(stale.id)
                if participant is None:
                    continue
                reaped.append(participant)
                logger.info("[Lobby] Removing inactive player: %s", participant.username)
                await self._broadcast_players()
                await self._broadcast(LobbyEvent.USER_LEFT, {"username": participant.username})
            return reaped

    # =========================================================================
    # Admin entry points
    # =========================================================================

    async def clear_history(self) -> None:
        """Empty the chat history and tell every client to clear theirs."""
        async with self._lock:
            dropped = self.history.count()
            self.history.clear()
            await self._broadcast(LobbyEvent.CHAT_HISTORY_CLEARED)
        logger.info("[Lobby] Chat history cleared (%d messages dropped)", dropped)

    async def broadcast_system_message(self, text: Any) -> Optional[ChatEvent]:
        """Send a system chat message to everyone without storing it.

        Returns:
            The broadcast event, or None if the text is blank.
        """
        message = text.strip() if isinstance(text, str) else ""
        if not message:
            return None
        event = ChatEvent(username=self._system_name, message=message, timestamp=self._now_ms())
        async with self._lock:
            await self._broadcast(LobbyEvent.CHAT_MESSAGE, event.model_dump())
        logger.info("[Lobby] System broadcast: %s", message)
        return event

    async def notify(self, event: LobbyEvent, data: Any = None) -> int:
        """Broadcast a notice that does not touch lobby state."""
        async with self._lock:
            return await self._broadcast(event, data)

    def stats(self) -> LobbyStats:
        """Read-only counters for the admin surface."""
        return LobbyStats(
            connectedPlayers=self.registry.count(),
            chatMessages=self.history.count(),
            players=[
                ParticipantSummary(username=p.username, joinedAt=p.joinedAt)
                for p in self.registry.snapshot()
            ],
        )
