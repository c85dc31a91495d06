"""Broadcast channel for lobby connections.

Holds every open transport (a FastAPI ``WebSocket`` or anything else with an
async ``send_json``) keyed by connection id and fans events out to them.

Delivery contract:
    - Fire-and-forget: no acknowledgement is tracked.
    - Each send is bounded by ``send_timeout`` so one stuck client cannot
      stall the lobby.
    - A failed send drops that transport from the channel and is logged;
      the other recipients are unaffected. Dropped connections are kept
      until the owner collects them with ``take_dropped()`` and ends their
      sessions.
    - Sends to all recipients run concurrently with asyncio.gather(); the
      caller awaits a broadcast before issuing the next one, which keeps
      delivery FIFO per connection.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from .schemas import LobbyEvent

logger = logging.getLogger(__name__)

# Seconds allowed for a single send before the connection is dropped
DEFAULT_SEND_TIMEOUT = 5.0


class Transport(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


def make_frame(event: Union[LobbyEvent, str], data: Any = None) -> Dict[str, Any]:
    """Build the wire frame for an outbound event.

    Payload-less events (e.g. ``chatHistoryCleared``) carry no ``data`` key.
    """
    name = event.value if isinstance(event, LobbyEvent) else event
    frame: Dict[str, Any] = {"event": name}
    if data is not None:
        frame["data"] = data
    return frame


class BroadcastChannel:
    """Delivers events to one or all open connections."""

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT) -> None:
        self._connections: Dict[str, Transport] = {}
        self._dropped: List[Tuple[str, Transport]] = []
        self._send_timeout = send_timeout

    def add(self, connection_id: str, transport: Transport) -> None:
        self._connections[connection_id] = transport

    def discard(self, connection_id: str) -> Optional[Transport]:
        """Forget a connection (no-op if it is already gone)."""
        return self._connections.pop(connection_id, None)

    def connection_count(self) -> int:
        return len(self._connections)

    def connection_ids(self) -> List[str]:
        return list(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    async def send(
        self, connection_id: str, event: Union[LobbyEvent, str], data: Any = None
    ) -> bool:
        """Send an event to a single connection.

        Returns:
            True if delivered, False if the connection is unknown or failed.
        """
        transport = self._connections.get(connection_id)
        if transport is None:
            return False
        delivered = await self._safe_send(connection_id, transport, make_frame(event, data))
        if not delivered:
            self._drop(connection_id, transport)
        return delivered

    async def broadcast(self, event: Union[LobbyEvent, str], data: Any = None) -> int:
        """Send an event to every open connection concurrently.

        Returns:
            Number of connections the event was delivered to.
        """
        targets = list(self._connections.items())
        if not targets:
            return 0

        frame = make_frame(event, data)
        results = await asyncio.gather(
            *[self._safe_send(cid, transport, frame) for cid, transport in targets],
            return_exceptions=True,
        )

        delivered = 0
        for (cid, transport), ok in zip(targets, results):
            if ok is True:
                delivered += 1
            else:
                self._drop(cid, transport)
        return delivered

    async def _safe_send(
        self, connection_id: str, transport: Transport, frame: Dict[str, Any]
    ) -> bool:
        try:
            await asyncio.wait_for(transport.send_json(frame), timeout=self._send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "[Broadcast] Send of %s to %s timed out after %ss",
                frame.get("event"), connection_id, self._send_timeout,
            )
            return False
        except Exception as e:
            logger.debug("[Broadcast] Failed to send to %s: %s", connection_id, e)
            return False

    def take_dropped(self) -> List[Tuple[str, Transport]]:
        """Return and forget the connections dropped since the last call."""
        dropped, self._dropped = self._dropped, []
        return dropped

    async def close(self, transport: Transport) -> None:
        """Close a dropped transport, bounded by the send timeout.

        Transports without a ``close`` coroutine are left alone.
        """
        close = getattr(transport, "close", None)
        if close is None:
            return
        try:
            await asyncio.wait_for(close(), timeout=self._send_timeout)
        except Exception as e:
            logger.debug("[Broadcast] Failed to close transport: %s", e)

    def _drop(self, connection_id: str, transport: Transport) -> None:
        # Only drop if the id still maps to the same transport
        if self._connections.get(connection_id) is transport:
            del self._connections[connection_id]
            self._dropped.append((connection_id, transport))
            logger.debug("[Broadcast] Removed dead connection %s", connection_id)
