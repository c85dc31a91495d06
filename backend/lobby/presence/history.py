"""Bounded in-memory chat history."""
from collections import deque
from typing import Deque, List

from .schemas import ChatEvent

# Number of chat events replayed to late joiners
DEFAULT_HISTORY_LIMIT = 50


class HistoryBuffer:
    """Ordered, size-bounded sequence of ChatEvent, oldest evicted first."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_LIMIT) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._events: Deque[ChatEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._events.maxlen

    def append(self, event: ChatEvent) -> ChatEvent:
        """Add an event at the tail, evicting from the head when full."""
        self._events.append(event)
        return event

    def snapshot(self) -> List[ChatEvent]:
        """All buffered events, oldest first."""
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def count(self) -> int:
        return len(self._events)

    def __len__(self) -> int:
        return len(self._events)
