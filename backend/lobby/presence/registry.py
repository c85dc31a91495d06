"""Session registry: the authoritative set of joined participants.

One Participant per connection id, stored in a dict so iteration order is
insertion order. The registry does no locking of its own; the
LobbyController serializes every call.
"""
import logging
import time
from typing import Callable, Dict, List, Optional

from .schemas import DEFAULT_DISPLAY_NAME, Participant

logger = logging.getLogger(__name__)


def _clean_name(name: object) -> str:
    """Return a trimmed display name, or "" for blank or non-string input."""
    if not isinstance(name, str):
        return ""
    return name.strip()


class SessionRegistry:
    """Maps connection ids to Participant records.

    Args:
        default_name: Display name used when a join carries no usable name.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        default_name: str = DEFAULT_DISPLAY_NAME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._participants: Dict[str, Participant] = {}
        self._default_name = default_name
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def register(self, connection_id: str, requested_name: object = None) -> Participant:
        """Create or replace the record for ``connection_id``.

        Args:
            connection_id: Server-assigned connection id.
            requested_name: Name sent by the client; blank, missing or
                non-string values fall back to the default name.

        Returns:
            The new Participant.
        """
        participant = Participant(
            id=connection_id,
            username=_clean_name(requested_name) or self._default_name,
            joinedAt=self._now_ms(),
        )
        replaced = connection_id in self._participants
        self._participants[connection_id] = participant
        logger.debug(
            "[Registry] %s %s as %r",
            "Re-registered" if replaced else "Registered",
            connection_id,
            participant.username,
        )
        return participant

    def rename(self, connection_id: str, new_name: object) -> Optional[Participant]:
        """Change a participant's display name, keeping joinedAt.

        Returns:
            The updated Participant, or None if the id is unknown or the
            name is blank.
        """
        name = _clean_name(new_name)
        participant = self._participants.get(connection_id)
        if participant is None or not name:
            return None
        participant.username = name
        return participant

    def remove(self, connection_id: str) -> Optional[Participant]:
        """Delete and return the record, or None if it is already gone."""
        return self._participants.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Participant]:
        return self._participants.get(connection_id)

    def snapshot(self) -> List[Participant]:
        """Copies of every current record, in insertion order."""
        return [p.model_copy() for p in self._participants.values()]

    def count(self) -> int:
        return len(self._participants)

    def idle_since(self, cutoff_ms: int) -> List[Participant]:
        """Participants that joined before ``cutoff_ms``."""
        return [p for p in self._participants.values() if p.joinedAt < cutoff_ms]

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
