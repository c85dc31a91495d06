"""Background sweep that evicts stale lobby sessions.

Participants are reaped once their age (measured from joinedAt) exceeds the
idle timeout, even if they are still chatting. The sweep goes through
LobbyController.reap_idle(), so it takes the same lock as the connection
handlers.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from .controller import LobbyController
from .schemas import Participant

logger = logging.getLogger(__name__)

# Defaults: sweep every 5 minutes, reap after 30 minutes
DEFAULT_REAP_INTERVAL_SECONDS = 5 * 60
DEFAULT_IDLE_TIMEOUT_SECONDS = 30 * 60


class PresenceReaper:
    """Periodically removes participants older than ``idle_timeout``."""

    def __init__(
        self,
        controller: LobbyController,
        interval_seconds: float = DEFAULT_REAP_INTERVAL_SECONDS,
        idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
    ) -> None:
        self._controller = controller
        self._interval = interval_seconds
        self._idle_timeout = idle_timeout_seconds
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the background sweep task (no-op if already running)."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "[Reaper] Sweep task started (interval=%ss, timeout=%ss)",
            self._interval, self._idle_timeout,
        )

    async def stop(self) -> None:
        """Cancel the sweep task."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        logger.info("[Reaper] Sweep task stopped")

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("[Reaper] Sweep failed")

    async def sweep_once(self) -> List[Participant]:
        """Evict every participant past the idle timeout."""
        reaped = await self._controller.reap_idle(self._idle_timeout)
        if reaped:
            logger.info("[Reaper] Sweep evicted %d stale participants", len(reaped))
        return reaped
