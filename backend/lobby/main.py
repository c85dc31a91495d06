"""Lobby Server Application.

This is the main entry point for the lobby backend service: a real-time
lobby that tracks who is present, relays chat to everyone in order and
keeps a bounded recent history for late joiners.

Modules:
    - presence: registry, history, broadcast channel, controller, reaper
      and the /ws/lobby WebSocket endpoint
    - admin: shared-key admin endpoints (clear chat, stats, system message)
    - records: JSON-file timers, winners and contract address

Run with ``python -m lobby`` or ``uvicorn lobby.main:create_app --factory``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from lobby.admin.router import router as admin_router
from lobby.config import AppConfig, get_config
from lobby.presence.broadcast import BroadcastChannel
from lobby.presence.controller import LobbyController
from lobby.presence.history import HistoryBuffer
from lobby.presence.reaper import PresenceReaper
from lobby.presence.registry import SessionRegistry
from lobby.presence.router import router as lobby_router
from lobby.records.router import router as records_router
from lobby.records.service import RecordStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-request transport chatter
for _noisy in ("websockets", "websockets.server", "httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_lobby(config: AppConfig) -> LobbyController:
    """Wire a LobbyController from the lobby settings."""
    settings = config.lobby
    return LobbyController(
        registry=SessionRegistry(default_name=settings.default_display_name),
        history=HistoryBuffer(capacity=settings.history_limit),
        channel=BroadcastChannel(send_timeout=settings.send_timeout_seconds),
        max_message_length=settings.max_message_length,
        system_name=settings.system_display_name,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppConfig = app.state.config

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in lobby.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    app.state.records.ensure_defaults()

    reaper: PresenceReaper = app.state.reaper
    if config.reaper.enabled:
        await reaper.start()
    else:
        logger.info("Presence reaper disabled in config.")

    logger.info(
        "Lobby ready on http://%s:%s (history_limit=%d)",
        config.server.host,
        config.server.port,
        config.lobby.history_limit,
    )

    yield  # Application runs here

    # Shutdown
    await reaper.stop()
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create the FastAPI application and the lobby state it owns."""
    config = config or get_config()

    app = FastAPI(
        title="Lobby API",
        description="Real-time lobby: presence, chat relay and jackpot records",
        version="0.1.0",
        lifespan=lifespan,
    )

    lobby = build_lobby(config)
    app.state.config = config
    app.state.lobby = lobby
    app.state.reaper = PresenceReaper(
        lobby,
        interval_seconds=config.reaper.interval_seconds,
        idle_timeout_seconds=config.reaper.idle_timeout_seconds,
    )
    app.state.records = RecordStore(
        data_dir=config.records.data_dir,
        tiers=config.records.default_tiers,
    )

    # Register all routers
    app.include_router(lobby_router)
    app.include_router(admin_router)
    app.include_router(records_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app
