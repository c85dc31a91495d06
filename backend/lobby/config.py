"""Lobby server configuration.

Loads settings from two YAML files:
  * lobby.settings.yaml: non-secret configuration
  * lobby.secrets.yaml: secrets (the admin dev key; never committed)

The ``DEV_KEY`` environment variable, when set, overrides the dev key from
the secrets file, and ``PORT`` overrides the server port.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("lobby.settings.yaml")
SECRETS_FILE  = Path("lobby.secrets.yaml")

DEV_KEY_ENV = "DEV_KEY"
PORT_ENV    = "PORT"

DEFAULT_TIERS = [
    "Mini Makis",
    "Lucky Rollers",
    "High Emperors (Mega)",
    "High Emperors (Mega 2)",
]


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class AdminSecrets(BaseModel):
    dev_key: str = "change-me"


class Secrets(BaseModel):
    admin: AdminSecrets = Field(default_factory=AdminSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:      str = "0.0.0.0"
    port:      int = 3000
    log_level: str = "info"


class LobbySettings(BaseModel):
    """Presence and chat limits."""
    history_limit:        int   = 50
    max_message_length:   int   = 500
    default_display_name: str   = "Anonymous"
    system_display_name:  str   = "🏯 System"
    send_timeout_seconds: float = 5.0

    @field_validator("history_limit", "max_message_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


class ReaperSettings(BaseModel):
    """Stale-session sweep. The timeout is measured from join time."""
    enabled:              bool  = True
    interval_seconds:     float = 300
    idle_timeout_seconds: float = 1800


class RecordsSettings(BaseModel):
    """JSON-file records (timers, winners, contract address)."""
    data_dir:      str       = "./data"
    default_tiers: List[str] = Field(default_factory=lambda: list(DEFAULT_TIERS))


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    lobby:   LobbySettings   = Field(default_factory=LobbySettings)
    reaper:  ReaperSettings  = Field(default_factory=ReaperSettings)
    records: RecordsSettings = Field(default_factory=RecordsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    secrets: Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_data = _load_yaml(Path(settings_path) if settings_path else SETTINGS_FILE)
    secrets_data  = _load_yaml(Path(secrets_path) if secrets_path else SECRETS_FILE)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)

    env_key = os.environ.get(DEV_KEY_ENV)
    if env_key:
        config.secrets.admin.dev_key = env_key
        logger.info("Dev key taken from %s environment variable", DEV_KEY_ENV)

    env_port = os.environ.get(PORT_ENV)
    if env_port and env_port.isdigit():
        config.server.port = int(env_port)

    logger.info(
        "Settings loaded (server=%s:%s, history_limit=%d, reaper.enabled=%s)",
        config.server.host,
        config.server.port,
        config.lobby.history_limit,
        config.reaper.enabled,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (for testing)."""
    global _config
    _config = None
