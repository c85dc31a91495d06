"""Shared test fixtures and fakes for lobby tests."""
from typing import Any, List

import pytest
from fastapi.testclient import TestClient

from lobby.config import AdminSecrets, AppConfig, RecordsSettings, ReaperSettings, Secrets
from lobby.main import create_app
from lobby.presence.broadcast import BroadcastChannel
from lobby.presence.controller import LobbyController
from lobby.presence.history import HistoryBuffer
from lobby.presence.registry import SessionRegistry

DEV_KEY = "test-dev-key"

# 2024-01-01T00:00:00Z
START_TIME = 1_704_067_200.0


class FakeClock:
    """Manually advanced clock returning seconds since the epoch."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Records every frame sent to it; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[dict] = []
        self.fail = fail
        self.closed = False

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True

    def events(self) -> List[str]:
        return [frame["event"] for frame in self.sent]

    def frames(self, event: str) -> List[dict]:
        return [frame for frame in self.sent if frame["event"] == event]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lobby(clock):
    """A LobbyController wired to fakes, with a 50-event history."""
    return LobbyController(
        registry=SessionRegistry(clock=clock),
        history=HistoryBuffer(capacity=50),
        channel=BroadcastChannel(send_timeout=1.0),
        clock=clock,
    )


@pytest.fixture
def app_config(tmp_path):
    """Config with records under tmp_path, a known dev key and no reaper."""
    return AppConfig(
        records=RecordsSettings(data_dir=str(tmp_path / "data")),
        reaper=ReaperSettings(enabled=False),
        secrets=Secrets(admin=AdminSecrets(dev_key=DEV_KEY)),
    )


@pytest.fixture
def app(app_config):
    return create_app(app_config)


@pytest.fixture
def api_client(app):
    """TestClient running the app lifespan.

    Entering the client keeps every WebSocket session on the same event
    loop, which the lobby lock requires.
    """
    with TestClient(app) as client:
        yield client
