"""Tests for configuration loading."""
import pytest
from pydantic import ValidationError

from lobby.config import AppConfig, LobbySettings, load_config
from lobby.main import build_lobby, create_app


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    monkeypatch.delenv("DEV_KEY", raising=False)
    monkeypatch.delenv("PORT", raising=False)


def test_defaults_when_files_missing(tmp_path):
    cfg = load_config(
        settings_path=tmp_path / "missing.settings.yaml",
        secrets_path=tmp_path / "missing.secrets.yaml",
    )
    assert cfg.lobby.history_limit == 50
    assert cfg.lobby.max_message_length == 500
    assert cfg.lobby.default_display_name == "Anonymous"
    assert cfg.reaper.interval_seconds == 300
    assert cfg.reaper.idle_timeout_seconds == 1800
    assert len(cfg.records.default_tiers) == 4


def test_settings_and_secrets_are_merged(tmp_path):
    settings_file = tmp_path / "lobby.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 4000\n"
        "lobby:\n"
        "  history_limit: 10\n"
        "reaper:\n"
        "  idle_timeout_seconds: 60\n",
        encoding="utf-8",
    )
    secrets_file = tmp_path / "lobby.secrets.yaml"
    secrets_file.write_text("admin:\n  dev_key: s3cret\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file, secrets_path=secrets_file)

    assert cfg.server.port == 4000
    assert cfg.lobby.history_limit == 10
    assert cfg.reaper.idle_timeout_seconds == 60
    assert cfg.secrets.admin.dev_key == "s3cret"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DEV_KEY", "from-env")
    monkeypatch.setenv("PORT", "8080")
    cfg = load_config(settings_path=tmp_path / "none.yaml", secrets_path=tmp_path / "none.yaml")
    assert cfg.secrets.admin.dev_key == "from-env"
    assert cfg.server.port == 8080


def test_history_limit_must_be_positive():
    with pytest.raises(ValidationError):
        LobbySettings(history_limit=0)


def test_build_lobby_uses_settings():
    cfg = AppConfig(lobby=LobbySettings(history_limit=3, max_message_length=10))
    lobby = build_lobby(cfg)
    assert lobby.history.capacity == 3


def test_create_app_owns_its_state(tmp_path):
    cfg = AppConfig()
    cfg.records.data_dir = str(tmp_path)
    first, second = create_app(cfg), create_app(cfg)
    assert first.state.lobby is not second.state.lobby
    assert first.state.config is cfg


def test_importing_main_builds_no_app():
    import lobby.main

    assert not hasattr(lobby.main, "app")


def test_entry_point_runs_the_app_factory(monkeypatch):
    import lobby.__main__ as entry

    calls = []
    monkeypatch.setattr(entry, "get_config", lambda: AppConfig())
    monkeypatch.setattr(entry.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    entry.main()

    target, kwargs = calls[0]
    assert target == "lobby.main:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 3000
