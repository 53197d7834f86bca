"""
Tests for configuration loading, environment overrides and validation.
"""

import json

import pytest

from house_scoreboard.config import ScoreboardConfig

ENV_VARS = [
    "DB_PATH",
    "LOADING_MODE",
    "SETTLING_DELAY",
    "RECONCILIATION_MODE",
    "RECONCILIATION_MAX_RETRIES",
    "WEB_PORT",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_missing_file_is_created_with_defaults(tmp_path):
    path = tmp_path / "scoreboard_config.json"

    config = ScoreboardConfig(str(path))

    assert path.exists()
    assert json.loads(path.read_text())["reconciliation"]["mode"] == "transactional"
    assert config.get("live_view", "loading_mode") == "first_snapshot"
    assert config.get("store", "database") == ""


def test_file_values_merge_over_defaults(tmp_path):
    path = tmp_path / "scoreboard_config.json"
    path.write_text(json.dumps({"store": {"database": "houses.db"}, "web": {"port": 9000}}))

    config = ScoreboardConfig(str(path))

    assert config.get("store", "database") == "houses.db"
    assert config.get("web", "port") == 9000
    assert config.get("web", "host") == "0.0.0.0"


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "scoreboard_config.json"
    path.write_text(json.dumps({"store": {"database": "houses.db"}}))
    monkeypatch.setenv("DB_PATH", "/data/override.db")
    monkeypatch.setenv("SETTLING_DELAY", "0.25")
    monkeypatch.setenv("RECONCILIATION_MODE", "snapshot")
    monkeypatch.setenv("RECONCILIATION_MAX_RETRIES", "3")

    config = ScoreboardConfig(str(path))

    assert config.get("store", "database") == "/data/override.db"
    assert config.get("live_view", "settling_delay") == 0.25
    assert config.get("reconciliation", "mode") == "snapshot"
    assert config.get("reconciliation", "max_retries") == 3


def test_invalid_values_fall_back_to_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("LOADING_MODE", "eventually")
    monkeypatch.setenv("RECONCILIATION_MODE", "optimistic")
    monkeypatch.setenv("WEB_PORT", "70000")
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    config = ScoreboardConfig(str(tmp_path / "scoreboard_config.json"))

    assert config.get("live_view", "loading_mode") == "first_snapshot"
    assert config.get("reconciliation", "mode") == "transactional"
    assert config.get("web", "port") == 8081
    assert config.get("logging", "level") == "INFO"


def test_broken_file_uses_defaults(tmp_path):
    path = tmp_path / "scoreboard_config.json"
    path.write_text("{ not json")

    config = ScoreboardConfig(str(path))

    assert config.get("scoreboard_name") == "House Scoreboard"


def test_get_unknown_key_returns_none(tmp_path):
    config = ScoreboardConfig(str(tmp_path / "scoreboard_config.json"))

    assert config.get("store", "nope") is None
    assert config.get("missing", "deeper") is None
