"""Unit tests for configuration loading."""

import json

import pytest

from propline.config import Config


def _clear_env(monkeypatch):
    for key in ("PROPLINE_DB_PATH", "STATS_API_KEY", "STATS_BATCH_SIZE", "MIN_CONFIDENCE", "PRIZEPICKS_DELAY"):
        monkeypatch.delenv(key, raising=False)


def test_defaults(monkeypatch):
    _clear_env(monkeypatch)
    config = Config.from_env()

    assert config.db_path == "data/propline.db"
    assert config.stats_batch_size == 5
    assert config.min_confidence == 70
    assert config.max_picks == 50
    assert config.model_version == "v1"


def test_env_overrides_and_bad_numbers(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("MIN_CONFIDENCE", "80")
    monkeypatch.setenv("PRIZEPICKS_DELAY", "fast")
    monkeypatch.setenv("STATS_BATCH_SIZE", "0")

    config = Config.from_env()

    assert config.min_confidence == 80
    assert config.prizepicks_delay == 1.0
    assert config.stats_batch_size == 1


def test_env_file_overrides_environment(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("MIN_CONFIDENCE", "80")
    env_file = tmp_path / "propline.env"
    env_file.write_text(
        "# local settings\n"
        "export STATS_API_KEY='secret'\n"
        "MIN_CONFIDENCE=65\n"
        "not a setting\n",
        encoding="utf-8",
    )

    config = Config.load(str(env_file))

    assert config.stats_api_key == "secret"
    assert config.min_confidence == 65
    assert config.to_dict()["stats_api_key"] == "***"


def test_json_config(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"PROPLINE_DB_PATH": "/tmp/x.db", "MAX_PICKS": 10}), encoding="utf-8")

    config = Config.load(str(config_file))

    assert config.db_path == "/tmp/x.db"
    assert config.max_picks == 10


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load(str(tmp_path / "missing.env"))
