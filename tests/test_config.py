"""Tests for station configuration loading."""

import json

from battlecar_station.config import (
    CONFIG_ENV_VAR,
    DEFAULT_BAUDRATE,
    MatchSettings,
    StationConfig,
)


def test_defaults():
    config = StationConfig()
    assert config.ports == []
    assert config.baudrate == DEFAULT_BAUDRATE == 9600
    assert config.queue_capacity == 512
    assert config.match == MatchSettings()
    assert config.match.verification_window_ms == 2000
    assert config.match.hit_cooldown_ms == 800
    assert config.match.damage_per_hit == 10


def test_load_from_file(tmp_path):
    path = tmp_path / "station.json"
    path.write_text(json.dumps({
        "ports": ["/dev/ttyUSB0", "/dev/ttyUSB1"],
        "baudrate": "57600",
        "match": {"game_over_delay_ms": 2000, "damage_per_hit": 20},
    }))

    config = StationConfig.load(path)
    assert config.ports == ["/dev/ttyUSB0", "/dev/ttyUSB1"]
    assert config.baudrate == 57600
    assert config.match.game_over_delay_ms == 2000
    assert config.match.damage_per_hit == 20
    assert config.match.start_hp == 100


def test_unknown_and_invalid_values_are_skipped(tmp_path, caplog):
    path = tmp_path / "station.json"
    path.write_text(json.dumps({"colour": "red", "baudrate": "fast", "match": 5}))

    config = StationConfig.load(path)
    assert config.baudrate == DEFAULT_BAUDRATE
    assert config.match == MatchSettings()
    assert "colour" in caplog.text
    assert "baudrate" in caplog.text


def test_missing_file_uses_defaults(tmp_path):
    config = StationConfig.load(tmp_path / "nope.json")
    assert config == StationConfig()


def test_malformed_json_uses_defaults(tmp_path):
    path = tmp_path / "station.json"
    path.write_text("{not json")
    assert StationConfig.load(path) == StationConfig()


def test_env_var_names_config_file(tmp_path, monkeypatch):
    path = tmp_path / "station.json"
    path.write_text(json.dumps({"ports": ["COM7"]}))
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert StationConfig.load().ports == ["COM7"]


def test_no_env_var_uses_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert StationConfig.load() == StationConfig()


def test_to_dict():
    d = StationConfig(ports=["a"]).to_dict()
    assert d["ports"] == ["a"]
    assert d["match"]["hit_cooldown_ms"] == 800


def test_single_port_string_becomes_list(tmp_path):
    path = tmp_path / "station.json"
    path.write_text(json.dumps({"ports": "/dev/ttyUSB0"}))
    assert StationConfig.load(path).ports == ["/dev/ttyUSB0"]


def test_non_list_ports_rejected(caplog):
    config = StationConfig(ports=["COM3"])
    config.update(ports=7)
    assert config.ports == ["COM3"]
    assert "ports" in caplog.text
