from __future__ import annotations

import json

import pytest

from gpuidle.config import default_config, load_config


def _write(tmp_path, payload) -> str:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(payload), encoding="utf-8")
    return str(config_path)


def test_load_config_applies_defaults(tmp_path) -> None:
    config = load_config(_write(tmp_path, {}))

    assert config == default_config()
    assert config.interval_seconds == 10.0
    assert config.timeout_seconds == 900.0
    assert config.log_file is None


def test_load_config_reads_durations_and_patterns(tmp_path) -> None:
    payload = {
        "ignore_patterns": ["Xorg", "", "Xorg", "^gnome-shell$"],
        "interval": "30s",
        "timeout": 120,
        "power_method": "Syscall",
        "log_level": "debug",
        "log_file": "logs/gpuidle.log",
    }

    config = load_config(_write(tmp_path, payload))

    assert config.ignore_patterns == ["Xorg", "^gnome-shell$"]
    assert config.interval_seconds == 30.0
    assert config.timeout_seconds == 120.0
    assert config.power_method == "syscall"
    assert config.log_level == "DEBUG"
    assert config.log_file == "logs/gpuidle.log"


def test_load_config_accepts_short_ignore_key(tmp_path) -> None:
    config = load_config(_write(tmp_path, {"ignore": "Xorg"}))

    assert config.ignore_patterns == ["Xorg"]


def test_load_config_keeps_malformed_pattern_for_matcher(tmp_path) -> None:
    config = load_config(_write(tmp_path, {"ignore_patterns": ["[unbalanced"]}))

    assert config.ignore_patterns == ["[unbalanced"]


@pytest.mark.parametrize(
    "payload",
    [
        {"interval": 0},
        {"interval": "-5s"},
        {"timeout": "-1m"},
        {"timeout": "later"},
        {"timeout": "nan"},
        {"timeout": "inf"},
        {"interval": "inf"},
        {"power_method": "hibernate"},
        {"log_level": "chatty"},
        {"ignore_patterns": {"Xorg": True}},
        {"ignore_patterns": [None, 5]},
        {"ignore_patterns": ["Xorg", 5]},
    ],
)
def test_load_config_rejects_invalid_values(tmp_path, payload) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, payload))


def test_load_config_rejects_non_object(tmp_path) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, ["Xorg"]))
