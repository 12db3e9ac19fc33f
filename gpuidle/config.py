from __future__ import annotations

import json
from pathlib import Path

from gpuidle.models import AppConfig, PowerMethod
from gpuidle.utils import parse_duration

_ALLOWED_POWER_METHODS = {"systemctl", "shutdown", "syscall"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 15 * 60.0


def normalize_patterns(patterns: list[str]) -> list[str]:
    output: list[str] = []
    seen: set[str] = set()
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise ValueError(f"ignore_patterns entries must be strings, got {pattern!r}")
        if not pattern or pattern in seen:
            continue
        seen.add(pattern)
        output.append(pattern)
    return output


def validate_interval(value: str | int | float) -> float:
    seconds = parse_duration(value)
    if seconds <= 0:
        raise ValueError(f"Interval must be positive, got {value!r}")
    return seconds


def validate_timeout(value: str | int | float) -> float:
    seconds = parse_duration(value)
    if seconds < 0:
        raise ValueError(f"Timeout must not be negative, got {value!r}")
    return seconds


def validate_power_method(value: str) -> PowerMethod:
    method = str(value).strip().lower()
    if method not in _ALLOWED_POWER_METHODS:
        raise ValueError(f"Invalid power_method: {method}. Expected one of {sorted(_ALLOWED_POWER_METHODS)}")
    return method


def validate_log_level(value: str) -> str:
    level = str(value).strip().upper()
    if level not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"Invalid log_level: {level}. Expected one of {sorted(_ALLOWED_LOG_LEVELS)}")
    return level


def default_config() -> AppConfig:
    return AppConfig(
        ignore_patterns=[],
        interval_seconds=DEFAULT_INTERVAL_SECONDS,
        timeout_seconds=DEFAULT_TIMEOUT_SECONDS,
        power_method="systemctl",
        log_level="INFO",
        log_file=None,
    )


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path)
    payload = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a JSON object")

    raw_patterns = payload.get("ignore_patterns", payload.get("ignore", []))
    if isinstance(raw_patterns, str):
        raw_patterns = [raw_patterns]
    if not isinstance(raw_patterns, list):
        raise ValueError("ignore_patterns must be a list of strings")

    log_file = payload.get("log_file")
    if log_file is not None:
        log_file = str(log_file).strip() or None

    return AppConfig(
        ignore_patterns=normalize_patterns(raw_patterns),
        interval_seconds=validate_interval(payload.get("interval", DEFAULT_INTERVAL_SECONDS)),
        timeout_seconds=validate_timeout(payload.get("timeout", DEFAULT_TIMEOUT_SECONDS)),
        power_method=validate_power_method(payload.get("power_method", "systemctl")),
        log_level=validate_log_level(payload.get("log_level", "INFO")),
        log_file=log_file,
    )
