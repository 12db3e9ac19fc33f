from __future__ import annotations

import math
import re

_WHITESPACE = re.compile(r"\s+")
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def normalize_process_name(value: str | bytes | None) -> str:
    if not value:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value.strip()


def parse_duration(value: str | int | float) -> float:
    """Parse a duration into seconds.

    Accepts plain numbers (seconds) and Go-style strings such as ``"10s"``,
    ``"15m"``, ``"1h30m"`` or ``"250ms"``.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)

    text = _WHITESPACE.sub("", str(value))
    if not text:
        raise ValueError("Invalid duration: empty string")

    try:
        plain = float(text)
    except ValueError:
        plain = None
    if plain is not None:
        return _finite(plain, value)

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0:
        raise ValueError(f"Invalid duration: {value!r}")
    return _finite(sign * total, value)


def _finite(seconds: float, raw: object) -> float:
    if not math.isfinite(seconds):
        raise ValueError(f"Invalid duration: {raw!r} is not finite")
    return seconds


def format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0s"

    whole = int(seconds)
    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    fraction = seconds - whole

    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs or fraction or not parts:
        if fraction:
            parts.append(f"{secs + fraction:g}s")
        else:
            parts.append(f"{secs}s")
    return "".join(parts)
