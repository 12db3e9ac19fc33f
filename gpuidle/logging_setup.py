from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

_installed: list[logging.Handler] = []


def configure_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    root = logging.getLogger()
    resolved = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(resolved)

    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    fmt = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler()
    stream.setLevel(resolved)
    stream.setFormatter(fmt)
    _installed.append(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(str(path), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
        file_handler.setLevel(resolved)
        file_handler.setFormatter(fmt)
        _installed.append(file_handler)

    for handler in _installed:
        root.addHandler(handler)
