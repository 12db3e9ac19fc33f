from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

PowerMethod = Literal["systemctl", "shutdown", "syscall"]
ProcessType = Literal["compute", "graphics", "unknown"]
Verdict = Literal["idle", "busy"]

IDLE: Verdict = "idle"
BUSY: Verdict = "busy"


@dataclass(frozen=True)
class AppConfig:
    ignore_patterns: list[str]
    interval_seconds: float
    timeout_seconds: float
    power_method: PowerMethod
    log_level: str
    log_file: str | None = None


@dataclass(frozen=True)
class ProcessSample:
    name: str
    pid: int
    memory_used: int
    type: ProcessType = "unknown"


# One sequence of samples per device, in device index order.
DeviceSnapshot = Iterable[Sequence[ProcessSample]]


@dataclass(frozen=True)
class MonitorStatus:
    running: bool
    device_count: int | None
    verdict: Verdict | None
    idle_since: float | None
    shutdown_triggered: bool
