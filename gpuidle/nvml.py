from __future__ import annotations

import logging
from typing import Any, Protocol

import psutil
import pynvml

from gpuidle.errors import DeviceQueryError, InitError
from gpuidle.models import ProcessSample, ProcessType
from gpuidle.utils import normalize_process_name

LOGGER = logging.getLogger("gpuidle.nvml")


class DeviceQuery(Protocol):
    def device_count(self) -> int: ...

    def running_processes(self, index: int) -> list[ProcessSample]: ...


class NvmlDeviceQuery:
    """Device query backed by NVML.

    Use as a context manager so NVML is shut down when the monitor exits.
    """

    def __init__(self) -> None:
        self._initialized = False

    def __enter__(self) -> NvmlDeviceQuery:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def start(self) -> None:
        if self._initialized:
            return
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as exc:
            raise InitError(f"Unable to initialise NVML: {exc}") from exc
        self._initialized = True
        LOGGER.debug("NVML initialised")

    def close(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as exc:
            LOGGER.debug("NVML shutdown failed: %s", exc)

    def device_count(self) -> int:
        self.start()
        try:
            return int(pynvml.nvmlDeviceGetCount())
        except pynvml.NVMLError as exc:
            raise InitError(f"Unable to read GPU device count: {exc}") from exc

    def running_processes(self, index: int) -> list[ProcessSample]:
        try:
            handle = pynvml.nvmlDeviceGetHandleByIndex(index)
            compute = pynvml.nvmlDeviceGetComputeRunningProcesses(handle)
            graphics = pynvml.nvmlDeviceGetGraphicsRunningProcesses(handle)
        except pynvml.NVMLError as exc:
            raise DeviceQueryError(f"Unable to list processes on GPU {index}: {exc}") from exc

        samples: list[ProcessSample] = []
        seen: set[int] = set()
        entries: list[tuple[Any, ProcessType]] = [(info, "compute") for info in compute]
        entries.extend((info, "graphics") for info in graphics)

        for info, kind in entries:
            pid = int(info.pid)
            if pid in seen:
                continue
            seen.add(pid)
            samples.append(
                ProcessSample(
                    name=self._process_name(pid),
                    pid=pid,
                    memory_used=self._memory_used(info),
                    type=kind,
                )
            )

        return samples

    @staticmethod
    def _memory_used(info: Any) -> int:
        raw = getattr(info, "usedGpuMemory", None)
        # pynvml reports an unavailable reading as None
        if not isinstance(raw, int) or raw < 0:
            return 0
        return raw

    @staticmethod
    def _process_name(pid: int) -> str:
        # Short executable name, as in /proc/<pid>/comm. NVML only knows the full path.
        try:
            return normalize_process_name(psutil.Process(pid).name())
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
            LOGGER.debug("psutil could not name pid=%s error=%s", pid, exc)

        try:
            return normalize_process_name(pynvml.nvmlSystemGetProcessName(pid))
        except pynvml.NVMLError as exc:
            LOGGER.debug("NVML could not name pid=%s error=%s", pid, exc)
            return ""
