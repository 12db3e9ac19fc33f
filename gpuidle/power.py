from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
import subprocess
from collections.abc import Callable

from gpuidle.errors import ActionError

LOGGER = logging.getLogger("gpuidle.power")

PowerAction = Callable[[], None]

LINUX_REBOOT_CMD_POWER_OFF = 0x4321FEDC

_POWER_COMMANDS: dict[str, list[str]] = {
    "systemctl": ["systemctl", "poweroff"],
    "shutdown": ["shutdown", "-h", "now"],
}


class CommandPowerOff:
    def __init__(self, command: list[str]) -> None:
        self._command = list(command)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def __call__(self) -> None:
        LOGGER.info("Powering off with: %s", subprocess.list2cmdline(self._command))
        try:
            subprocess.run(self._command, check=True)
        except FileNotFoundError as exc:
            raise ActionError(f"Power-off command not found: {self._command[0]}") from exc
        except subprocess.CalledProcessError as exc:
            raise ActionError(f"Power-off command failed with exit code {exc.returncode}") from exc


class SyscallPowerOff:
    """Flushes filesystems and asks the kernel to power off directly."""

    def __call__(self) -> None:
        libc_name = ctypes.util.find_library("c")
        try:
            libc = ctypes.CDLL(libc_name, use_errno=True)
            reboot = libc.reboot
        except (OSError, AttributeError) as exc:
            raise ActionError(f"reboot(2) is unavailable: {exc}") from exc

        LOGGER.info("Powering off with reboot(2)")
        os.sync()
        if reboot(ctypes.c_int(LINUX_REBOOT_CMD_POWER_OFF)) != 0:
            errno = ctypes.get_errno()
            raise ActionError(f"reboot(2) failed: {os.strerror(errno)}")


class DryRunPowerOff:
    def __init__(self, method: str) -> None:
        self._method = method
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1
        LOGGER.info("[dry-run] would power off via %s", self._method)


def build_power_action(method: str, dry_run: bool = False) -> PowerAction:
    if method not in _POWER_COMMANDS and method != "syscall":
        raise ValueError(f"Unknown power method: {method}")

    if dry_run:
        return DryRunPowerOff(method)

    if method == "syscall":
        return SyscallPowerOff()

    return CommandPowerOff(_POWER_COMMANDS[method])
