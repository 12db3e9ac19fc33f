from __future__ import annotations


class GpuIdleError(Exception):
    """Base class for errors that abort the monitor."""


class InitError(GpuIdleError):
    pass


class DeviceQueryError(GpuIdleError):
    pass


class PatternError(GpuIdleError):
    pass


class ActionError(GpuIdleError):
    pass
