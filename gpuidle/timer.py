from __future__ import annotations

from gpuidle.models import BUSY, IDLE, Verdict


class IdleTimer:
    """Tracks the start of the current continuous idle run.

    ``idle_since`` is set by the first idle verdict after a busy one and is
    left untouched by further idle verdicts. Any busy verdict clears it.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout_seconds = float(timeout_seconds)
        self._idle_since: float | None = None

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def idle_since(self) -> float | None:
        return self._idle_since

    @property
    def is_idle(self) -> bool:
        return self._idle_since is not None

    def update(self, verdict: Verdict, now: float) -> bool:
        """Apply a verdict observed at ``now``. Returns True on a state change."""
        if verdict == IDLE:
            if self._idle_since is None:
                self._idle_since = now
                return True
            return False

        if verdict == BUSY:
            if self._idle_since is not None:
                self._idle_since = None
                return True
            return False

        raise ValueError(f"Unknown verdict: {verdict!r}")

    def idle_for(self, now: float) -> float:
        if self._idle_since is None:
            return 0.0
        return now - self._idle_since

    def shutdown_due(self, now: float) -> bool:
        if self._idle_since is None:
            return False
        return now - self._idle_since > self._timeout_seconds
