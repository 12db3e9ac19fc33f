from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator

from gpuidle.evaluator import IdleEvaluator
from gpuidle.models import BUSY, IDLE, AppConfig, MonitorStatus, ProcessSample, Verdict
from gpuidle.nvml import DeviceQuery
from gpuidle.policy import NameMatcher, RegexIgnoreMatcher
from gpuidle.power import PowerAction
from gpuidle.timer import IdleTimer
from gpuidle.utils import format_duration

LOGGER = logging.getLogger("gpuidle.agent")


class MonitorAgent:
    def __init__(
        self,
        config: AppConfig,
        query: DeviceQuery,
        power_action: PowerAction,
        matcher: NameMatcher | None = None,
        clock: Callable[[], float] = time.monotonic,
        once: bool = False,
    ) -> None:
        self._config = config
        self._query = query
        self._power_action = power_action
        self._clock = clock
        self._once = once

        self._evaluator = IdleEvaluator(matcher or RegexIgnoreMatcher(config.ignore_patterns))
        self._timer = IdleTimer(config.timeout_seconds)

        self._device_count: int | None = None
        self._last_verdict: Verdict | None = None
        self._shutdown_triggered = False

        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._is_running = False
        # Plain flags so a signal handler on the loop thread never takes a lock.
        self._stop_requested = False
        self._interruptible = False

    @property
    def timer(self) -> IdleTimer:
        return self._timer

    def run(self) -> None:
        with self._state_lock:
            if self._is_running:
                LOGGER.warning("Monitor is already running")
                return
            self._is_running = True
            self._stop_event.clear()
            self._stop_requested = False

        try:
            self._device_count = self._query.device_count()
            LOGGER.info(
                "Starting GPU idle monitor devices=%s interval=%s timeout=%s ignore=%s",
                self._device_count,
                format_duration(self._config.interval_seconds),
                format_duration(self._config.timeout_seconds),
                self._config.ignore_patterns,
            )

            self._interruptible = True
            while not self._stop_requested and not self._stop_event.is_set():
                if self.poll():
                    break

                if self._once:
                    break

                if self._stop_event.wait(self._config.interval_seconds):
                    break
        except KeyboardInterrupt:
            LOGGER.info("Received interrupt, stopping monitor")
        finally:
            self._interruptible = False
            with self._state_lock:
                self._is_running = False

    def stop(self) -> None:
        self._stop_event.set()

    def interrupt(self) -> None:
        """Stop the loop from a signal handler running on the loop's thread.

        Takes no locks. A pending wait or device query is unwound with
        KeyboardInterrupt; a power-off action in progress is left to finish.
        """
        self._stop_requested = True
        if self._interruptible:
            raise KeyboardInterrupt

    def status(self) -> MonitorStatus:
        with self._state_lock:
            return MonitorStatus(
                running=self._is_running and not self._stop_event.is_set() and not self._stop_requested,
                device_count=self._device_count,
                verdict=self._last_verdict,
                idle_since=self._timer.idle_since,
                shutdown_triggered=self._shutdown_triggered,
            )

    def poll(self, now: float | None = None) -> bool:
        """Run one tick. Returns True once the power-off action has fired."""
        if self._shutdown_triggered:
            return True

        if self._device_count is None:
            self._device_count = self._query.device_count()

        busy = self._evaluator.find_busy_process(self._iter_snapshot(self._device_count))
        verdict = IDLE if busy is None else BUSY
        if now is None:
            now = self._clock()

        with self._state_lock:
            self._last_verdict = verdict
            changed = self._timer.update(verdict, now)

        if changed:
            self._log_transition(busy)

        if not self._timer.shutdown_due(now):
            return False

        LOGGER.warning(
            "GPU idle timeout exceeded, shutting down (idle for %s, timeout %s)",
            format_duration(self._timer.idle_for(now)),
            format_duration(self._config.timeout_seconds),
        )
        self._interruptible = False
        with self._state_lock:
            self._shutdown_triggered = True
        self._power_action()
        return True

    def _iter_snapshot(self, count: int) -> Iterator[list[ProcessSample]]:
        for index in range(count):
            yield self._query.running_processes(index)

    def _log_transition(self, busy: ProcessSample | None) -> None:
        if busy is None:
            LOGGER.info("GPU is now idle")
        else:
            LOGGER.info("GPU is now busy pid=%s name=%s type=%s", busy.pid, busy.name or "?", busy.type)
