from __future__ import annotations

from gpuidle.models import BUSY, IDLE, DeviceSnapshot, ProcessSample, Verdict
from gpuidle.policy import NameMatcher


class IdleEvaluator:
    def __init__(self, matcher: NameMatcher) -> None:
        self._matcher = matcher

    def evaluate(self, snapshot: DeviceSnapshot) -> Verdict:
        if self.find_busy_process(snapshot) is None:
            return IDLE
        return BUSY

    def find_busy_process(self, snapshot: DeviceSnapshot) -> ProcessSample | None:
        # Stops at the first device holding a non-ignored process, so a lazy
        # snapshot never queries the devices after it.
        for processes in snapshot:
            for sample in processes:
                if not self._matcher.is_ignored(sample.name):
                    return sample
        return None
