from __future__ import annotations

import pytest

from gpuidle.errors import DeviceQueryError
from gpuidle.evaluator import IdleEvaluator
from gpuidle.models import ProcessSample
from gpuidle.policy import RegexIgnoreMatcher


def _proc(name: str, pid: int = 100) -> ProcessSample:
    return ProcessSample(name=name, pid=pid, memory_used=64 * 1024 * 1024, type="graphics")


def _make_evaluator(patterns: list[str]) -> IdleEvaluator:
    return IdleEvaluator(RegexIgnoreMatcher(patterns))


def test_ignored_process_and_empty_device_is_idle() -> None:
    evaluator = _make_evaluator(["Xorg"])

    assert evaluator.evaluate([[_proc("Xorg")], []]) == "idle"


def test_case_mismatch_makes_gpu_busy() -> None:
    evaluator = _make_evaluator(["xorg"])

    assert evaluator.evaluate([[_proc("Xorg")], []]) == "busy"


def test_no_devices_or_no_processes_is_idle() -> None:
    evaluator = _make_evaluator([])

    assert evaluator.evaluate([]) == "idle"
    assert evaluator.evaluate([[], [], []]) == "idle"


def test_single_unignored_process_on_any_device_is_busy() -> None:
    evaluator = _make_evaluator(["Xorg", "gnome-shell"])
    snapshot = [[_proc("Xorg"), _proc("gnome-shell", 101)], [], [_proc("Xorg", 102), _proc("python3", 103)]]

    assert evaluator.evaluate(snapshot) == "busy"
    assert evaluator.find_busy_process(snapshot) == _proc("python3", 103)


def test_evaluate_is_repeatable() -> None:
    evaluator = _make_evaluator(["Xorg"])
    snapshot = [[_proc("Xorg")], [_proc("blender", 7)]]

    assert evaluator.evaluate(snapshot) == evaluator.evaluate(snapshot) == "busy"


def test_stops_querying_after_first_busy_device() -> None:
    evaluator = _make_evaluator([])
    queried: list[int] = []

    def lazy_snapshot():
        for index, processes in enumerate([[_proc("train.py")], [], []]):
            queried.append(index)
            yield processes

    assert evaluator.evaluate(lazy_snapshot()) == "busy"
    assert queried == [0]


def test_query_errors_propagate_unchanged() -> None:
    evaluator = _make_evaluator(["Xorg"])
    failure = DeviceQueryError("GPU 1 is gone")

    def failing_snapshot():
        yield [_proc("Xorg")]
        raise failure

    with pytest.raises(DeviceQueryError) as excinfo:
        evaluator.evaluate(failing_snapshot())

    assert excinfo.value is failure
