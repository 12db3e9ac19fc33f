from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from gpuidle.agent import MonitorAgent
from gpuidle.config import (
    default_config,
    load_config,
    normalize_patterns,
    validate_interval,
    validate_log_level,
    validate_power_method,
    validate_timeout,
)
from gpuidle.errors import GpuIdleError
from gpuidle.evaluator import IdleEvaluator
from gpuidle.logging_setup import configure_logging
from gpuidle.models import AppConfig
from gpuidle.nvml import NvmlDeviceQuery
from gpuidle.policy import RegexIgnoreMatcher
from gpuidle.power import build_power_action
from gpuidle.utils import format_duration

LOGGER = logging.getLogger("gpuidle")

DEFAULT_CONFIG_PATH = "config/default.json"

EXIT_IDLE = 0
EXIT_FATAL = 1
EXIT_BUSY = 3


def _duration_arg(validator: Callable[[str], float]) -> Callable[[str], float]:
    def parse(value: str) -> float:
        try:
            return validator(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    return parse


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to JSON config")
    parser.add_argument(
        "-i",
        "--ignore",
        action="append",
        default=None,
        metavar="PATTERN",
        help="Regex of a process to ignore, e.g. an always-on display server (repeatable)",
    )
    parser.add_argument(
        "-n",
        "--interval",
        type=_duration_arg(validate_interval),
        help="Duration between GPU checks, e.g. 10s",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=_duration_arg(validate_timeout),
        help="Idle duration before powering off, e.g. 15m",
    )
    parser.add_argument("--log-level", help="Override log level from config")
    parser.add_argument("--log-file", help="Also write logs to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Power off the host once its GPUs have been idle for too long")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Monitor GPUs and power off after the idle timeout")
    _add_config_args(run_parser)
    run_parser.add_argument(
        "--power-method",
        choices=["systemctl", "shutdown", "syscall"],
        help="Override how the host is powered off",
    )
    run_parser.add_argument("--dry-run", action="store_true", help="Log the power-off instead of performing it")
    run_parser.add_argument("--once", action="store_true", help="Run a single monitor tick")

    check_parser = subparsers.add_parser("check", help="Print GPU processes and the current idle verdict")
    _add_config_args(check_parser)

    return parser


def _normalized_argv(raw_argv: list[str]) -> list[str]:
    commands = {"run", "check"}
    if raw_argv and raw_argv[0] in {"-h", "--help"}:
        return raw_argv
    if not raw_argv or raw_argv[0] not in commands:
        return ["run", *raw_argv]
    return raw_argv


def _default_base_dir() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def _resolve_config_path(raw_path: str) -> str:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return str(candidate)

    if candidate.exists():
        return str(candidate.resolve())

    from_base = _default_base_dir() / candidate
    if from_base.exists():
        return str(from_base.resolve())

    return str(candidate)


def _load_base_config(raw_path: str) -> AppConfig:
    config_path = _resolve_config_path(raw_path)
    if raw_path == DEFAULT_CONFIG_PATH and not Path(config_path).exists():
        return default_config()
    return load_config(config_path)


def _resolve_runtime(args: argparse.Namespace) -> AppConfig:
    config = _load_base_config(getattr(args, "config", DEFAULT_CONFIG_PATH))

    ignore = getattr(args, "ignore", None)
    if ignore:
        config = replace(config, ignore_patterns=normalize_patterns(ignore))

    interval = getattr(args, "interval", None)
    if interval is not None:
        config = replace(config, interval_seconds=interval)

    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        config = replace(config, timeout_seconds=timeout)

    power_method = getattr(args, "power_method", None)
    if power_method:
        config = replace(config, power_method=validate_power_method(power_method))

    log_level = getattr(args, "log_level", None)
    if log_level:
        config = replace(config, log_level=validate_log_level(log_level))

    log_file = getattr(args, "log_file", None)
    if log_file:
        config = replace(config, log_file=log_file)

    return config


def _install_signal_handlers(agent: MonitorAgent) -> None:
    def handle_signal(signum, frame):
        agent.interrupt()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def _run_command(args: argparse.Namespace) -> int:
    config = _resolve_runtime(args)
    configure_logging(config.log_level, config.log_file)

    matcher = RegexIgnoreMatcher(config.ignore_patterns)
    power_action = build_power_action(config.power_method, dry_run=args.dry_run)

    with NvmlDeviceQuery() as query:
        agent = MonitorAgent(
            config=config,
            query=query,
            power_action=power_action,
            matcher=matcher,
            once=args.once,
        )
        _install_signal_handlers(agent)
        agent.run()

    return EXIT_IDLE


def _check_command(args: argparse.Namespace) -> int:
    config = _resolve_runtime(args)
    configure_logging(config.log_level, config.log_file)

    matcher = RegexIgnoreMatcher(config.ignore_patterns)
    evaluator = IdleEvaluator(matcher)

    with NvmlDeviceQuery() as query:
        count = query.device_count()
        snapshot = [query.running_processes(index) for index in range(count)]

    print(f"Devices: {count}  ignore={config.ignore_patterns}  timeout={format_duration(config.timeout_seconds)}")
    for index, processes in enumerate(snapshot):
        if not processes:
            print(f"GPU {index}: no running processes")
            continue
        print(f"GPU {index}:")
        for sample in processes:
            marker = "ignored" if matcher.is_ignored(sample.name) else "busy"
            memory_mib = sample.memory_used // (1024 * 1024)
            print(f"  [{marker}] pid={sample.pid} name={sample.name or '?'} type={sample.type} memory={memory_mib}MiB")

    verdict = evaluator.evaluate(snapshot)
    print(f"Verdict: {verdict}")
    return EXIT_IDLE if verdict == "idle" else EXIT_BUSY


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    parsed = parser.parse_args(_normalized_argv(sys.argv[1:] if argv is None else argv))

    try:
        if parsed.command == "run":
            return _run_command(parsed)

        if parsed.command == "check":
            return _check_command(parsed)
    except (GpuIdleError, ValueError, OSError) as exc:
        if not logging.getLogger().handlers:
            configure_logging()
        LOGGER.critical("Fatal error: %s", exc)
        return EXIT_FATAL

    parser.error("Unknown command")
    return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
