"""CLI entrypoint to run a command while holding a redis lock."""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Optional, Sequence

import yaml

from redlocker.core.client import Redlocker
from redlocker.core.errors import LockTimeout
from redlocker.core.settings import RedlockerSettings
from redlocker.utils.logging import configure_logging, get_logger


EX_TEMPFAIL = 75
EX_NOEXEC = 126
EX_NOTFOUND = 127

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redlocker",
        description="Run a command while holding a distributed redis lock.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to settings YAML")
    parser.add_argument("--redis-url", default=None, help="Redis URL (overrides settings)")
    parser.add_argument("--namespace", default=None, help="Key namespace (overrides settings)")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait for the lock")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between acquisition attempts")
    parser.add_argument("--log-level", default=None, help="Logging level, e.g. DEBUG")
    parser.add_argument("name", help="Lock name")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run, after --")
    return parser


def load_settings(args: argparse.Namespace) -> RedlockerSettings:
    settings = RedlockerSettings.from_file(args.config) if args.config else RedlockerSettings.from_env()
    overrides = {
        "redis_url": args.redis_url,
        "namespace": args.namespace,
        "timeout": args.timeout,
        "delay": args.delay,
        "log_level": args.log_level,
    }
    update = {key: value for key, value in overrides.items() if value is not None}
    if not update:
        return settings
    return RedlockerSettings.model_validate(settings.model_dump() | update)


def main(argv: Optional[Sequence[str]] = None, *, locker: Optional[Redlocker] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("a command to run is required")

    try:
        settings = load_settings(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        parser.error(f"could not load settings: {exc}")
    configure_logging(settings.log_level)

    locker = locker or Redlocker.from_settings(settings)

    def run_command() -> int:
        logger.info("Lock %s acquired; running %s", locker.key_for(args.name), command)
        return subprocess.run(command, check=False).returncode

    try:
        return locker.with_lock(args.name, run_command, timeout=settings.timeout, delay=settings.delay)
    except LockTimeout as exc:
        logger.error("%s", exc)
        return EX_TEMPFAIL
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", exc)
        return EX_NOTFOUND
    except OSError as exc:
        logger.error("Command could not be executed: %s", exc)
        return EX_NOEXEC


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
