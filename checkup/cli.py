"""Command line entry point.

    checkup [-c CONFIG] [--store] [--notify] [--silent]
    checkup [-c CONFIG] once
"""

from __future__ import annotations

import argparse
import logging
import sys

from checkup.config import settings
from checkup.errors import CheckerFailures, ConfigurationError, NotifierError, StorageError
from checkup.registry import build_checkup, load_config
from checkup.runner import RunOptions, run

logger = logging.getLogger("checkup")

EXIT_UNHEALTHY = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkup",
        description=(
            "Perform checks on your services and certificates. Without a "
            "subcommand a single checkup runs and its results are printed."
        ),
    )
    parser.add_argument(
        "-c", "--config", default=settings.CHECKUP_CONFIG, help="Config file (JSON or YAML)"
    )
    parser.add_argument("--store", action="store_true", help="Store results")
    parser.add_argument("--notify", action="store_true", help="Send notifications")
    parser.add_argument("--silent", action="store_true", help="Do not print results")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser(
        "once",
        help="Run checks once, store and notify as configured, then exit",
        description=(
            "Results are stored if storage is configured and the notifier is "
            "called if one is configured. At least one of them is required."
        ),
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=settings.CHECKUP_LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    options = RunOptions(
        store=args.store,
        notify=args.notify,
        silent=args.silent,
        once=args.command == "once",
    )

    try:
        checkup = build_checkup(load_config(args.config))
        report = run(checkup, options)
    except (ConfigurationError, CheckerFailures, FileNotFoundError) as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except (StorageError, NotifierError) as e:
        logger.error("%s", e)
        return EXIT_UNHEALTHY

    return 0 if report.healthy else EXIT_UNHEALTHY


if __name__ == "__main__":
    sys.exit(main())
