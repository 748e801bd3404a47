from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from checkup.checks.results import Result, all_healthy
from checkup.errors import CheckerFailures, ConfigurationError
from checkup.formatting import format_result
from checkup.orchestrator import Checkup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    """How a single run treats its results.

    ``once`` stores and notifies whenever the collaborators are configured;
    otherwise ``store`` and ``notify`` opt in explicitly.
    """

    store: bool = False
    notify: bool = False
    silent: bool = False
    once: bool = False


@dataclass(frozen=True)
class RunReport:
    results: list[Result]

    @property
    def healthy(self) -> bool:
        return all_healthy(self.results)

    @property
    def unhealthy_count(self) -> int:
        return sum(1 for r in self.results if not r.healthy)


def _validate(checkup: Checkup, options: RunOptions) -> tuple[bool, bool]:
    if not checkup.checkers:
        raise ConfigurationError("no checkers configured")

    if options.once:
        if checkup.storage is None and checkup.notifier is None:
            raise ConfigurationError("neither storage nor notifier configured")
        return checkup.storage is not None, checkup.notifier is not None

    if options.silent and not options.notify:
        raise ConfigurationError("--silent is to be used along with --notify")
    if options.store and checkup.storage is None:
        raise ConfigurationError("no storage configured")
    if options.notify and checkup.notifier is None:
        raise ConfigurationError("no notifier configured")
    return options.store, options.notify


def run(
    checkup: Checkup,
    options: RunOptions,
    echo: Callable[[str], None] = print,
) -> RunReport:
    do_store, do_notify = _validate(checkup, options)
    show = not options.silent and not options.once

    try:
        results = checkup.check_and_store() if do_store else checkup.check()
    except CheckerFailures as e:
        if show:
            for result in e.results:
                echo(format_result(result))
        raise

    notifier = checkup.notifier if do_notify else None
    if notifier is not None:
        notifier.notify(results)

    if show:
        for result in results:
            echo(format_result(result))

    report = RunReport(results=results)
    if not report.healthy:
        logger.warning("Found %d unhealthy endpoint(s)", report.unhealthy_count)
    return report
