from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from checkup.checks.base import Checker
from checkup.checks.results import Result
from checkup.errors import CheckerFailures, ConfigurationError
from checkup.notifier import Notifier
from checkup.persistence import Storage

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 16


def _run_checker(checker: Checker) -> Result:
    result = checker.check()
    if not isinstance(result, Result):
        raise TypeError(f"checker {checker.name!r} returned {type(result).__name__}, not Result")
    return result


@dataclass
class Checkup:
    """Runs a set of checkers and hands their results to storage/notifier."""

    checkers: list[Checker] = field(default_factory=list)
    storage: Storage | None = None
    notifier: Notifier | None = None
    max_workers: int = DEFAULT_MAX_WORKERS

    def check(self) -> list[Result]:
        """Run every checker and return one Result per checker, in checker order.

        Checkers run concurrently on a bounded thread pool. A checker that
        raises does not affect its siblings; once all have finished the
        failures are raised together as ``CheckerFailures``, which also
        carries the results that were produced.
        """
        if not self.checkers:
            raise ConfigurationError("no checkers configured")

        n = len(self.checkers)
        slots: list[Result | None] = [None] * n
        errors: list[BaseException | None] = [None] * n

        if n == 1:
            try:
                slots[0] = _run_checker(self.checkers[0])
            except Exception as e:
                errors[0] = e
        else:
            workers = max(1, min(n, self.max_workers))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="checkup") as pool:
                futures = [pool.submit(_run_checker, c) for c in self.checkers]
                for i, fut in enumerate(futures):
                    try:
                        slots[i] = fut.result()
                    except Exception as e:
                        errors[i] = e

        failures = [
            (self.checkers[i], exc) for i, exc in enumerate(errors) if exc is not None
        ]
        results = [r for r in slots if r is not None]
        for checker, exc in failures:
            logger.error("Checker %r failed: %s", checker.name, exc)
        if failures:
            raise CheckerFailures(failures, results)

        logger.debug("Checked %d endpoint(s)", len(results))
        return results

    def check_and_store(self) -> list[Result]:
        if self.storage is None:
            raise ConfigurationError("no storage configured")
        results = self.check()
        self.storage.store(results)
        return results

    def check_and_notify(self) -> list[Result]:
        if self.notifier is None:
            raise ConfigurationError("no notifier configured")
        results = self.check()
        self.notifier.notify(results)
        return results
