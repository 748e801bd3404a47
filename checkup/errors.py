from __future__ import annotations

from typing import Any


class CheckupError(Exception):
    pass


class ConfigurationError(CheckupError):
    """The checkup cannot run as configured. Never raised for probe outcomes."""


class StorageError(CheckupError):
    pass


class NotifierError(CheckupError):
    def __init__(self, message: str, failed_endpoints: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_endpoints = failed_endpoints or []


class CheckerFailures(CheckupError):
    """One or more checkers raised instead of returning a Result.

    ``results`` holds the Results of the checkers that did complete, in
    checker order, so callers can still report them.
    """

    def __init__(self, failures: list[tuple[Any, BaseException]], results: list[Any]) -> None:
        names = ", ".join(
            f"{getattr(checker, 'name', checker)!s}: {exc}" for checker, exc in failures
        )
        super().__init__(f"{len(failures)} checker(s) failed: {names}")
        self.failures = failures
        self.results = results
