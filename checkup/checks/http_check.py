from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar

import requests

from checkup.checks.base import Checker, rtt_verdict, timed_attempt
from checkup.checks.results import Attempt, Result, timestamp
from checkup.errors import ConfigurationError

logger = logging.getLogger(__name__)


class UnexpectedStatus(Exception):
    pass


def http_get(url: str, up_status: int, timeout_s: float, connect_timeout_s: float | None = None) -> int:
    connect_timeout = timeout_s if connect_timeout_s is None else connect_timeout_s
    r = requests.get(url, timeout=(connect_timeout, timeout_s))
    if r.status_code != up_status:
        raise UnexpectedStatus(f"response status {r.status_code}, expected {up_status}")
    return r.status_code


@dataclass
class HTTPChecker(Checker):
    type: ClassVar[str] = "http"

    name: str
    url: str
    attempts: int = 1
    threshold_rtt_ms: float = 0.0
    up_status: int = 200
    timeout_s: float = 3.0
    connect_timeout_s: float | None = None
    tags: dict[str, str] = field(default_factory=dict)

    def check(self) -> Result:
        if not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"http checker {self.name!r}: invalid url {self.url!r}")

        trials: list[Attempt] = []
        for _ in range(max(self.attempts, 1)):
            attempt, _status = timed_attempt(
                lambda: http_get(self.url, self.up_status, self.timeout_s, self.connect_timeout_s)
            )
            if attempt.error:
                logger.warning("HTTP check of %s failed: %s", self.url, attempt.error)
            trials.append(attempt)

        return Result(
            title=self.name,
            endpoint=self.url,
            type=self.type,
            timestamp=timestamp(),
            attempts=trials,
            threshold_rtt_ms=self.threshold_rtt_ms,
            tags=dict(self.tags),
            **rtt_verdict(trials, self.threshold_rtt_ms),
        )
