from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from typing import ClassVar

from checkup.checks.base import Checker, rtt_verdict, timed_attempt
from checkup.checks.results import Attempt, Result, timestamp
from checkup.errors import ConfigurationError

logger = logging.getLogger(__name__)


def split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"expected host:port, got {address!r}")
    return host.strip("[]"), int(port)


def tcp_connect(host: str, port: int, timeout_s: float) -> None:
    with socket.create_connection((host, port), timeout=timeout_s):
        pass


@dataclass
class TCPChecker(Checker):
    type: ClassVar[str] = "tcp"

    name: str
    address: str
    attempts: int = 1
    threshold_rtt_ms: float = 0.0
    timeout_s: float = 3.0
    tags: dict[str, str] = field(default_factory=dict)

    def check(self) -> Result:
        try:
            host, port = split_address(self.address)
        except ValueError as e:
            raise ConfigurationError(f"tcp checker {self.name!r}: {e}") from e
        if not 1 <= port <= 65535:
            raise ConfigurationError(f"tcp checker {self.name!r}: invalid port {port}")

        trials: list[Attempt] = []
        for _ in range(max(self.attempts, 1)):
            attempt, _unused = timed_attempt(lambda: tcp_connect(host, port, self.timeout_s))
            if attempt.error:
                logger.warning("TCP connect to %s failed: %s", self.address, attempt.error)
            trials.append(attempt)

        return Result(
            title=self.name,
            endpoint=self.address,
            type=self.type,
            timestamp=timestamp(),
            attempts=trials,
            threshold_rtt_ms=self.threshold_rtt_ms,
            tags=dict(self.tags),
            **rtt_verdict(trials, self.threshold_rtt_ms),
        )
