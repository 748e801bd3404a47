from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, ClassVar, TypeVar

from checkup.checks.results import Attempt, Result, compute_stats

T = TypeVar("T")


class Checker(ABC):
    """One probe cycle against one endpoint.

    ``check`` raises ``ConfigurationError`` only when the checker itself is
    unusable. Unreachable targets, timeouts and expired certificates come
    back as a ``down`` Result with a notice.
    """

    type: ClassVar[str]
    name: str

    @abstractmethod
    def check(self) -> Result:
        raise NotImplementedError


def timed_attempt(probe: Callable[[], T]) -> tuple[Attempt, T | None]:
    """Run ``probe`` once, returning the Attempt and the probe's value (None on error)."""
    start = time.perf_counter()
    try:
        value = probe()
        rtt_ms = (time.perf_counter() - start) * 1000
        return Attempt(rtt_ms=rtt_ms), value
    except Exception as e:
        rtt_ms = (time.perf_counter() - start) * 1000
        return Attempt(rtt_ms=rtt_ms, error=str(e) or type(e).__name__), None


def rtt_verdict(attempts: list[Attempt], threshold_rtt_ms: float) -> dict[str, bool | str]:
    """Health flags and notice for RTT-based checkers.

    Any failed attempt means down. Otherwise a median RTT above a positive
    threshold means degraded.
    """
    errors = [a.error for a in attempts if a.error]
    if errors:
        return {"healthy": False, "degraded": False, "down": True, "notice": "; ".join(errors)}

    median = compute_stats(attempts).median
    if threshold_rtt_ms > 0 and median > threshold_rtt_ms:
        return {
            "healthy": False,
            "degraded": True,
            "down": False,
            "notice": f"median round trip {median:.1f}ms exceeds {threshold_rtt_ms:.1f}ms",
        }
    return {"healthy": True, "degraded": False, "down": False, "notice": ""}
