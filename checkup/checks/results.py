from __future__ import annotations

import statistics
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

NOT_APPLICABLE = "N/A"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Status(str, Enum):
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"


def timestamp() -> int:
    """Current time as Unix nanoseconds."""
    return time.time_ns()


@dataclass(frozen=True)
class Attempt:
    rtt_ms: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.error

    def __str__(self) -> str:
        if self.error:
            return f"{self.rtt_ms:.1f}ms (error: {self.error})"
        return f"{self.rtt_ms:.1f}ms"


def format_attempts(attempts: list[Attempt]) -> str:
    return "[" + ", ".join(str(a) for a in attempts) + "]"


@dataclass(frozen=True)
class Stats:
    max: float = 0.0
    min: float = 0.0
    median: float = 0.0
    mean: float = 0.0


def compute_stats(attempts: list[Attempt]) -> Stats:
    rtts = [a.rtt_ms for a in attempts if a.ok]
    if not rtts:
        return Stats()
    return Stats(
        max=max(rtts),
        min=min(rtts),
        median=statistics.median(rtts),
        mean=statistics.fmean(rtts),
    )


@dataclass(frozen=True)
class CertProperties:
    common_name: str
    serial: int
    not_before: datetime
    not_after: datetime
    dns_names: tuple[str, ...]
    issuer: str

    @classmethod
    def placeholder(cls, domain_name: str) -> "CertProperties":
        return cls(
            common_name=domain_name,
            serial=0,
            not_before=EPOCH,
            not_after=EPOCH,
            dns_names=(NOT_APPLICABLE,),
            issuer=NOT_APPLICABLE,
        )

    def days_to_expire(self, now: datetime | None = None) -> int:
        # Truncated toward zero, so a certificate expiring in 12 hours has 0 days left.
        current = now or datetime.now(timezone.utc)
        return int((self.not_after - current).total_seconds() / 86400)

    def to_dict(self) -> dict[str, Any]:
        return {
            "common_name": self.common_name,
            "serial": str(self.serial),
            "not_before": self.not_before.isoformat(),
            "not_after": self.not_after.isoformat(),
            "dns_names": list(self.dns_names),
            "issuer": self.issuer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CertProperties":
        return cls(
            common_name=data["common_name"],
            serial=int(data["serial"]),
            not_before=datetime.fromisoformat(data["not_before"]),
            not_after=datetime.fromisoformat(data["not_after"]),
            dns_names=tuple(data["dns_names"]),
            issuer=data["issuer"],
        )


# Which context payload each result type carries. Types not listed carry none.
CONTEXT_TYPES: dict[str, type] = {
    "tls": CertProperties,
}


@dataclass(frozen=True)
class Result:
    title: str
    endpoint: str
    type: str
    timestamp: int
    attempts: list[Attempt] = field(default_factory=list)
    threshold_rtt_ms: float = 0.0
    healthy: bool = False
    degraded: bool = False
    down: bool = False
    context: Optional[CertProperties] = None
    tags: dict[str, str] = field(default_factory=dict)
    notice: str = ""

    def __post_init__(self) -> None:
        flags = [self.healthy, self.degraded, self.down]
        if sum(1 for f in flags if f) != 1:
            raise ValueError(
                f"result for {self.endpoint!r} must be exactly one of healthy/degraded/down"
            )

        expected = CONTEXT_TYPES.get(self.type)
        if expected is None:
            if self.context is not None:
                raise ValueError(f"result type {self.type!r} carries no context")
        elif not isinstance(self.context, expected):
            raise ValueError(
                f"result type {self.type!r} requires a {expected.__name__} context"
            )

    def status(self) -> Status:
        if self.healthy:
            return Status.UP
        if self.degraded:
            return Status.DEGRADED
        return Status.DOWN

    def compute_stats(self) -> Stats:
        return compute_stats(self.attempts)

    @property
    def captured_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1e9, tz=timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "endpoint": self.endpoint,
            "type": self.type,
            "timestamp": self.timestamp,
            "attempts": [{"rtt_ms": a.rtt_ms, "error": a.error} for a in self.attempts],
            "threshold_rtt_ms": self.threshold_rtt_ms,
            "healthy": self.healthy,
            "degraded": self.degraded,
            "down": self.down,
            "status": self.status().value,
            "context": self.context.to_dict() if self.context is not None else None,
            "tags": dict(self.tags),
            "notice": self.notice,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Result":
        ctx_cls = CONTEXT_TYPES.get(data["type"])
        raw_ctx = data.get("context")
        context = ctx_cls.from_dict(raw_ctx) if ctx_cls and raw_ctx is not None else None
        return cls(
            title=data["title"],
            endpoint=data["endpoint"],
            type=data["type"],
            timestamp=int(data["timestamp"]),
            attempts=[Attempt(rtt_ms=a["rtt_ms"], error=a.get("error")) for a in data.get("attempts", [])],
            threshold_rtt_ms=data.get("threshold_rtt_ms", 0.0),
            healthy=bool(data.get("healthy")),
            degraded=bool(data.get("degraded")),
            down=bool(data.get("down")),
            context=context,
            tags=dict(data.get("tags") or {}),
            notice=data.get("notice", ""),
        )


def all_healthy(results: list[Result]) -> bool:
    return all(r.healthy for r in results)
