from __future__ import annotations

from typing import Any, Literal
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(description="Health status")


class ConfigResponse(BaseModel):
    checkers: list[dict[str, Any]]
    count: int
    storage: str | None = Field(default=None, description="Storage provider, if configured")
    notifier: str | None = Field(default=None, description="Notifier name, if configured")


class AttemptResponse(BaseModel):
    rtt_ms: float
    error: str | None = None


class CertPropertiesResponse(BaseModel):
    common_name: str
    serial: str = Field(description="Decimal serial number")
    not_before: str
    not_after: str
    dns_names: list[str]
    issuer: str


class ResultResponse(BaseModel):
    title: str
    endpoint: str
    type: str
    timestamp: int = Field(description="Unix nanoseconds")
    attempts: list[AttemptResponse]
    threshold_rtt_ms: float
    healthy: bool
    degraded: bool
    down: bool
    status: Literal["up", "degraded", "down"]
    context: CertPropertiesResponse | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    notice: str = ""


class CheckRunResponse(BaseModel):
    healthy: bool
    results: list[ResultResponse]


class ResultBatchResponse(BaseModel):
    batch_id: int
    ts: str
    healthy: bool
    results: list[ResultResponse]
