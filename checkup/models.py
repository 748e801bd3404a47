from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator


class BaseCheck(BaseModel):
    name: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("name", "endpoint_name")
    )
    attempts: int = 1
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("attempts")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        return max(v, 1)


class TlsCheck(BaseCheck):
    type: Literal["tls"]
    domain_name: str = Field(..., min_length=1)
    port: int = Field(default=443, ge=0, le=65535)
    threshold: int = Field(default=0, ge=0, description="Days before expiry to warn")
    timeout_s: float = Field(default=10.0, gt=0)

    @field_validator("port")
    @classmethod
    def _default_port(cls, v: int) -> int:
        return v or 443


class TcpCheck(BaseCheck):
    type: Literal["tcp"]
    address: str = Field(..., min_length=3, description="host:port")
    threshold_rtt_ms: float = Field(default=0.0, ge=0)
    timeout_s: float = Field(default=3.0, gt=0)


class HttpCheck(BaseCheck):
    type: Literal["http"]
    url: str = Field(..., pattern=r"^https?://")
    threshold_rtt_ms: float = Field(default=0.0, ge=0)
    up_status: int = Field(default=200, ge=100, le=599)
    timeout_s: float = Field(default=3.0, gt=0)
    connect_timeout_s: Optional[float] = Field(default=None, gt=0)


Check = Annotated[Union[TlsCheck, TcpCheck, HttpCheck], Field(discriminator="type")]


class SqliteStorageConfig(BaseModel):
    provider: Literal["sqlite"]
    db_path: Optional[str] = None
    max_batches: int = Field(default=500, ge=1)


class PagerDutyConfig(BaseModel):
    name: Literal["pagerduty"]
    service_key: str = Field(..., min_length=1)


class OpsGenieConfig(BaseModel):
    name: Literal["opsgenie"]
    api_key: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("api_key", "service_key")
    )


class NtfyConfig(BaseModel):
    name: Literal["ntfy"]
    base_url: str = Field(..., pattern=r"^https?://")
    topic: str = Field(..., min_length=1)


NotifierConfig = Annotated[
    Union[PagerDutyConfig, OpsGenieConfig, NtfyConfig], Field(discriminator="name")
]


class CheckupConfig(BaseModel):
    checkers: List[Check] = Field(default_factory=list)
    storage: Optional[SqliteStorageConfig] = None
    notifier: Optional[NotifierConfig] = None
