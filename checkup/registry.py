from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from checkup.checks.base import Checker
from checkup.checks.http_check import HTTPChecker
from checkup.checks.tcp_check import TCPChecker
from checkup.checks.tls_check import TLSChecker
from checkup.config import settings
from checkup.errors import ConfigurationError
from checkup.models import (
    CheckupConfig,
    HttpCheck,
    NtfyConfig,
    OpsGenieConfig,
    PagerDutyConfig,
    TcpCheck,
    TlsCheck,
)
from checkup.notifier import NtfyNotifier, Notifier, OpsGenieNotifier, PagerDutyNotifier
from checkup.orchestrator import Checkup
from checkup.persistence import SQLiteStorage, Storage


def load_config(path: Path | str | None = None) -> CheckupConfig:
    """Parse a checkup document. JSON is accepted as a subset of YAML."""
    path = Path(path or settings.CHECKUP_CONFIG)
    if not path.exists():
        raise FileNotFoundError(f"Missing checkup config at {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    try:
        cfg = CheckupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"{path}: {e}") from e

    # Ensure unique names
    seen = set()
    for c in cfg.checkers:
        if c.name in seen:
            raise ConfigurationError(f"Duplicate checker name: {c.name}")
        seen.add(c.name)

    return cfg


def build_checker(c: TlsCheck | TcpCheck | HttpCheck) -> Checker:
    if isinstance(c, TlsCheck):
        return TLSChecker(
            name=c.name,
            domain_name=c.domain_name,
            port=c.port,
            threshold=c.threshold,
            attempts=c.attempts,
            tags=dict(c.tags),
            timeout_s=c.timeout_s,
        )
    if isinstance(c, TcpCheck):
        return TCPChecker(
            name=c.name,
            address=c.address,
            attempts=c.attempts,
            threshold_rtt_ms=c.threshold_rtt_ms,
            timeout_s=c.timeout_s,
            tags=dict(c.tags),
        )
    if isinstance(c, HttpCheck):
        return HTTPChecker(
            name=c.name,
            url=c.url,
            attempts=c.attempts,
            threshold_rtt_ms=c.threshold_rtt_ms,
            up_status=c.up_status,
            timeout_s=c.timeout_s,
            connect_timeout_s=c.connect_timeout_s,
            tags=dict(c.tags),
        )
    raise ConfigurationError(f"Unsupported checker type: {type(c).__name__}")


def build_notifier(cfg: CheckupConfig) -> Notifier | None:
    n = cfg.notifier
    timeout_s = settings.CHECKUP_HTTP_TIMEOUT_SECONDS
    if n is None:
        return None
    if isinstance(n, PagerDutyConfig):
        return PagerDutyNotifier(service_key=n.service_key, timeout_s=timeout_s)
    if isinstance(n, OpsGenieConfig):
        return OpsGenieNotifier(api_key=n.api_key, timeout_s=timeout_s)
    if isinstance(n, NtfyConfig):
        return NtfyNotifier(base_url=n.base_url, topic=n.topic, timeout_s=timeout_s)
    raise ConfigurationError(f"Unsupported notifier: {type(n).__name__}")


def storage_path(cfg: CheckupConfig) -> str:
    """Database path results are stored to; the env path unless the config names one."""
    if cfg.storage is not None and cfg.storage.db_path:
        return cfg.storage.db_path
    return settings.CHECKUP_DB_PATH


def build_storage(cfg: CheckupConfig) -> Storage | None:
    s = cfg.storage
    if s is None:
        return None
    return SQLiteStorage(storage_path(cfg), max_batches=s.max_batches)


def build_checkup(cfg: CheckupConfig) -> Checkup:
    return Checkup(
        checkers=[build_checker(c) for c in cfg.checkers],
        storage=build_storage(cfg),
        notifier=build_notifier(cfg),
        max_workers=settings.CHECKUP_MAX_WORKERS,
    )
