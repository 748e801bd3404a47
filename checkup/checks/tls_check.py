from __future__ import annotations

import logging
import socket
import ssl
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import ClassVar

from cryptography import x509
from cryptography.x509.oid import NameOID

from checkup.checks.base import Checker, timed_attempt
from checkup.checks.results import (
    Attempt,
    CertProperties,
    Result,
    format_attempts,
    timestamp,
)
from checkup.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 443
DIAL_TIMEOUT_S = 10.0


def fetch_cert_chain(host: str, port: int, timeout_s: float) -> list[bytes]:
    """Return the peer's certificate chain as DER blobs, leaf first.

    Trust is not verified: the point is to look at the certificate, not to
    decide whether we would accept it.
    """
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE

    with socket.create_connection((host, port), timeout=timeout_s) as sock:
        with ctx.wrap_socket(sock, server_hostname=host) as ssock:
            get_unverified_chain = getattr(ssock, "get_unverified_chain", None)
            if get_unverified_chain is not None:
                return list(get_unverified_chain() or [])
            leaf = ssock.getpeercert(binary_form=True)
            return [leaf] if leaf else []


def _common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return ""
    value = attrs[0].value
    return value.decode("utf-8", "replace") if isinstance(value, bytes) else value


def parse_cert_chain(chain: list[bytes]) -> CertProperties | None:
    """Properties of the first certificate in ``chain`` that names DNS hosts."""
    for der in chain:
        try:
            cert = x509.load_der_x509_certificate(der)
        except ValueError as e:
            logger.warning("Skipping unparseable certificate: %s", e)
            continue

        try:
            san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            continue
        dns_names = san.value.get_values_for_type(x509.DNSName)
        if not dns_names:
            continue

        return CertProperties(
            common_name=_common_name(cert.subject),
            serial=cert.serial_number,
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            dns_names=tuple(dns_names),
            issuer=_common_name(cert.issuer),
        )
    return None


@dataclass
class TLSChecker(Checker):
    type: ClassVar[str] = "tls"

    name: str
    domain_name: str
    port: int = 0
    # Days before expiry at which the certificate is reported as degraded.
    threshold: int = 0
    attempts: int = 1
    tags: dict[str, str] = field(default_factory=dict)
    timeout_s: float = DIAL_TIMEOUT_S

    def _validate(self) -> None:
        if not self.domain_name or not self.domain_name.strip():
            raise ConfigurationError(f"tls checker {self.name!r}: domain_name is required")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"tls checker {self.name!r}: invalid port {self.port}")
        if self.threshold < 0:
            raise ConfigurationError(f"tls checker {self.name!r}: threshold must be >= 0")
        if self.timeout_s <= 0:
            raise ConfigurationError(f"tls checker {self.name!r}: timeout_s must be > 0")

    def check(self) -> Result:
        self._validate()
        port = self.port or DEFAULT_PORT
        attempts = max(self.attempts, 1)

        props, trials = self._do_checks(self.domain_name, port, attempts)
        result = Result(
            title=self.name,
            endpoint=self.domain_name,
            type=self.type,
            timestamp=timestamp(),
            attempts=trials,
            down=True,
            notice=format_attempts(trials),
            context=CertProperties.placeholder(self.domain_name),
            tags=dict(self.tags),
        )
        if props is None:
            return result
        return self.conclude(props, replace(result, notice="", context=props))

    def _do_checks(
        self, host: str, port: int, attempts: int
    ) -> tuple[CertProperties | None, list[Attempt]]:
        props: CertProperties | None = None
        chain_seen = False
        trials: list[Attempt] = []

        for i in range(attempts):
            attempt, chain = timed_attempt(
                lambda: fetch_cert_chain(host, port, self.timeout_s)
            )
            trials.append(attempt)
            if attempt.error:
                logger.warning(
                    "TLS attempt %d/%d to %s:%d failed: %s",
                    i + 1, attempts, host, port, attempt.error,
                )
                continue
            if chain and not chain_seen:
                chain_seen = True
                props = parse_cert_chain(chain)

        return props, trials

    def conclude(
        self, props: CertProperties, result: Result, now: datetime | None = None
    ) -> Result:
        days = props.days_to_expire(now)
        if days > self.threshold:
            return replace(result, healthy=True, degraded=False, down=False)
        if days > 0:
            return replace(result, healthy=False, degraded=True, down=False)
        return replace(result, healthy=False, degraded=False, down=True)
