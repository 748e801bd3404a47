from __future__ import annotations

from datetime import datetime
from typing import Dict

from checkup.checks.results import CertProperties, Result, Status, format_attempts


def _fmt_time(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def alert_status(result: Result) -> str:
    """Status wording used in alerts; certificate alerts speak of expiry."""
    status = result.status()
    if result.type == "tls":
        if status is Status.DOWN:
            return "EXPIRED"
        if status is Status.DEGRADED:
            return "EXPIRING"
    return status.value.upper()


def rtt_details(result: Result) -> Dict[str, str]:
    stats = result.compute_stats()
    return {
        "Endpoint": result.endpoint,
        "Timestamp": _fmt_time(result.captured_at),
        "Threshold": f"{result.threshold_rtt_ms:.1f}ms",
        "Max": f"{stats.max:.1f}ms",
        "Min": f"{stats.min:.1f}ms",
        "Median": f"{stats.median:.1f}ms",
        "Mean": f"{stats.mean:.1f}ms",
        "All": format_attempts(result.attempts),
    }


def _cert(result: Result) -> CertProperties:
    if result.context is None:
        raise ValueError(f"{result.type} result for {result.endpoint!r} has no certificate")
    return result.context


def cert_details(result: Result) -> Dict[str, str]:
    cert = _cert(result)
    return {
        "Common name": cert.common_name,
        "Serial": str(cert.serial),
        "Valid from": _fmt_time(cert.not_before),
        "Valid to": _fmt_time(cert.not_after),
        "DNS names": ", ".join(cert.dns_names),
        "Issuer": cert.issuer,
        "Expires in": f"{cert.days_to_expire()} day(s)",
        "Timestamp": _fmt_time(result.captured_at),
    }


def alert_details(result: Result) -> Dict[str, str]:
    if result.type == "tls":
        details = cert_details(result)
    else:
        details = rtt_details(result)
        details["Assessment"] = alert_status(result)
    if result.notice:
        details["Notice"] = result.notice
    details.update(result.tags)
    return details


def alert_summary(result: Result) -> str:
    return f"{result.title} ({result.endpoint}) is {alert_status(result)}"


def format_alert(result: Result) -> tuple[str, str]:
    title = f"[{alert_status(result)}] {result.title}"
    lines = [f"{k}: {v}" for k, v in alert_details(result).items()]
    return title, "\n".join(lines)


def format_result(result: Result) -> str:
    """Human-readable, multi-line rendering for console output."""
    lines = [
        f"== {result.title} - {result.endpoint}",
        f"  Type: {result.type}",
        f"  Status: {result.status().value.upper()}",
    ]
    if result.type == "tls":
        cert = _cert(result)
        lines.append(f"  Expires: {_fmt_time(cert.not_after)} ({cert.days_to_expire()} day(s))")
        lines.append(f"  Issuer: {cert.issuer}")
    else:
        stats = result.compute_stats()
        lines.append(f"  Threshold: {result.threshold_rtt_ms:.1f}ms")
        lines.append(
            f"  RTT max/min/median/mean: {stats.max:.1f}/{stats.min:.1f}/"
            f"{stats.median:.1f}/{stats.mean:.1f}ms"
        )
    lines.append(f"  Attempts: {format_attempts(result.attempts)}")
    if result.notice:
        lines.append(f"  Notice: {result.notice}")
    for k, v in result.tags.items():
        lines.append(f"  {k}: {v}")
    return "\n".join(lines)
