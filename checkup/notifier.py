from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests

from checkup.checks.results import Result, Status
from checkup.errors import NotifierError
from checkup.formatting import alert_details, alert_summary, format_alert

logger = logging.getLogger(__name__)

PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/generic/2010-04-15/create_event.json"
OPSGENIE_ALERTS_URL = "https://api.opsgenie.com/v2/alerts"
DEFAULT_TIMEOUT_S = 5.0


class Notifier(ABC):
    """Dispatches an alert for every unhealthy result in a batch."""

    def notify(self, results: list[Result]) -> None:
        failed: list[str] = []
        for result in results:
            if result.healthy:
                continue
            try:
                self.send(result)
            except Exception as e:
                # One failed alert must not stop the rest of the batch.
                logger.error("Failed to send alert for %s: %s", result.endpoint, e)
                failed.append(result.endpoint)
        if failed:
            raise NotifierError(
                f"{len(failed)} alert(s) could not be sent", failed_endpoints=failed
            )

    @abstractmethod
    def send(self, result: Result) -> None:
        raise NotImplementedError


@dataclass
class PagerDutyNotifier(Notifier):
    service_key: str
    url: str = PAGERDUTY_EVENTS_URL
    timeout_s: float = DEFAULT_TIMEOUT_S

    def send(self, result: Result) -> None:
        assessment = result.status().value.upper()
        details = alert_details(result)
        details["Assessment"] = assessment

        event = {
            "service_key": self.service_key,
            "event_type": "trigger",
            # Keyed on endpoint so repeated failures update one incident.
            "incident_key": result.endpoint,
            "description": f"{result.title} ({result.endpoint}) is {assessment}",
            "client": result.title,
            "client_url": result.endpoint,
            "details": details,
        }
        resp = requests.post(self.url, json=event, timeout=self.timeout_s)
        resp.raise_for_status()
        logger.info(
            "PagerDuty event for incident key '%s' accepted with status %s",
            result.endpoint,
            resp.status_code,
        )


@dataclass
class OpsGenieNotifier(Notifier):
    api_key: str
    url: str = OPSGENIE_ALERTS_URL
    timeout_s: float = DEFAULT_TIMEOUT_S

    def send(self, result: Result) -> None:
        # Some accounts don't support tags, so they also go into details.
        payload = {
            "message": alert_summary(result),
            "alias": result.endpoint,
            "description": "Alert generated by Checkup",
            "tags": list(result.tags.values()),
            "details": alert_details(result),
            "entity": result.type,
            "source": "Checkup",
            "user": "Checkup",
        }
        resp = requests.post(
            self.url,
            json=payload,
            headers={"Authorization": f"GenieKey {self.api_key}"},
            timeout=self.timeout_s,
        )
        resp.raise_for_status()
        request_id = ""
        try:
            request_id = resp.json().get("requestId", "")
        except ValueError:
            pass
        logger.info("OpsGenie create request (%s) for %s", request_id, result.endpoint)


@dataclass
class NtfyNotifier(Notifier):
    base_url: str
    topic: str
    priority_down: int = 4
    priority_degraded: int = 3
    timeout_s: float = DEFAULT_TIMEOUT_S

    def send(self, result: Result) -> None:
        title, message = format_alert(result)
        down = result.status() is Status.DOWN
        url = f"{self.base_url.rstrip('/')}/{self.topic}"
        headers = {
            "Title": title,
            "Priority": str(self.priority_down if down else self.priority_degraded),
            "Tags": "rotating_light,down" if down else "warning,degraded",
        }
        resp = requests.post(
            url, data=message.encode("utf-8"), headers=headers, timeout=self.timeout_s
        )
        resp.raise_for_status()
        logger.info("ntfy alert sent for %s", result.endpoint)
