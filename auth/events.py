"""
auth/events.py -- Best-effort publication of identity events.

Other services learn about account creation, profile changes, deletions and
role changes through these events. Publication is fire-and-forget: a publisher
may raise, and the caller (AuthenticationService) logs the failure and carries
on. Nothing here retries; the receiving side owns its own retry policy.

Publishers:
  LoggingEventPublisher -- default when no webhook is configured. Writes one
      INFO line per event.
  WebhookEventPublisher -- POSTs a JSON envelope to EVENTS_WEBHOOK_URL.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from core.config import Settings

logger = logging.getLogger("campusauth.auth.events")

USER_CREATED = "USER_CREATED"
USER_UPDATED = "USER_UPDATED"
USER_DELETED = "USER_DELETED"
ROLE_ASSIGNED = "ROLE_ASSIGNED"


class EventPublisher(Protocol):
    def publish(self, event_type: str, payload: dict[str, Any]) -> None: ...


def build_envelope(event_type: str, payload: dict[str, Any], source: str) -> dict[str, Any]:
    return {
        "event_id": uuid.uuid4().hex,
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": source,
        "data": payload,
    }


class LoggingEventPublisher:
    def __init__(self, source: str = "campusauth") -> None:
        self._source = source

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        envelope = build_envelope(event_type, payload, self._source)
        logger.info("Identity event %s id=%s data=%s", event_type, envelope["event_id"], payload)


class WebhookEventPublisher:
    """POST each event to a single HTTP endpoint.

    One requests.Session per publisher pools connections across events.
    max_redirects=3 keeps redirect chains short.
    """

    def __init__(self, url: str, source: str = "campusauth", timeout: float = 5.0) -> None:
        self._url = url
        self._source = source
        self._timeout = timeout
        self._session = requests.Session()
        self._session.max_redirects = 3

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        envelope = build_envelope(event_type, payload, self._source)
        resp = self._session.post(self._url, json=envelope, timeout=self._timeout)
        resp.raise_for_status()
        logger.debug("Published %s id=%s", event_type, envelope["event_id"])

    def close(self) -> None:
        self._session.close()


def publisher_from_settings(settings: Settings) -> EventPublisher:
    if settings.events_webhook_url:
        logger.info("Identity events will be posted to the configured webhook")
        return WebhookEventPublisher(settings.events_webhook_url, source=settings.service_name)
    return LoggingEventPublisher(source=settings.service_name)
