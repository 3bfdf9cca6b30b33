"""Domain event publishing.

Publishing is fire-and-forget from the engine's point of view: a transition
is already committed when its event goes out, so a failed publish is logged
and never raised back into the caller.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx

from .config import settings

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    "application.created",
    "application.recruiter_proposed",
    "application.candidate_approved",
    "application.candidate_declined",
    "application.draft_completed",
    "application.stage_changed",
    "application.withdrawn",
    "application.accepted",
    "application.submitted_to_company",
    "application.prescreen_requested",
    "candidate.sourced",
    "candidate.outreach_sent",
    "placement.created",
    "placement.state_changed",
    "placement.activated",
    "placement.completed",
    "placement.failed",
    "placement.replacement_requested",
    "collaboration.accepted",
}


def build_envelope(event_type: str, payload: dict, source_service: str) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "source_service": source_service,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "payload": to_jsonable(payload),
    }


def to_jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class EventPublisher(ABC):
    """Base publisher. Subclasses implement ``_send``."""

    async def publish(
        self,
        event_type: str,
        payload: dict,
        source_service: str | None = None,
    ) -> None:
        envelope = build_envelope(event_type, payload, source_service or settings.service_name)
        try:
            await self._send(envelope)
        except Exception:
            logger.exception("Failed to publish %s event %s", event_type, envelope["event_id"])

    @abstractmethod
    async def _send(self, envelope: dict) -> None:
        """Deliver one envelope. Exceptions are logged by ``publish``."""

    async def close(self) -> None:
        return None


class LoggingEventPublisher(EventPublisher):
    """Writes events to the log. Default for local development."""

    async def _send(self, envelope: dict) -> None:
        logger.info(
            "event %s from %s: %s",
            envelope["event_type"],
            envelope["source_service"],
            envelope["payload"],
        )


class MemoryEventPublisher(EventPublisher):
    """Keeps published envelopes in memory, in publish order."""

    def __init__(self) -> None:
        self.events: list[dict] = []

    async def _send(self, envelope: dict) -> None:
        self.events.append(envelope)

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.events if e["event_type"] == event_type]

    def types(self) -> list[str]:
        return [e["event_type"] for e in self.events]

    def clear(self) -> None:
        self.events.clear()


class HttpEventPublisher(EventPublisher):
    """POSTs each envelope to the event bus ingestion endpoint.

    Delivery retries belong to the bus; a non-2xx response is logged and
    dropped here.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _send(self, envelope: dict) -> None:
        response = await self._client.post(f"{self.base_url}/events", json=envelope)
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


def build_publisher() -> EventPublisher:
    if settings.event_bus_url:
        return HttpEventPublisher(
            settings.event_bus_url,
            timeout=settings.event_publish_timeout_seconds,
        )
    return LoggingEventPublisher()
