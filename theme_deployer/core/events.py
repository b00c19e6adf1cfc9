"""Event system for Server-Sent Events (SSE)."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any
from uuid import UUID

from theme_deployer.models.deployment import DeploymentLogEntry, DeploymentStatus, utc_now

TERMINAL_EVENTS = frozenset({"deployment_complete", "error"})


@dataclass
class Event:
    """An SSE event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)

    def to_json(self) -> str:
        """Serialize the payload with its timestamp."""
        return json.dumps({**self.data, "timestamp": self.timestamp.isoformat()})

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS


class EventBus:
    """Fan-out of deployment events to stream subscribers."""

    def __init__(self) -> None:
        self._subscribers: dict[UUID, list[asyncio.Queue[Event]]] = {}

    def subscribe(self, deployment_id: UUID) -> asyncio.Queue[Event]:
        """Subscribe to events for a deployment."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers.setdefault(deployment_id, []).append(queue)
        return queue

    def unsubscribe(self, deployment_id: UUID, queue: asyncio.Queue[Event]) -> None:
        """Drop one subscription."""
        queues = self._subscribers.get(deployment_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(deployment_id, None)

    async def publish(self, deployment_id: UUID, event: Event) -> None:
        """Publish an event to every subscriber of a deployment."""
        for queue in self._subscribers.get(deployment_id, []):
            await queue.put(event)

    async def publish_status_changed(
        self, deployment_id: UUID, status: DeploymentStatus, progress_percent: int
    ) -> None:
        await self.publish(
            deployment_id,
            Event(
                event_type="status_changed",
                data={"status": status.value, "progress_percent": progress_percent},
            ),
        )

    async def publish_log(self, deployment_id: UUID, entry: DeploymentLogEntry) -> None:
        await self.publish(
            deployment_id,
            Event(
                event_type="log",
                data={"level": entry.level.value, "message": entry.message},
                timestamp=entry.timestamp,
            ),
        )

    async def publish_deployment_complete(
        self, deployment_id: UUID, website_url: str
    ) -> None:
        await self.publish(
            deployment_id,
            Event(event_type="deployment_complete", data={"website_url": website_url}),
        )

    async def publish_error(
        self, deployment_id: UUID, error: str, stage: str | None = None
    ) -> None:
        await self.publish(
            deployment_id,
            Event(event_type="error", data={"error": error, "stage": stage}),
        )


@lru_cache
def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    return EventBus()
