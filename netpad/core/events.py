"""Event system for Server-Sent Events (SSE)."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """An SSE event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def encode_data(self) -> str:
        """Serialize the payload for the SSE data field."""
        return json.dumps({**self.data, "timestamp": self.timestamp.isoformat()})

    @property
    def is_final(self) -> bool:
        return self.event_type in ("deployment_complete", "error")


class EventBus:
    """Simple event bus for deployment events."""

    def __init__(self):
        self._subscribers: dict[str, list[asyncio.Queue[Event]]] = {}

    def subscribe(self, deployment_id: str) -> asyncio.Queue[Event]:
        """Subscribe to events for a deployment."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers.setdefault(deployment_id, []).append(queue)
        return queue

    def unsubscribe(self, deployment_id: str, queue: asyncio.Queue[Event]) -> None:
        """Unsubscribe from deployment events."""
        queues = self._subscribers.get(deployment_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(deployment_id, None)

    def subscriber_count(self, deployment_id: str) -> int:
        return len(self._subscribers.get(deployment_id, []))

    async def publish(self, deployment_id: str, event: Event) -> None:
        """Publish an event for a deployment."""
        for queue in list(self._subscribers.get(deployment_id, [])):
            await queue.put(event)

    async def publish_status_changed(
        self, deployment_id: str, status: str, status_message: str | None = None
    ) -> None:
        await self.publish(
            deployment_id,
            Event(
                event_type="status_changed",
                data={
                    "deployment_id": deployment_id,
                    "status": status,
                    "status_message": status_message,
                },
            ),
        )

    async def publish_deployment_complete(self, deployment_id: str, url: str) -> None:
        """Publish a deployment complete event."""
        await self.publish(
            deployment_id,
            Event(
                event_type="deployment_complete",
                data={"deployment_id": deployment_id, "url": url},
            ),
        )

    async def publish_error(self, deployment_id: str, error: str) -> None:
        """Publish an error event."""
        await self.publish(
            deployment_id,
            Event(
                event_type="error",
                data={"deployment_id": deployment_id, "error": error},
            ),
        )


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
