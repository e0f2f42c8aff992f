"""Fire-and-forget event publishing."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol


logger = logging.getLogger(__name__)

SNAPSHOT_TOPIC = "market://snapshot"


class EventPublisher(Protocol):
    """Broadcast sink. Implementations may raise; callers log and move on."""

    def publish(self, topic: str, payload: Any) -> None:
        ...


class EventBus:
    """
    In-process fan-out to subscriber queues.

    Each subscriber gets its own bounded queue. When a queue is full the
    oldest pending event for that subscriber is dropped so a slow consumer
    never blocks the publisher.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = max(1, queue_size)
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    def subscribe(self, topic: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(topic, []).append(queue)
        logger.debug(f"Subscriber added for {topic} ({self.subscriber_count(topic)} total)")
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(topic, [])
        if queue in queues:
            queues.remove(queue)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    def publish(self, topic: str, payload: Any) -> None:
        for queue in list(self._subscribers.get(topic, [])):
            if queue.full():
                queue.get_nowait()
                logger.debug(f"Dropped oldest event for slow {topic} subscriber")
            queue.put_nowait(payload)
