"""EventBus — best-effort, fire-and-forget fan-out of market events.

Two kinds of subscriber:
  - queues (one per SSE connection), fed with put_nowait
  - plain callables, invoked synchronously

publish() never raises. A callable that raises or a queue that is full is
dropped from the bus; the simulation is never affected by an observer.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], None]


class EventBus:
    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._queues: set[asyncio.Queue[dict[str, Any]]] = set()
        self._listeners: list[Listener] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._queues) + len(self._listeners)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._queues.discard(queue)

    def is_subscribed(self, queue: asyncio.Queue[dict[str, Any]]) -> bool:
        return queue in self._queues

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: BaseModel) -> int:
        """Deliver *event* to every subscriber. Returns the number of deliveries."""
        payload = event.model_dump(mode="json")
        delivered = 0

        for queue in list(self._queues):
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping slow event subscriber (queue full)")
                self._queues.discard(queue)

        for listener in list(self._listeners):
            try:
                listener(payload)
                delivered += 1
            except Exception:  # noqa: BLE001
                logger.exception("Event listener failed; removing it")
                self.remove_listener(listener)

        logger.debug("Published %s to %d subscribers", payload.get("type"), delivered)
        return delivered
