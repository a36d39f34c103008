"""Per-user event fan-out for stats_update / achievement_unlocked."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

logger = logging.getLogger("clicksand.events")

Listener = Callable[[str, str, Any], None]

MAX_QUEUED_EVENTS = 100


class EventHub:
    """Publishes events to per-user asyncio queues and to sync listeners.

    Slow subscribers lose their oldest events instead of blocking publishers.
    """

    def __init__(self, max_queued: int = MAX_QUEUED_EVENTS):
        self._queues: dict[str, set[asyncio.Queue]] = {}
        self._listeners: list[Listener] = []
        self._max_queued = max_queued

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._queues.get(user_id, ()))

    @contextmanager
    def subscribe(self, user_id: str) -> Iterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queued)
        self._queues.setdefault(user_id, set()).add(queue)
        try:
            yield queue
        finally:
            queues = self._queues.get(user_id)
            if queues is not None:
                queues.discard(queue)
                if not queues:
                    del self._queues[user_id]

    def publish(self, user_id: str, event: str, data: Any) -> None:
        message = {"event": event, "data": data}
        for queue in list(self._queues.get(user_id, ())):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(message)

        for listener in list(self._listeners):
            try:
                listener(user_id, event, data)
            except Exception as e:
                logger.error(f"Event listener failed for {event}: {e}")
