# src/teasr_stage/services/broadcast.py
"""Event fan-out to connected clients.

The core never tracks connections itself; it hands events to a broadcaster and
moves on without waiting for delivery.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from redis import asyncio as redis_asyncio

logger = logging.getLogger(__name__)

EVENT_VIEW_UPDATE = "viewUpdate"
EVENT_VOTE_UPDATE = "voteUpdate"
EVENT_BUYOUT_UPDATE = "buyoutUpdate"
EVENT_INVESTOR_EARNINGS_UPDATE = "investorEarningsUpdate"
EVENT_COMMENT_UNLOCK = "commentUnlock"
EVENT_VIRAL_NOTIFICATION = "viralNotification"


@dataclass(frozen=True)
class Event:
    """A typed message destined for connected clients."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize the event; Decimal amounts become strings."""
        return json.dumps({"type": self.type, "payload": self.payload}, default=_json_default)


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Broadcaster(ABC):
    """Fire-and-forget publisher of :class:`Event` objects."""

    @abstractmethod
    def publish(self, event: Event) -> None:
        """Queue ``event`` for delivery without awaiting confirmation."""

    async def close(self) -> None:
        """Release any resources held by the broadcaster."""
        return None


class InMemoryBroadcaster(Broadcaster):
    """In-process fan-out to subscriber queues.

    Each subscriber gets its own bounded queue; a slow subscriber drops its
    oldest pending events rather than blocking publishers.
    """

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._subscribers: set[asyncio.Queue[Event]] = set()
        self._max_queue_size = max_queue_size
        self.published: list[Event] = []
        self._history_limit = max_queue_size

    def publish(self, event: Event) -> None:
        self.published.append(event)
        if len(self.published) > self._history_limit:
            del self.published[: len(self.published) - self._history_limit]
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

    async def subscribe(self) -> AsyncIterator[Event]:
        """Yield events published after the subscription starts."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

    def events_of_type(self, event_type: str) -> list[Event]:
        """Return recently published events of one type, oldest first."""
        return [event for event in self.published if event.type == event_type]


class RedisBroadcaster(Broadcaster):
    """Publishes JSON events to a Redis pub/sub channel.

    A WebSocket gateway subscribed to the channel does the actual fan-out.
    """

    def __init__(self, client: Any, channel: str) -> None:
        self._client = client
        self._channel = channel
        self._pending: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_url(cls, url: str, channel: str) -> RedisBroadcaster:
        """Build a broadcaster backed by a new Redis connection pool."""
        return cls(redis_asyncio.from_url(url), channel)

    def publish(self, event: Event) -> None:
        task = asyncio.get_running_loop().create_task(
            self._client.publish(self._channel, event.to_json())
        )
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Failed to publish event to %s: %s", self._channel, exc)

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self._client.aclose()
