"""Live-update event channel.

Services never talk to sockets directly.  They queue named events on a
``PendingEvents`` while their transaction runs, and the unit of work
publishes them on an ``EventBus`` once the commit went through.  Events
are invalidation signals: clients re-fetch their own view on receipt.

Two buses:
  - InMemoryEventBus → single process, listeners called in-line.
  - RedisEventBus    → every worker publishes to a Redis channel and
                       relays what it hears to its own listeners, so a
                       WebSocket on worker A sees a scan made on worker B.

Delivery is best effort.  A listener that raises is logged and skipped;
a Redis outage is logged and the event is dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# ── Event names ─────────────────────────────────────────────

ORDER_PROCESSING = "orderProcessing"
ORDER_READY = "orderReady"
ORDER_STATUS_UPDATED = "order-status-updated"
PALLET_UPDATED = "pallet-updated"
CUSTOMER_UPDATED = "customer-updated"


@dataclass(frozen=True)
class Event:
    name: str
    data: dict[str, Any] | None = None

    def to_message(self) -> dict:
        return {"event": self.name, "data": self.data}

    @classmethod
    def from_message(cls, message: dict) -> "Event":
        return cls(name=message["event"], data=message.get("data"))


Listener = Callable[[Event], Awaitable[None]]


class EventBus:
    """Publish/subscribe interface the services call into."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, event: Event) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def _dispatch(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.name)


class InMemoryEventBus(EventBus):
    async def publish(self, event: Event) -> None:
        logger.debug("Publishing %s to %d listeners", event.name, len(self._listeners))
        await self._dispatch(event)


class RedisEventBus(EventBus):
    """Fan events out across workers through a Redis pub/sub channel."""

    def __init__(self, redis_url: str, channel: str) -> None:
        super().__init__()
        self.redis_url = redis_url
        self.channel = channel
        self._client: redis.Redis | None = None
        self._relay_task: asyncio.Task | None = None
        self.retry_delay = 1.0

    async def start(self) -> None:
        self._client = redis.from_url(
            self.redis_url, encoding="utf-8", decode_responses=True
        )
        self._relay_task = asyncio.create_task(self._relay())
        logger.info("Relaying events from Redis channel %s", self.channel)

    async def stop(self) -> None:
        if self._relay_task:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None
        if self._client:
            await self._client.aclose()
            self._client = None

    async def publish(self, event: Event) -> None:
        if self._client is None:
            logger.warning("Redis event bus not started, dropping %s", event.name)
            return
        try:
            await self._client.publish(self.channel, json.dumps(event.to_message()))
        except redis.RedisError as e:
            logger.warning("Failed to publish %s: %s", event.name, e)

    async def _relay(self) -> None:
        """Forward every message on the channel to local listeners."""
        while True:
            pubsub = self._client.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    try:
                        event = Event.from_message(json.loads(message["data"]))
                    except (ValueError, KeyError, TypeError):
                        logger.warning("Ignoring malformed event payload: %r", message["data"])
                        continue
                    await self._dispatch(event)
            except redis.RedisError as e:
                logger.warning("Redis relay interrupted (%s), reconnecting", e)
            except Exception:
                logger.exception("Redis relay failed, restarting")
            finally:
                await pubsub.aclose()
            await asyncio.sleep(self.retry_delay)


@dataclass
class PendingEvents:
    """Events queued inside a transaction, published after commit."""

    events: list[Event] = field(default_factory=list)

    def add(self, name: str, **data: Any) -> None:
        self.events.append(Event(name=name, data=data or None))

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    async def publish(self, bus: EventBus) -> None:
        for event in self.events:
            try:
                await bus.publish(event)
            except Exception:
                logger.exception("Failed to publish %s", event.name)
        self.events.clear()


def build_event_bus(backend: str, redis_url: str, channel: str) -> EventBus:
    if backend == "redis":
        return RedisEventBus(redis_url, channel)
    if backend != "memory":
        raise ValueError(f"Unknown event backend: {backend}")
    return InMemoryEventBus()
