from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable

import redis

logger = logging.getLogger(__name__)

Subscriber = Callable[["DomainEvent"], None]


@dataclass(frozen=True)
class DomainEvent:
    name: str
    entity_type: str
    entity_id: str
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return json.dumps(data, default=str)


class EventBus:
    """In-process fan-out of committed changes.

    Publishing happens after the owning transaction commits. A subscriber that
    raises is logged and skipped; the remaining subscribers still run.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception("Event subscriber failed for %s", event.name)


class RedisEventRelay:
    """Subscriber that forwards events as JSON to a Redis pub/sub channel."""

    def __init__(self, client: "redis.Redis", channel: str) -> None:
        self.client = client
        self.channel = channel

    @classmethod
    def from_url(cls, url: str, channel: str) -> "RedisEventRelay":
        return cls(redis.Redis.from_url(url), channel)

    def __call__(self, event: DomainEvent) -> None:
        self.client.publish(self.channel, event.to_json())


def attach_event_relay(event_bus: EventBus, settings) -> RedisEventRelay | None:
    """Subscribe a Redis relay when EVENTS_REDIS_URL is configured."""
    if not settings.EVENTS_REDIS_URL:
        return None
    relay = RedisEventRelay.from_url(settings.EVENTS_REDIS_URL, settings.EVENTS_CHANNEL)
    event_bus.subscribe(relay)
    logger.info("Relaying queue events to redis channel %s", settings.EVENTS_CHANNEL)
    return relay
