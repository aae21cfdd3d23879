import json

import redis

from healthqueue.config import Settings
from healthqueue.jobs.no_show_sweep import no_show_sweep
from healthqueue.services.event_bus import attach_event_relay


def test_sweep_reports_without_removing(queue_engine, registration, clock):
    late = queue_engine.register_patient(registration())
    queue_engine.mark_late_arrival(late.id)
    clock.advance(45)
    events = []
    queue_engine.event_bus.subscribe(events.append)

    assert no_show_sweep(queue_engine) == 1
    assert [(e.name, e.payload["token"]) for e in events] == [("patient.no_show", "GM-001")]
    assert queue_engine.get_patient(late.id).status.value == "waiting"


class FakeRedis:
    def __init__(self):
        self.published = []

    def publish(self, channel, message):
        self.published.append((channel, message))


def test_sweep_relays_no_shows_to_redis(queue_engine, registration, clock, monkeypatch):
    client = FakeRedis()
    urls = []

    def from_url(url):
        urls.append(url)
        return client

    monkeypatch.setattr(redis.Redis, "from_url", from_url)
    settings = Settings(EVENTS_REDIS_URL="redis://queue-events:6379/0", EVENTS_CHANNEL="ward.events")
    relay = attach_event_relay(queue_engine.event_bus, settings)
    late = queue_engine.register_patient(registration())
    queue_engine.mark_late_arrival(late.id)
    clock.advance(45)

    assert no_show_sweep(queue_engine) == 1
    assert relay.channel == "ward.events"
    assert urls == ["redis://queue-events:6379/0"]
    no_shows = [json.loads(message) for channel, message in client.published if channel == "ward.events"]
    assert [m["payload"]["token"] for m in no_shows if m["name"] == "patient.no_show"] == ["GM-001"]


def test_relay_not_attached_without_url(queue_engine):
    assert attach_event_relay(queue_engine.event_bus, Settings(EVENTS_REDIS_URL="")) is None
