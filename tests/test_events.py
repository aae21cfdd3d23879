import json

import pytest

from healthqueue.errors import NoPatientsWaiting
from healthqueue.services.event_bus import DomainEvent, EventBus, RedisEventRelay
from conftest import START


def test_events_published_after_commit(queue_engine, registration):
    seen = []

    def subscriber(event):
        # The change is already visible to a fresh reader.
        seen.append((event.name, queue_engine.get_patient(event.entity_id).status.value))

    queue_engine.event_bus.subscribe(subscriber)
    patient = queue_engine.register_patient(registration())
    queue_engine.call_next("general_medicine")
    assert seen == [("patient.registered", "waiting"), ("patient.called", "called")]
    assert patient.token_number == "GM-001"


def test_failed_operation_publishes_nothing(queue_engine):
    seen = []
    queue_engine.event_bus.subscribe(seen.append)
    with pytest.raises(NoPatientsWaiting):
        queue_engine.call_next("pediatrics")
    assert seen == []


def test_failing_subscriber_does_not_block_others(queue_engine, registration, caplog):
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    queue_engine.event_bus.subscribe(broken)
    queue_engine.event_bus.subscribe(seen.append)
    patient = queue_engine.register_patient(registration())
    assert [e.name for e in seen] == ["patient.registered"]
    assert "Event subscriber failed" in caplog.text
    assert queue_engine.get_patient(patient.id).token_number == "GM-001"


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    event = DomainEvent(name="store.changed", entity_type="Patient", entity_id="x", occurred_at=START)
    bus.publish(event)
    unsubscribe()
    bus.publish(event)
    assert seen == [event]


def test_reuse_event_and_external_change(queue_engine, registration):
    names = []
    queue_engine.event_bus.subscribe(lambda e: names.append(e.name))
    patient = queue_engine.register_patient(registration())
    receipt = queue_engine.complete_consultation(patient.id).receipt
    queue_engine.scan_receipt(receipt.id)
    queue_engine.scan_receipt(receipt.id)
    queue_engine.notify_external_change("Patient", patient.id)
    assert names.count("receipt.reuse_detected") == 1
    assert names[-1] == "store.changed"


def test_redis_relay_publishes_json():
    class FakeRedis:
        def __init__(self):
            self.published = []

        def publish(self, channel, message):
            self.published.append((channel, message))

    client = FakeRedis()
    relay = RedisEventRelay(client, "healthqueue.events")
    relay(DomainEvent(name="patient.called", entity_type="Patient", entity_id="p1", occurred_at=START,
                      payload={"token": "GM-001"}))
    channel, message = client.published[0]
    assert channel == "healthqueue.events"
    assert json.loads(message) == {
        "name": "patient.called",
        "entity_type": "Patient",
        "entity_id": "p1",
        "occurred_at": START.isoformat(),
        "payload": {"token": "GM-001"},
    }
