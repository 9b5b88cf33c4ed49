"""Tests for the event consumer run loop and per-message outcomes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import anyio
import pytest

from task_notifications.config import Settings
from task_notifications.infrastructure.messaging import (
    ConsumerState,
    EventConsumer,
    MessageOutcome,
    encode_event,
)
from task_notifications.infrastructure.repositories import NotificationRepository

pytestmark = pytest.mark.anyio


@dataclass
class FakeRecord:
    topic: str
    value: bytes | None
    headers: list[tuple[str, bytes]]
    key: bytes | None = None
    partition: int = 0


class FakeKafkaConsumer:
    """Replays a fixed list of records, then reports it is exhausted."""

    def __init__(self, records: list[FakeRecord], *, fail_start: bool = False) -> None:
        self.records = list(records)
        self.fail_start = fail_start
        self.topics: tuple[str, ...] = ()
        self.options: dict[str, Any] = {}
        self.started = 0
        self.stopped = 0
        self.exhausted = anyio.Event()

    def __call__(self, *topics: str, **options: Any) -> "FakeKafkaConsumer":
        self.topics = topics
        self.options = options
        return self

    async def start(self) -> None:
        self.started += 1
        if self.fail_start:
            raise ConnectionError("broker unreachable")

    async def stop(self) -> None:
        self.stopped += 1

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self.records:
            yield record
        self.exhausted.set()


class RecordingDispatcher:
    def __init__(self, *, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.seen: list[Any] = []

    async def dispatch(self, envelope) -> bool:
        self.seen.append(envelope)
        if envelope.payload.get("taskId") in self.fail_on:
            raise RuntimeError("handler exploded")
        return True


def _settings(**overrides: Any) -> Settings:
    values = {
        "kafka_retries": 0,
        "kafka_initial_retry_ms": 1,
        "kafka_connection_timeout_ms": 1000,
    }
    values.update(overrides)
    return Settings(**values)


def _record(topic: str, event_type: str, payload: dict[str, Any]) -> FakeRecord:
    message = encode_event(topic, event_type, payload, source="tasks-service")
    return FakeRecord(topic=topic, value=message.value, headers=message.headers, key=message.key)


def _task_created(task_id: str = "t-1") -> dict[str, Any]:
    return {
        "taskId": task_id,
        "title": "Ship it",
        "assignedUsers": ["A", "B"],
        "createdBy": "A",
        "createdByUsername": "alice",
    }


async def test_malformed_message_is_dropped_every_time(dispatcher, session_factory):
    consumer = EventConsumer(dispatcher, _settings())

    for _ in range(2):
        outcome = await consumer.handle_message("task-events", b"{broken", [])
        assert outcome is MessageOutcome.DROPPED_MALFORMED

    session = session_factory()
    try:
        assert NotificationRepository(session).count_by_status("B") == 0
    finally:
        session.close()
    assert consumer.dropped == 2
    assert consumer.processed == 0


async def test_invalid_payload_is_dropped_as_malformed(dispatcher):
    consumer = EventConsumer(dispatcher, _settings())
    record = _record("task-events", "task.created", {"taskId": "t-1"})

    outcome = await consumer.handle_message(record.topic, record.value, record.headers)

    assert outcome is MessageOutcome.DROPPED_MALFORMED


async def test_type_on_wrong_topic_is_dropped():
    recorder = RecordingDispatcher()
    consumer = EventConsumer(recorder, _settings())
    record = _record("comment-events", "task.created", _task_created())

    outcome = await consumer.handle_message(record.topic, record.value, record.headers)

    assert outcome is MessageOutcome.DROPPED_MISMATCH
    assert recorder.seen == []


async def test_handler_failure_does_not_stop_processing():
    recorder = RecordingDispatcher(fail_on={"t-bad"})
    consumer = EventConsumer(recorder, _settings())
    bad = _record("task-events", "task.created", _task_created("t-bad"))
    good = _record("task-events", "task.created", _task_created("t-good"))

    assert await consumer.handle_message(bad.topic, bad.value, bad.headers) is MessageOutcome.FAILED
    assert (
        await consumer.handle_message(good.topic, good.value, good.headers)
        is MessageOutcome.DISPATCHED
    )
    assert consumer.failed == 1
    assert consumer.processed == 1


async def test_unknown_type_is_ignored(dispatcher):
    consumer = EventConsumer(dispatcher, _settings())
    value = json.dumps({"type": "task.archived", "taskId": "t-1"}).encode()

    outcome = await consumer.handle_message("task-events", value, [])

    assert outcome is MessageOutcome.IGNORED


async def test_run_loop_dispatches_records(dispatcher, session_factory):
    fake = FakeKafkaConsumer(
        [
            FakeRecord(topic="task-events", value=b"not json", headers=[]),
            _record("task-events", "task.created", _task_created()),
        ]
    )
    consumer = EventConsumer(dispatcher, _settings(), consumer_factory=fake)

    assert await consumer.start() is True
    with anyio.fail_after(5):
        await fake.exhausted.wait()

    assert fake.topics == ("task-events", "comment-events", "user-events")
    assert fake.options["group_id"] == "notifications-service-group"
    assert consumer.stats()["processed"] == 1
    assert consumer.stats()["dropped"] == 1

    session = session_factory()
    try:
        repository = NotificationRepository(session)
        assert repository.count_by_status("B") == 1
        assert repository.count_by_status("A") == 0
    finally:
        session.close()

    await consumer.stop()
    assert consumer.state is ConsumerState.DISCONNECTED
    assert fake.stopped == 1


async def test_unreachable_broker_leaves_consumer_disconnected(dispatcher):
    fake = FakeKafkaConsumer([], fail_start=True)
    consumer = EventConsumer(dispatcher, _settings(kafka_retries=2), consumer_factory=fake)

    assert await consumer.start() is False

    assert consumer.state is ConsumerState.DISCONNECTED
    assert fake.started == 3
    assert fake.stopped == 3
