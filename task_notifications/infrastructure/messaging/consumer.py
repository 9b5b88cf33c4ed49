"""Kafka consumer feeding domain events to the dispatcher."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Iterable, Protocol

from aiokafka import AIOKafkaConsumer

from task_notifications.config import Settings, get_settings
from task_notifications.domain.events import EventEnvelope, EventType, Topic

from .envelope import EventDecodeError, decode_event
from .retry import BrokerConnectionError, RetryPolicy, connect_with_retry

logger = logging.getLogger(__name__)

DEFAULT_TOPICS: tuple[Topic, ...] = (
    Topic.TASK_EVENTS,
    Topic.COMMENT_EVENTS,
    Topic.USER_EVENTS,
)


class ConsumerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    CONSUMING = "consuming"


class MessageOutcome(str, Enum):
    """What happened to a single inbound message."""

    DISPATCHED = "dispatched"
    IGNORED = "ignored"
    DROPPED_MALFORMED = "dropped_malformed"
    DROPPED_MISMATCH = "dropped_mismatch"
    FAILED = "failed"


class EnvelopeDispatcher(Protocol):
    async def dispatch(self, envelope: EventEnvelope) -> bool:
        """Handle ``envelope``; return ``False`` when it was ignored."""


class EventConsumer:
    """Subscribe to the event topics and dispatch each message.

    Every message is processed at most once from this service's point of view:
    malformed messages and handler failures are logged and the loop moves on,
    nothing is retried or dead-lettered.
    """

    def __init__(
        self,
        dispatcher: EnvelopeDispatcher,
        settings: Settings | None = None,
        *,
        consumer_factory: Callable[..., Any] = AIOKafkaConsumer,
        topics: Iterable[Topic | str] = DEFAULT_TOPICS,
    ) -> None:
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()
        self._consumer_factory = consumer_factory
        self._topics = [topic.value if isinstance(topic, Topic) else topic for topic in topics]
        self._consumer: Any | None = None
        self._task: asyncio.Task | None = None
        self._state = ConsumerState.DISCONNECTED
        self.processed = 0
        self.dropped = 0
        self.failed = 0

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    async def start(self) -> bool:
        """Connect, subscribe and start consuming in a background task."""

        if self._state is not ConsumerState.DISCONNECTED:
            return True

        settings = self._settings
        policy = RetryPolicy(
            retries=settings.kafka_retries,
            initial_retry_ms=settings.kafka_initial_retry_ms,
            connection_timeout_ms=settings.kafka_connection_timeout_ms,
        )
        self._state = ConsumerState.CONNECTING
        try:
            await connect_with_retry(self._connect_once, policy, description="Kafka consumer")
        except BrokerConnectionError as exc:
            self._state = ConsumerState.DISCONNECTED
            logger.error("Failed to initialize Kafka consumer: %s", exc)
            return False

        self._state = ConsumerState.SUBSCRIBED
        logger.info("Kafka consumer subscribed to %s", ", ".join(self._topics))
        self._task = asyncio.get_running_loop().create_task(self._consume())
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            try:
                await consumer.stop()
            except Exception as exc:
                logger.error("Error disconnecting Kafka consumer: %s", exc)
            else:
                logger.info("Kafka consumer disconnected")
        self._state = ConsumerState.DISCONNECTED

    async def handle_message(
        self,
        topic: str,
        value: bytes | str | None,
        headers: Any = None,
        *,
        key: bytes | str | None = None,
        partition: int | None = None,
    ) -> MessageOutcome:
        """Decode one raw message and hand it to the dispatcher."""

        try:
            envelope = decode_event(topic, value, headers, key=key)
        except EventDecodeError as exc:
            self.dropped += 1
            logger.warning("Dropping malformed message from topic %s: %s", topic, exc)
            return MessageOutcome.DROPPED_MALFORMED

        event_type = envelope.event_type
        logger.info(
            "Processing message: topic=%s, partition=%s, eventType=%s",
            topic,
            partition,
            event_type.value,
        )

        if event_type is not EventType.UNKNOWN and event_type.topic != Topic.parse(topic):
            self.dropped += 1
            logger.warning("Event type %s is not expected on topic %s", event_type.value, topic)
            return MessageOutcome.DROPPED_MISMATCH

        try:
            handled = await self._dispatcher.dispatch(envelope)
        except EventDecodeError as exc:
            self.dropped += 1
            logger.warning(
                "Dropping %s event with invalid payload: %s", event_type.value, exc
            )
            return MessageOutcome.DROPPED_MALFORMED
        except Exception:
            self.failed += 1
            logger.exception("Error processing %s message from topic %s", event_type.value, topic)
            return MessageOutcome.FAILED

        self.processed += 1
        return MessageOutcome.DISPATCHED if handled else MessageOutcome.IGNORED

    def stats(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "topics": self.topics,
            "processed": self.processed,
            "dropped": self.dropped,
            "failed": self.failed,
        }

    async def _connect_once(self) -> None:
        settings = self._settings
        consumer = self._consumer_factory(
            *self._topics,
            bootstrap_servers=settings.bootstrap_servers,
            client_id=settings.kafka_client_id,
            group_id=settings.kafka_group_id,
            session_timeout_ms=settings.kafka_session_timeout_ms,
            heartbeat_interval_ms=settings.kafka_heartbeat_interval_ms,
            request_timeout_ms=settings.kafka_request_timeout_ms,
            retry_backoff_ms=settings.kafka_initial_retry_ms,
            auto_offset_reset="latest",
        )
        try:
            await consumer.start()
        except Exception:
            try:
                await consumer.stop()
            except Exception as exc:
                logger.debug("Ignoring error while closing a failed consumer: %s", exc)
            raise
        self._consumer = consumer

    async def _consume(self) -> None:
        consumer = self._consumer
        if consumer is None:
            return
        self._state = ConsumerState.CONSUMING
        logger.info("Kafka consumer started and listening to topics")
        try:
            async for message in consumer:
                await self.handle_message(
                    message.topic,
                    message.value,
                    message.headers,
                    key=message.key,
                    partition=message.partition,
                )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Kafka consume loop stopped unexpectedly")
        if self._state is ConsumerState.CONSUMING:
            self._state = ConsumerState.DISCONNECTED


__all__ = [
    "ConsumerState",
    "DEFAULT_TOPICS",
    "EnvelopeDispatcher",
    "EventConsumer",
    "MessageOutcome",
]
