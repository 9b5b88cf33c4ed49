"""Best-effort publication of domain events to the broker."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from aiokafka import AIOKafkaProducer

from task_notifications.config import Settings, get_settings
from task_notifications.domain.events import EventType, Topic
from task_notifications.utils.background import run_in_background

from .envelope import encode_event
from .retry import BrokerConnectionError, RetryPolicy, connect_with_retry
from .schemas import (
    CommentAddedEvent,
    CommentDeletedEvent,
    CommentUpdatedEvent,
    EventPayload,
    PasswordChangedEvent,
    TaskAssignedEvent,
    TaskCreatedEvent,
    TaskDeletedEvent,
    TaskUpdatedEvent,
    UserLoggedInEvent,
    UserRegisteredEvent,
    UserUpdatedEvent,
)

logger = logging.getLogger(__name__)


class EventPublisher:
    """Serialize domain events and hand them to a Kafka producer.

    Publishing is fire-and-forget: failures are logged and the event is lost.
    There is no outbox and no retry once the connection is established, so a
    successful request upstream does not guarantee a notification downstream.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        producer_factory: Callable[..., Any] = AIOKafkaProducer,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory
        self._producer: Any | None = None

    @property
    def is_connected(self) -> bool:
        return self._producer is not None

    async def start(self) -> bool:
        """Connect the producer; return whether it succeeded."""

        settings = self._settings
        policy = RetryPolicy(
            retries=settings.publisher_retries,
            initial_retry_ms=settings.publisher_initial_retry_ms,
            max_retry_ms=settings.publisher_max_retry_ms,
            connection_timeout_ms=settings.kafka_connection_timeout_ms,
        )
        try:
            await connect_with_retry(self._connect_once, policy, description="Kafka producer")
        except BrokerConnectionError as exc:
            logger.error("Failed to connect Kafka producer: %s", exc)
            return False
        logger.info("Kafka producer connected successfully")
        return True

    async def stop(self) -> None:
        producer, self._producer = self._producer, None
        if producer is None:
            return
        try:
            await producer.stop()
        except Exception as exc:
            logger.error("Error disconnecting Kafka producer: %s", exc)
        else:
            logger.info("Kafka producer disconnected")

    async def publish(
        self,
        topic: Topic | str,
        event_type: EventType | str,
        payload: Mapping[str, Any],
    ) -> bool:
        """Send one event; return ``False`` instead of raising on failure."""

        topic_name = topic.value if isinstance(topic, Topic) else topic
        type_name = event_type.value if isinstance(event_type, EventType) else event_type
        producer = self._producer
        if producer is None:
            logger.error("Event %s dropped: Kafka producer is not connected", type_name)
            return False

        try:
            message = encode_event(
                topic_name, type_name, payload, source=self._settings.event_source
            )
            await producer.send_and_wait(
                message.topic,
                value=message.value,
                key=message.key,
                headers=message.headers,
            )
        except Exception as exc:
            logger.error("Failed to publish event %s: %s", type_name, exc)
            return False

        logger.info("Event published: %s to topic %s", type_name, topic_name)
        return True

    def publish_in_background(
        self,
        topic: Topic | str,
        event_type: EventType | str,
        payload: Mapping[str, Any],
    ) -> None:
        """Schedule :meth:`publish` without waiting for the outcome."""

        run_in_background(self.publish, topic, event_type, dict(payload))

    async def publish_task_created(self, event: TaskCreatedEvent) -> bool:
        return await self._publish_payload(Topic.TASK_EVENTS, EventType.TASK_CREATED, event)

    async def publish_task_updated(self, event: TaskUpdatedEvent) -> bool:
        return await self._publish_payload(Topic.TASK_EVENTS, EventType.TASK_UPDATED, event)

    async def publish_task_assigned(self, event: TaskAssignedEvent) -> bool:
        return await self._publish_payload(Topic.TASK_EVENTS, EventType.TASK_ASSIGNED, event)

    async def publish_task_status_changed(
        self,
        event: TaskUpdatedEvent,
        *,
        old_status: str,
        new_status: str,
    ) -> bool:
        payload = event.to_message()
        payload.update(
            {
                "oldStatus": old_status,
                "newStatus": new_status,
                "changes": {
                    **payload.get("changes", {}),
                    "status": {"from": old_status, "to": new_status},
                },
            }
        )
        return await self.publish(Topic.TASK_EVENTS, EventType.TASK_STATUS_CHANGED, payload)

    async def publish_task_deleted(self, event: TaskDeletedEvent) -> bool:
        return await self._publish_payload(Topic.TASK_EVENTS, EventType.TASK_DELETED, event)

    async def publish_comment_added(self, event: CommentAddedEvent) -> bool:
        return await self._publish_payload(Topic.COMMENT_EVENTS, EventType.COMMENT_ADDED, event)

    async def publish_comment_updated(self, event: CommentUpdatedEvent) -> bool:
        return await self._publish_payload(
            Topic.COMMENT_EVENTS, EventType.COMMENT_UPDATED, event
        )

    async def publish_comment_deleted(self, event: CommentDeletedEvent) -> bool:
        return await self._publish_payload(
            Topic.COMMENT_EVENTS, EventType.COMMENT_DELETED, event
        )

    async def publish_user_registered(self, event: UserRegisteredEvent) -> bool:
        return await self._publish_payload(Topic.USER_EVENTS, EventType.USER_REGISTERED, event)

    async def publish_user_logged_in(self, event: UserLoggedInEvent) -> bool:
        return await self._publish_payload(Topic.USER_EVENTS, EventType.USER_LOGGED_IN, event)

    async def publish_user_updated(self, event: UserUpdatedEvent) -> bool:
        return await self._publish_payload(Topic.USER_EVENTS, EventType.USER_UPDATED, event)

    async def publish_password_changed(self, event: PasswordChangedEvent) -> bool:
        return await self._publish_payload(
            Topic.USER_EVENTS, EventType.USER_PASSWORD_CHANGED, event
        )

    async def _publish_payload(
        self, topic: Topic, event_type: EventType, event: EventPayload
    ) -> bool:
        return await self.publish(topic, event_type, event.to_message())

    async def _connect_once(self) -> None:
        settings = self._settings
        producer = self._producer_factory(
            bootstrap_servers=settings.bootstrap_servers,
            client_id=settings.event_source,
            request_timeout_ms=settings.kafka_request_timeout_ms,
            retry_backoff_ms=settings.publisher_initial_retry_ms,
            enable_idempotence=True,
        )
        try:
            await producer.start()
        except Exception:
            await _stop_quietly(producer)
            raise
        self._producer = producer


async def _stop_quietly(client: Any) -> None:
    try:
        await client.stop()
    except Exception as exc:
        logger.debug("Ignoring error while closing a failed broker client: %s", exc)


__all__ = ["EventPublisher"]
