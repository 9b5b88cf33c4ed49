"""Route decoded events to the notification use cases."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping, TypeVar

from pydantic import ValidationError

from task_notifications.domain.events import EventEnvelope, EventType
from task_notifications.infrastructure.messaging.envelope import EventDecodeError
from task_notifications.infrastructure.messaging.schemas import (
    CommentAddedEvent,
    EventPayload,
    TaskAssignedEvent,
    TaskCreatedEvent,
    TaskStatusChangedEvent,
    TaskUpdatedEvent,
    UserAssignmentEvent,
)
from task_notifications.infrastructure.notifications import EVENT_TASK_NOTIFICATION

from .fan_out import NotificationService

logger = logging.getLogger(__name__)

Handler = Callable[[EventEnvelope], Awaitable[bool]]
P = TypeVar("P", bound=EventPayload)


def _parse(model: type[P], envelope: EventEnvelope) -> P:
    try:
        return model.model_validate(envelope.payload)
    except ValidationError as exc:
        raise EventDecodeError(
            f"Invalid {envelope.event_type.value} payload: {exc.error_count()} error(s)"
        ) from exc


class EventDispatcher:
    """Total mapping from :class:`EventType` to a handler.

    Every member has an entry: known events without a notification behaviour
    map to :meth:`_ignore`, ``UNKNOWN`` maps to :meth:`_unknown`. Handlers
    return ``False`` when the event was deliberately ignored.
    """

    def __init__(self, service: NotificationService) -> None:
        self._service = service
        self._handlers: dict[EventType, Handler] = {
            EventType.TASK_CREATED: self._task_created,
            EventType.TASK_UPDATED: self._task_updated,
            EventType.TASK_ASSIGNED: self._task_assigned,
            EventType.TASK_STATUS_CHANGED: self._task_status_changed,
            EventType.TASK_DELETED: self._ignore,
            EventType.COMMENT_ADDED: self._comment_added,
            EventType.COMMENT_UPDATED: self._ignore,
            EventType.COMMENT_DELETED: self._ignore,
            EventType.USER_REGISTERED: self._ignore,
            EventType.USER_LOGGED_IN: self._ignore,
            EventType.USER_UPDATED: self._ignore,
            EventType.USER_PASSWORD_CHANGED: self._ignore,
            EventType.USER_ASSIGNED: self._user_assignment,
            EventType.USER_UNASSIGNED: self._user_assignment,
            EventType.UNKNOWN: self._unknown,
        }
        missing = set(EventType) - set(self._handlers)
        if missing:
            raise RuntimeError(
                "No handler registered for: " + ", ".join(sorted(m.value for m in missing))
            )

    @property
    def handlers(self) -> Mapping[EventType, Handler]:
        return dict(self._handlers)

    async def dispatch(self, envelope: EventEnvelope) -> bool:
        return await self._handlers[envelope.event_type](envelope)

    async def _task_created(self, envelope: EventEnvelope) -> bool:
        event = _parse(TaskCreatedEvent, envelope)
        logger.info("Handling task created: %s", event.task_id)
        await self._service.notify_task_created(
            event.task_id,
            event.title,
            event.assigned_users,
            event.created_by,
            event.created_by_username,
        )
        return True

    async def _task_updated(self, envelope: EventEnvelope) -> bool:
        event = _parse(TaskUpdatedEvent, envelope)
        logger.info("Handling task updated: %s", event.task_id)
        await self._service.notify_task_updated(
            event.task_id,
            event.title,
            event.assigned_users,
            event.updated_by,
            event.updated_by_username,
            event.changes,
        )
        return True

    async def _task_assigned(self, envelope: EventEnvelope) -> bool:
        event = _parse(TaskAssignedEvent, envelope)
        logger.info("Handling task assigned: %s to %s", event.task_id, event.assigned_to)
        await self._service.notify_task_created(
            event.task_id,
            event.title,
            [event.assigned_to],
            event.assigned_by,
            event.assigned_by_username,
        )
        return True

    async def _task_status_changed(self, envelope: EventEnvelope) -> bool:
        event = _parse(TaskStatusChangedEvent, envelope)
        change = event.status_change()
        if change is None:
            logger.info("Task %s status event carries no status change", event.task_id)
            return False
        logger.info("Handling task status changed: %s", event.task_id)
        old_status, new_status = change
        await self._service.notify_task_status_changed(
            event.task_id,
            event.title,
            event.assigned_users,
            event.updated_by,
            event.updated_by_username,
            old_status,
            new_status,
        )
        return True

    async def _comment_added(self, envelope: EventEnvelope) -> bool:
        event = _parse(CommentAddedEvent, envelope)
        logger.info("Handling comment added: %s on task %s", event.comment_id, event.task_id)
        await self._service.notify_comment_added(
            event.task_id,
            event.task_title,
            event.participant_users,
            event.author_id,
            event.author_username,
            event.content,
        )
        return True

    async def _user_assignment(self, envelope: EventEnvelope) -> bool:
        event = _parse(UserAssignmentEvent, envelope)
        logger.info(
            "Handling %s: user %s on task %s",
            envelope.event_type.value,
            event.user_id,
            event.task_id,
        )
        await self._service.gateway.send_to_task_room(
            event.task_id,
            EVENT_TASK_NOTIFICATION,
            {
                "event": envelope.event_type.value,
                "task_id": event.task_id,
                "user_id": event.user_id,
                "actor_id": event.actor_id,
                "occurred_at": envelope.occurred_at.isoformat(),
            },
            exclude_user_id=event.actor_id,
        )
        return True

    async def _ignore(self, envelope: EventEnvelope) -> bool:
        logger.debug("No notification behaviour for %s events", envelope.event_type.value)
        return False

    async def _unknown(self, envelope: EventEnvelope) -> bool:
        logger.warning(
            "Unknown event type on topic %s: %r",
            envelope.topic,
            envelope.headers.get("eventType") or envelope.payload.get("type"),
        )
        return False


__all__ = ["EventDispatcher"]
