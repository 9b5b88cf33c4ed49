"""Domain events exchanged between the task-management services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Topic(str, Enum):
    """Broker topics carrying domain events."""

    TASK_EVENTS = "task-events"
    COMMENT_EVENTS = "comment-events"
    USER_EVENTS = "user-events"

    @classmethod
    def parse(cls, value: str) -> "Topic | None":
        try:
            return cls(value)
        except ValueError:
            return None


class EventType(str, Enum):
    """Closed set of event types known to the system.

    ``UNKNOWN`` stands for anything else seen on the wire so that dispatch can
    treat it as an explicit case.
    """

    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_ASSIGNED = "task.assigned"
    TASK_STATUS_CHANGED = "task.status_changed"
    TASK_DELETED = "task.deleted"
    COMMENT_ADDED = "comment.added"
    COMMENT_UPDATED = "comment.updated"
    COMMENT_DELETED = "comment.deleted"
    USER_REGISTERED = "user.registered"
    USER_LOGGED_IN = "user.logged_in"
    USER_UPDATED = "user.updated"
    USER_PASSWORD_CHANGED = "user.password_changed"
    USER_ASSIGNED = "user.assigned"
    USER_UNASSIGNED = "user.unassigned"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "EventType":
        """Return the member for ``value`` or ``UNKNOWN``; never raises."""

        if isinstance(value, EventType):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.strip())
        except ValueError:
            return cls.UNKNOWN

    @property
    def topic(self) -> Topic | None:
        """Topic on which events of this type travel."""

        return _TOPICS.get(self)


_TOPICS: dict[EventType, Topic] = {
    EventType.TASK_CREATED: Topic.TASK_EVENTS,
    EventType.TASK_UPDATED: Topic.TASK_EVENTS,
    EventType.TASK_ASSIGNED: Topic.TASK_EVENTS,
    EventType.TASK_STATUS_CHANGED: Topic.TASK_EVENTS,
    EventType.TASK_DELETED: Topic.TASK_EVENTS,
    EventType.COMMENT_ADDED: Topic.COMMENT_EVENTS,
    EventType.COMMENT_UPDATED: Topic.COMMENT_EVENTS,
    EventType.COMMENT_DELETED: Topic.COMMENT_EVENTS,
    EventType.USER_REGISTERED: Topic.USER_EVENTS,
    EventType.USER_LOGGED_IN: Topic.USER_EVENTS,
    EventType.USER_UPDATED: Topic.USER_EVENTS,
    EventType.USER_PASSWORD_CHANGED: Topic.USER_EVENTS,
    EventType.USER_ASSIGNED: Topic.USER_EVENTS,
    EventType.USER_UNASSIGNED: Topic.USER_EVENTS,
}


@dataclass
class EventEnvelope:
    """Event type, payload and timestamp as carried over the broker."""

    event_type: EventType
    payload: dict[str, Any]
    occurred_at: datetime
    topic: str | None = None
    key: str | None = None
    source: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


__all__ = ["EventEnvelope", "EventType", "Topic"]
