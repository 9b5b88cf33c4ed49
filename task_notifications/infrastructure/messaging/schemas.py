"""Pydantic models describing event payloads exchanged over the broker.

Upstream producers emit camelCase JSON; the models accept both camelCase and
snake_case and serialize back to camelCase.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventPayload(BaseModel):
    """Base class for all event payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="allow",
    )

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class TaskCreatedEvent(EventPayload):
    task_id: str
    title: str
    description: str | None = None
    assigned_users: list[str] = Field(default_factory=list)
    created_by: str
    created_by_username: str | None = None
    priority: str | None = None
    status: str | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None


class TaskUpdatedEvent(EventPayload):
    task_id: str
    title: str
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    assigned_users: list[str] = Field(default_factory=list)
    updated_by: str
    updated_by_username: str | None = None
    changes: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


class TaskStatusChangedEvent(TaskUpdatedEvent):
    old_status: str | None = None
    new_status: str | None = None

    def status_change(self) -> tuple[str | None, str | None] | None:
        """Return ``(from, to)`` when the event carries a status change."""

        change = self.changes.get("status")
        if isinstance(change, dict):
            return change.get("from"), change.get("to")
        if self.old_status is not None or self.new_status is not None:
            return self.old_status, self.new_status
        return None


class TaskAssignedEvent(EventPayload):
    task_id: str
    title: str
    assigned_to: str
    assigned_by: str
    assigned_by_username: str | None = None
    assigned_at: datetime | None = None


class TaskDeletedEvent(EventPayload):
    task_id: str
    title: str
    assigned_users: list[str] = Field(default_factory=list)
    deleted_by: str
    deleted_by_username: str | None = None
    deleted_at: datetime | None = None


class CommentAddedEvent(EventPayload):
    task_id: str
    task_title: str
    comment_id: str
    content: str
    author_id: str
    author_username: str | None = None
    participant_users: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class CommentUpdatedEvent(CommentAddedEvent):
    updated_at: datetime | None = None


class CommentDeletedEvent(EventPayload):
    task_id: str
    task_title: str
    comment_id: str
    author_id: str
    author_username: str | None = None
    participant_users: list[str] = Field(default_factory=list)
    deleted_at: datetime | None = None


class UserAssignmentEvent(EventPayload):
    """Payload of ``user.assigned`` and ``user.unassigned``."""

    user_id: str
    task_id: str
    assigned_by: str | None = None
    unassigned_by: str | None = None
    assigned_at: datetime | None = None
    unassigned_at: datetime | None = None

    @property
    def actor_id(self) -> str | None:
        return self.assigned_by or self.unassigned_by


class UserRegisteredEvent(EventPayload):
    user_id: str
    email: str
    username: str
    created_at: datetime | None = None


class UserLoggedInEvent(EventPayload):
    user_id: str
    email: str
    username: str
    login_at: datetime | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class UserUpdatedEvent(EventPayload):
    user_id: str
    email: str
    username: str
    updated_by: str
    changes: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


class PasswordChangedEvent(EventPayload):
    user_id: str
    email: str
    username: str
    changed_at: datetime | None = None
    ip_address: str | None = None


__all__ = [
    "CommentAddedEvent",
    "CommentDeletedEvent",
    "CommentUpdatedEvent",
    "EventPayload",
    "PasswordChangedEvent",
    "TaskAssignedEvent",
    "TaskCreatedEvent",
    "TaskDeletedEvent",
    "TaskStatusChangedEvent",
    "TaskUpdatedEvent",
    "UserAssignmentEvent",
    "UserLoggedInEvent",
    "UserRegisteredEvent",
    "UserUpdatedEvent",
]
