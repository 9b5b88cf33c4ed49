"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    """Kinds of notification produced by the fan-out."""

    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_ASSIGNED = "task_assigned"
    TASK_STATUS_CHANGED = "task_status_changed"
    COMMENT_ADDED = "comment_added"


class NotificationStatus(str, Enum):
    """Delivery lifecycle of a notification.

    The lifecycle only moves forward: ``pending -> sent -> read``. A pending
    notification may also be read directly when the user pulls it before any
    live delivery happened. ``failed`` is terminal.
    """

    PENDING = "pending"
    SENT = "sent"
    READ = "read"
    FAILED = "failed"

    def allowed_predecessors(self) -> tuple["NotificationStatus", ...]:
        """Return the statuses a notification may hold before moving to ``self``."""

        return _PREDECESSORS[self]


_PREDECESSORS: dict[NotificationStatus, tuple[NotificationStatus, ...]] = {
    NotificationStatus.PENDING: (),
    NotificationStatus.SENT: (NotificationStatus.PENDING,),
    NotificationStatus.READ: (NotificationStatus.PENDING, NotificationStatus.SENT),
    NotificationStatus.FAILED: (NotificationStatus.PENDING,),
}

UNREAD_STATUSES: tuple[NotificationStatus, ...] = (
    NotificationStatus.PENDING,
    NotificationStatus.SENT,
)


@dataclass
class Notification:
    """Information message delivered to a specific user."""

    id: str | None
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    status: NotificationStatus = NotificationStatus.PENDING
    task_id: str | None = None
    task_title: str | None = None
    triggered_by: str | None = None
    triggered_by_username: str | None = None
    created_at: datetime | None = None
    read_at: datetime | None = None
    sent_at: datetime | None = None

    @property
    def is_unread(self) -> bool:
        return self.status in UNREAD_STATUSES


@dataclass(frozen=True)
class NotificationStats:
    """Per-user notification counters."""

    total: int
    unread: int
    read: int


@dataclass
class NotificationPage:
    """A page of notifications plus the pagination metadata."""

    notifications: list[Notification] = field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0


__all__ = [
    "Notification",
    "NotificationPage",
    "NotificationStats",
    "NotificationStatus",
    "NotificationType",
    "UNREAD_STATUSES",
]
