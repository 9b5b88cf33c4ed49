"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from task_notifications.domain.entities import NotificationStatus, NotificationType


class NotificationCreate(BaseModel):
    """Payload used to create a notification directly."""

    user_id: str = Field(..., min_length=1)
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    data: dict[str, Any] | None = None
    task_id: str | None = None
    task_title: str | None = None
    triggered_by: str | None = None
    triggered_by_username: str | None = None


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    status: NotificationStatus
    task_id: str | None = None
    task_title: str | None = None
    triggered_by: str | None = None
    triggered_by_username: str | None = None
    created_at: datetime
    read_at: datetime | None = None
    sent_at: datetime | None = None


class NotificationPageRead(BaseModel):
    notifications: list[NotificationRead]
    total: int
    page: int
    total_pages: int


class NotificationStatsRead(BaseModel):
    total: int
    unread: int
    read: int


class OperationResult(BaseModel):
    """Outcome of a state-changing request."""

    success: bool
    message: str
    count: int | None = None


__all__ = [
    "NotificationCreate",
    "NotificationPageRead",
    "NotificationRead",
    "NotificationStatsRead",
    "OperationResult",
]
