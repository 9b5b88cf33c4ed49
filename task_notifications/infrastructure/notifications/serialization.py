"""Websocket payload representation of notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from task_notifications.domain.entities import Notification


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "status": notification.status.value,
        "task_id": notification.task_id,
        "task_title": notification.task_title,
        "triggered_by": notification.triggered_by,
        "triggered_by_username": notification.triggered_by_username,
        "created_at": _iso_or_none(notification.created_at),
        "read_at": _iso_or_none(notification.read_at),
        "sent_at": _iso_or_none(notification.sent_at),
    }


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


__all__ = ["serialize_notification"]
