"""Realtime notification helpers for the infrastructure layer."""

from .gateway import (
    EVENT_BROADCAST,
    EVENT_CONNECTED,
    EVENT_NOTIFICATION,
    EVENT_TASK_NOTIFICATION,
    NotificationsGateway,
    notifications_gateway,
)
from .registry import ConnectionRegistry
from .serialization import serialize_notification

__all__ = [
    "ConnectionRegistry",
    "EVENT_BROADCAST",
    "EVENT_CONNECTED",
    "EVENT_NOTIFICATION",
    "EVENT_TASK_NOTIFICATION",
    "NotificationsGateway",
    "notifications_gateway",
    "serialize_notification",
]
