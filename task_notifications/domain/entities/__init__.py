"""Domain entities exposed by the application."""

from .notification import (
    UNREAD_STATUSES,
    Notification,
    NotificationPage,
    NotificationStats,
    NotificationStatus,
    NotificationType,
)

__all__ = [
    "Notification",
    "NotificationPage",
    "NotificationStats",
    "NotificationStatus",
    "NotificationType",
    "UNREAD_STATUSES",
]
