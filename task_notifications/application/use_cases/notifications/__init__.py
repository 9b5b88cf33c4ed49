"""Public helpers for turning domain events into notifications."""

from .dispatch import EventDispatcher
from .fan_out import (
    COMMENT_PREVIEW_LENGTH,
    NotificationService,
    comment_preview,
    select_recipients,
)

__all__ = [
    "COMMENT_PREVIEW_LENGTH",
    "EventDispatcher",
    "NotificationService",
    "comment_preview",
    "select_recipients",
]
