from .notification import (
    NotificationCreate,
    NotificationPageRead,
    NotificationRead,
    NotificationStatsRead,
    OperationResult,
)

__all__ = [
    "NotificationCreate",
    "NotificationPageRead",
    "NotificationRead",
    "NotificationStatsRead",
    "OperationResult",
]
