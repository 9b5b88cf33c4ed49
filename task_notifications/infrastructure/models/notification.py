"""SQLAlchemy model for persisted notifications."""

from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text

from task_notifications.domain.entities import NotificationStatus, NotificationType
from task_notifications.infrastructure.database import Base
from task_notifications.utils import now_in_app_naive_datetime


def _generate_id() -> str:
    return str(uuid4())


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_status", "user_id", "status"),)

    id = Column(String(36), primary_key=True, default=_generate_id)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(
        Enum(
            NotificationType,
            name="notification_type",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    status = Column(
        Enum(
            NotificationStatus,
            name="notification_status",
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
        default=NotificationStatus.PENDING,
    )
    task_id = Column(String(64), nullable=True, index=True)
    task_title = Column(String(255), nullable=True)
    triggered_by = Column(String(64), nullable=True)
    triggered_by_username = Column(String(255), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )
    read_at = Column(DateTime(), nullable=True)
    sent_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationModel"]
