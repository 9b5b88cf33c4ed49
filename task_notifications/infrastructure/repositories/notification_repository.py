"""Persistence helpers for notification entities."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from task_notifications.domain.entities import (
    UNREAD_STATUSES,
    Notification,
    NotificationPage,
    NotificationStats,
    NotificationStatus,
)
from task_notifications.infrastructure.models import NotificationModel
from task_notifications.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_many(self, notifications: Iterable[Notification]) -> list[Notification]:
        """Persist ``notifications`` in a single transaction."""

        models = []
        for notification in notifications:
            model = NotificationModel()
            self._apply_entity_to_model(model, notification)
            models.append(model)
        if not models:
            return []
        self.session.add_all(models)
        self.session.commit()
        for model in models:
            self.session.refresh(model)
        return [self._to_entity(model) for model in models]

    def create(self, notification: Notification) -> Notification:
        return self.create_many([notification])[0]

    def get(self, notification_id: str, *, user_id: str | None = None) -> Notification | None:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.id == notification_id
        )
        if user_id is not None:
            query = query.filter(NotificationModel.user_id == user_id)
        model = query.one_or_none()
        return self._to_entity(model) if model is not None else None

    def list_for_user(
        self,
        user_id: str,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        if page < 1:
            raise ValueError("page must be greater than or equal to 1")
        if limit < 1:
            raise ValueError("limit must be greater than or equal to 1")

        base = self.session.query(NotificationModel).filter(
            NotificationModel.user_id == user_id
        )
        total = base.count()
        models = (
            base.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return NotificationPage(
            notifications=[self._to_entity(model) for model in models],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )

    def list_unread_for_user(
        self, user_id: str, *, limit: int | None = None
    ) -> Sequence[Notification]:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.status.in_(UNREAD_STATUSES))
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def count_by_status(
        self, user_id: str, statuses: Iterable[NotificationStatus] | None = None
    ) -> int:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.user_id == user_id
        )
        if statuses is not None:
            query = query.filter(NotificationModel.status.in_(list(statuses)))
        return query.count()

    def stats_for_user(self, user_id: str) -> NotificationStats:
        total = self.count_by_status(user_id)
        unread = self.count_by_status(user_id, UNREAD_STATUSES)
        return NotificationStats(total=total, unread=unread, read=total - unread)

    def update_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        *,
        user_id: str | None = None,
    ) -> bool:
        """Move a notification forward to ``status``.

        The update only applies when the stored status is an allowed predecessor,
        so a notification never goes back to an earlier state. Returns whether a
        row changed.
        """

        return self._transition(notification_id, status, user_id=user_id) is not None

    def mark_sent(self, notification_id: str) -> datetime | None:
        """Mark ``notification_id`` as sent and return the stored ``sent_at``.

        Returns ``None`` when the notification was no longer pending.
        """

        return self._transition(notification_id, NotificationStatus.SENT)

    def mark_read(self, notification_id: str, *, user_id: str) -> bool:
        return self.update_status(
            notification_id, NotificationStatus.READ, user_id=user_id
        )

    def _transition(
        self,
        notification_id: str,
        status: NotificationStatus,
        *,
        user_id: str | None = None,
    ) -> datetime | None:
        predecessors = status.allowed_predecessors()
        if not predecessors:
            raise ValueError(f"Notifications cannot transition to '{status.value}'")

        query = self.session.query(NotificationModel).filter(
            NotificationModel.id == notification_id,
            NotificationModel.status.in_(predecessors),
        )
        if user_id is not None:
            query = query.filter(NotificationModel.user_id == user_id)

        now = ensure_app_naive_datetime(now_in_app_timezone())
        affected = query.update(
            self._status_values(status, now), synchronize_session=False
        )
        self.session.commit()
        return ensure_app_timezone(now) if affected else None

    def mark_all_read(self, user_id: str) -> int:
        affected = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.user_id == user_id,
                NotificationModel.status.in_(UNREAD_STATUSES),
            )
            .update(
                self._status_values(
                    NotificationStatus.READ,
                    ensure_app_naive_datetime(now_in_app_timezone()),
                ),
                synchronize_session=False,
            )
        )
        self.session.commit()
        return affected

    def delete(self, notification_id: str, *, user_id: str) -> bool:
        affected = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return affected > 0

    @staticmethod
    def _status_values(status: NotificationStatus, now: datetime) -> dict:
        values: dict = {NotificationModel.status: status, NotificationModel.updated_at: now}
        if status is NotificationStatus.SENT:
            values[NotificationModel.sent_at] = now
        elif status is NotificationStatus.READ:
            values[NotificationModel.read_at] = now
        return values

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        created_at = ensure_app_naive_datetime(
            notification.created_at or now_in_app_timezone()
        )
        if notification.id is not None:
            model.id = notification.id
        model.user_id = notification.user_id
        model.type = notification.type
        model.title = notification.title
        model.message = notification.message
        model.data = notification.data
        model.status = notification.status
        model.task_id = notification.task_id
        model.task_title = notification.task_title
        model.triggered_by = notification.triggered_by
        model.triggered_by_username = notification.triggered_by_username
        model.created_at = created_at
        model.updated_at = created_at
        model.read_at = ensure_app_naive_datetime(notification.read_at)
        model.sent_at = ensure_app_naive_datetime(notification.sent_at)

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            title=model.title,
            message=model.message,
            data=model.data,
            status=model.status,
            task_id=model.task_id,
            task_title=model.task_title,
            triggered_by=model.triggered_by,
            triggered_by_username=model.triggered_by_username,
            created_at=ensure_app_timezone(model.created_at),
            read_at=ensure_app_timezone(model.read_at),
            sent_at=ensure_app_timezone(model.sent_at),
        )


__all__ = ["NotificationRepository"]
