"""Create per-participant notifications and push them to online users."""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, Iterable, Sequence, TypeVar

from anyio import to_thread
from sqlalchemy.orm import Session

from task_notifications.domain.entities import (
    Notification,
    NotificationPage,
    NotificationStats,
    NotificationStatus,
    NotificationType,
)
from task_notifications.infrastructure.notifications import (
    EVENT_NOTIFICATION,
    NotificationsGateway,
    serialize_notification,
)
from task_notifications.infrastructure.repositories import NotificationRepository
from task_notifications.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 100
ELLIPSIS = "..."
_UNKNOWN_ACTOR = "Someone"

T = TypeVar("T")


def select_recipients(participant_ids: Iterable[str | None], actor_id: str | None) -> list[str]:
    """Return the participants to notify: no actor, no blanks, no duplicates."""

    recipients: list[str] = []
    for participant_id in participant_ids:
        if not participant_id or participant_id == actor_id or participant_id in recipients:
            continue
        recipients.append(participant_id)
    return recipients


def comment_preview(content: str) -> str:
    if len(content) <= COMMENT_PREVIEW_LENGTH:
        return content
    return content[:COMMENT_PREVIEW_LENGTH] + ELLIPSIS


class NotificationService:
    """Fan domain events out into notifications and deliver them live.

    Database work runs in worker threads so the event loop is never blocked.
    The batch for one event is written in a single transaction; live delivery
    then happens row by row and never raises.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: NotificationsGateway,
    ) -> None:
        self._session_factory = session_factory
        self._gateway = gateway

    @property
    def gateway(self) -> NotificationsGateway:
        return self._gateway

    async def create_notification(self, draft: Notification) -> Notification:
        saved = await self.create_many([draft])
        return saved[0]

    async def create_many(self, drafts: Sequence[Notification]) -> list[Notification]:
        """Persist ``drafts`` together, then try live delivery for each row."""

        if not drafts:
            return []
        saved = await self._run(lambda repository: repository.create_many(drafts))
        logger.info("%s notification(s) created", len(saved))

        for notification in saved:
            try:
                await self.deliver(notification)
            except Exception:
                logger.exception(
                    "Live delivery of notification %s to user %s failed",
                    notification.id,
                    notification.user_id,
                )
        return saved

    async def deliver(self, notification: Notification) -> bool:
        """Push ``notification`` to its user when online and mark it ``sent``.

        Offline users keep the notification ``pending`` until they fetch it.
        """

        if notification.id is None:
            raise ValueError("Only persisted notifications can be delivered")
        if not self._gateway.registry.is_online(notification.user_id):
            return False

        delivered = await self._gateway.send_to_user(
            notification.user_id,
            EVENT_NOTIFICATION,
            serialize_notification(notification),
        )
        if not delivered:
            return False

        sent_at = await self._run(lambda repository: repository.mark_sent(notification.id))
        if sent_at is None:
            return False
        notification.status = NotificationStatus.SENT
        notification.sent_at = sent_at
        return True

    async def notify_task_created(
        self,
        task_id: str,
        title: str,
        participant_ids: Iterable[str],
        actor_id: str,
        actor_username: str | None,
    ) -> list[Notification]:
        participants = list(participant_ids)
        actor = actor_username or _UNKNOWN_ACTOR
        return await self._fan_out(
            participants,
            actor_id,
            partial(
                self._draft,
                notification_type=NotificationType.TASK_CREATED,
                title="New task assigned",
                message=f'{actor} created the task "{title}" and assigned it to you',
                task_id=task_id,
                task_title=title,
                actor_id=actor_id,
                actor_username=actor_username,
                data={"task_id": task_id, "title": title, "assigned_users": participants},
            ),
        )

    async def notify_task_updated(
        self,
        task_id: str,
        title: str,
        participant_ids: Iterable[str],
        actor_id: str,
        actor_username: str | None,
        changes: dict[str, Any] | None = None,
    ) -> list[Notification]:
        actor = actor_username or _UNKNOWN_ACTOR
        return await self._fan_out(
            participant_ids,
            actor_id,
            partial(
                self._draft,
                notification_type=NotificationType.TASK_UPDATED,
                title="Task updated",
                message=f'{actor} updated the task "{title}"',
                task_id=task_id,
                task_title=title,
                actor_id=actor_id,
                actor_username=actor_username,
                data={"task_id": task_id, "title": title, "changes": changes or {}},
            ),
        )

    async def notify_task_status_changed(
        self,
        task_id: str,
        title: str,
        participant_ids: Iterable[str],
        actor_id: str,
        actor_username: str | None,
        old_status: str | None,
        new_status: str | None,
    ) -> list[Notification]:
        actor = actor_username or _UNKNOWN_ACTOR
        return await self._fan_out(
            participant_ids,
            actor_id,
            partial(
                self._draft,
                notification_type=NotificationType.TASK_STATUS_CHANGED,
                title="Task status changed",
                message=f'{actor} moved the task "{title}" from {old_status} to {new_status}',
                task_id=task_id,
                task_title=title,
                actor_id=actor_id,
                actor_username=actor_username,
                data={
                    "task_id": task_id,
                    "title": title,
                    "status_change": {"from": old_status, "to": new_status},
                },
            ),
        )

    async def notify_comment_added(
        self,
        task_id: str,
        task_title: str,
        participant_ids: Iterable[str],
        author_id: str,
        author_username: str | None,
        content: str,
    ) -> list[Notification]:
        author = author_username or _UNKNOWN_ACTOR
        return await self._fan_out(
            participant_ids,
            author_id,
            partial(
                self._draft,
                notification_type=NotificationType.COMMENT_ADDED,
                title="New comment",
                message=f'{author} commented on the task "{task_title}": "{comment_preview(content)}"',
                task_id=task_id,
                task_title=task_title,
                actor_id=author_id,
                actor_username=author_username,
                data={
                    "task_id": task_id,
                    "task_title": task_title,
                    "comment_content": content,
                },
            ),
        )

    async def list_for_user(self, user_id: str, *, page: int = 1, limit: int = 20) -> NotificationPage:
        return await self._run(
            lambda repository: repository.list_for_user(user_id, page=page, limit=limit)
        )

    async def stats_for_user(self, user_id: str) -> NotificationStats:
        return await self._run(lambda repository: repository.stats_for_user(user_id))

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        marked = await self._run(
            lambda repository: repository.mark_read(notification_id, user_id=user_id)
        )
        if marked:
            logger.info("Notification %s marked as read by user %s", notification_id, user_id)
        return marked

    async def _fan_out(
        self,
        participant_ids: Iterable[str],
        actor_id: str | None,
        build: Callable[[str], Notification],
    ) -> list[Notification]:
        recipients = select_recipients(participant_ids, actor_id)
        if not recipients:
            return []
        return await self.create_many([build(recipient) for recipient in recipients])

    @staticmethod
    def _draft(
        user_id: str,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
        task_id: str,
        task_title: str,
        actor_id: str | None,
        actor_username: str | None,
        data: dict[str, Any],
    ) -> Notification:
        return Notification(
            id=None,
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=dict(data),
            task_id=task_id,
            task_title=task_title,
            triggered_by=actor_id,
            triggered_by_username=actor_username,
            created_at=now_in_app_timezone(),
        )

    async def _run(self, func: Callable[[NotificationRepository], T]) -> T:
        return await to_thread.run_sync(self._with_repository, func)

    def _with_repository(self, func: Callable[[NotificationRepository], T]) -> T:
        session = self._session_factory()
        try:
            return func(NotificationRepository(session))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


__all__ = [
    "COMMENT_PREVIEW_LENGTH",
    "NotificationService",
    "comment_preview",
    "select_recipients",
]
