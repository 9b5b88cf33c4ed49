"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from task_notifications.application.use_cases.notifications import NotificationService
from task_notifications.domain.entities import Notification
from task_notifications.infrastructure.notifications import NotificationsGateway
from task_notifications.infrastructure.repositories import NotificationRepository
from task_notifications.infrastructure.security import resolve_connection_identity
from task_notifications.interfaces.api.dependencies import (
    get_db,
    get_notification_service,
    get_requesting_user_id,
)
from task_notifications.interfaces.api.schemas import (
    NotificationCreate,
    NotificationPageRead,
    NotificationRead,
    NotificationStatsRead,
    OperationResult,
)
from task_notifications.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

EVENT_PONG = "pong"
EVENT_MARKED_READ = "notification-marked-read"

router = APIRouter(prefix="/notifications", tags=["notifications"])
admin_router = APIRouter(prefix="/admin/notifications", tags=["notifications-admin"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead.model_validate(notification)


def _draft_from_payload(payload: NotificationCreate) -> Notification:
    return Notification(
        id=None,
        user_id=payload.user_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        data=payload.data,
        task_id=payload.task_id,
        task_title=payload.task_title,
        triggered_by=payload.triggered_by,
        triggered_by_username=payload.triggered_by_username,
        created_at=now_in_app_timezone(),
    )


@router.get("", response_model=NotificationPageRead)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> NotificationPageRead:
    """Return a page of the user's notifications, newest first."""

    result = NotificationRepository(db).list_for_user(user_id, page=page, limit=limit)
    return NotificationPageRead(
        notifications=[_notification_to_schema(item) for item in result.notifications],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get("/unread", response_model=list[NotificationRead])
def list_unread_notifications(
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> list[NotificationRead]:
    notifications = NotificationRepository(db).list_unread_for_user(user_id)
    return [_notification_to_schema(notification) for notification in notifications]


@router.get("/stats", response_model=NotificationStatsRead)
def notification_stats(
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> NotificationStatsRead:
    stats = NotificationRepository(db).stats_for_user(user_id)
    return NotificationStatsRead(total=stats.total, unread=stats.unread, read=stats.read)


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    """Create a notification and push it to the user when they are online."""

    notification = await service.create_notification(_draft_from_payload(payload))
    return _notification_to_schema(notification)


@router.patch("/read-all", response_model=OperationResult)
def mark_all_notifications_read(
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> OperationResult:
    count = NotificationRepository(db).mark_all_read(user_id)
    return OperationResult(
        success=True,
        message=f"{count} notifications marked as read",
        count=count,
    )


@router.patch("/{notification_id}/read", response_model=OperationResult)
def mark_notification_read(
    notification_id: str,
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> OperationResult:
    repository = NotificationRepository(db)
    if repository.get(notification_id, user_id=user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found"
        )
    success = repository.mark_read(notification_id, user_id=user_id)
    return OperationResult(
        success=success,
        message="Notification marked as read" if success else "Notification was already read",
    )


@router.delete("/{notification_id}", response_model=OperationResult)
def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_requesting_user_id),
    db: Session = Depends(get_db),
) -> OperationResult:
    success = NotificationRepository(db).delete(notification_id, user_id=user_id)
    return OperationResult(
        success=success,
        message="Notification deleted" if success else "Notification not found",
    )


@admin_router.post("/bulk", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
async def create_bulk_notifications(
    payload: list[NotificationCreate],
    service: NotificationService = Depends(get_notification_service),
) -> OperationResult:
    created = await service.create_many([_draft_from_payload(item) for item in payload])
    return OperationResult(
        success=True,
        message=f"{len(created)} notifications created",
        count=len(created),
    )


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to the connected user."""

    gateway: NotificationsGateway = websocket.app.state.gateway
    service: NotificationService = websocket.app.state.notification_service

    try:
        identity = resolve_connection_identity(
            websocket.query_params, websocket.app.state.settings
        )
    except ValueError as exc:
        logger.warning("Rejected websocket connection: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    handle_id = await gateway.connect(
        websocket,
        identity.user_id if identity else None,
        identity.username if identity else None,
    )
    if handle_id is None:
        return
    user_id = identity.user_id

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except (KeyError, ValueError):
                # binary frames carry no text payload
                await gateway.send_error(handle_id, "Messages must be JSON objects")
                continue

            if not isinstance(message, dict):
                await gateway.send_error(handle_id, "Messages must be JSON objects")
                continue
            await _handle_client_message(gateway, service, handle_id, user_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(handle_id)


async def _handle_client_message(
    gateway: NotificationsGateway,
    service: NotificationService,
    handle_id: str,
    user_id: str,
    message: dict[str, Any],
) -> None:
    message_type = message.get("type")
    data = message.get("data")
    if not isinstance(data, dict):
        data = {}

    if message_type == "ping":
        await gateway.send_to_handle(handle_id, EVENT_PONG, {})
        return

    if message_type in ("join-task-room", "leave-task-room"):
        task_id = str(data.get("task_id") or data.get("taskId") or "").strip()
        if not task_id:
            await gateway.send_error(handle_id, "task_id is required")
            return
        if message_type == "join-task-room":
            await gateway.join_task_room(handle_id, task_id)
        else:
            await gateway.leave_task_room(handle_id, task_id)
        return

    if message_type == "mark-notification-read":
        notification_id = str(
            data.get("notification_id") or data.get("notificationId") or ""
        ).strip()
        if not notification_id:
            await gateway.send_error(handle_id, "notification_id is required")
            return
        success = await service.mark_as_read(notification_id, user_id)
        await gateway.send_to_handle(
            handle_id,
            EVENT_MARKED_READ,
            {"notification_id": notification_id, "success": success},
        )
        return

    await gateway.send_error(handle_id, f"Unsupported message type: {message_type}")
