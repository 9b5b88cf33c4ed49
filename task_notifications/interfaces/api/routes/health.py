"""Liveness and statistics endpoints."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends

from task_notifications.infrastructure.messaging import EventConsumer
from task_notifications.infrastructure.notifications import NotificationsGateway
from task_notifications.interfaces.api.dependencies import get_consumer, get_gateway
from task_notifications.utils import now_in_app_timezone

SERVICE_NAME = "notifications-service"
SERVICE_VERSION = "1.0.0"

_started_at = time.monotonic()

router = APIRouter(prefix="/health", tags=["health"])


def _websocket_status(gateway: NotificationsGateway) -> dict[str, Any]:
    stats = gateway.stats()
    return {
        "status": "up",
        "connected_users": stats["connected_users"],
        "total_connections": stats["total_connections"],
        "message": "WebSocket gateway is operational",
    }


@router.get("")
def health(
    gateway: NotificationsGateway = Depends(get_gateway),
    consumer: EventConsumer | None = Depends(get_consumer),
) -> dict[str, Any]:
    return {
        "status": "ok",
        "websocket": _websocket_status(gateway),
        "consumer": consumer.stats() if consumer is not None else None,
    }


@router.get("/websocket")
def websocket_health(
    gateway: NotificationsGateway = Depends(get_gateway),
) -> dict[str, Any]:
    return {"websocket": _websocket_status(gateway)}


@router.get("/notifications/stats")
def service_stats(
    gateway: NotificationsGateway = Depends(get_gateway),
    consumer: EventConsumer | None = Depends(get_consumer),
) -> dict[str, Any]:
    """Return runtime statistics about the service."""

    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime": round(time.monotonic() - _started_at, 3),
        "timestamp": now_in_app_timezone().isoformat(),
        "websocket": gateway.stats(),
        "consumer": consumer.stats() if consumer is not None else None,
    }
