"""FastAPI dependency utilities."""

from collections.abc import Generator

from fastapi import HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from task_notifications.application.use_cases.notifications import NotificationService
from task_notifications.infrastructure.messaging import EventConsumer
from task_notifications.infrastructure.notifications import NotificationsGateway


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the factory the application was built with."""

    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_gateway(request: Request) -> NotificationsGateway:
    return request.app.state.gateway


def get_consumer(request: Request) -> EventConsumer | None:
    return getattr(request.app.state, "consumer", None)


def get_requesting_user_id(
    user_id: str = Query(..., description="Identity forwarded by the API gateway"),
) -> str:
    """Return the caller identity forwarded as the ``user_id`` query parameter."""

    user_id = user_id.strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="user_id is required",
        )
    return user_id
