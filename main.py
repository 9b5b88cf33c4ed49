import logging
from contextlib import asynccontextmanager
from typing import Any, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from task_notifications.application.use_cases.notifications import (
    EventDispatcher,
    NotificationService,
)
from task_notifications.config import Settings, get_settings
from task_notifications.infrastructure import database
from task_notifications.infrastructure.messaging import EventConsumer
from task_notifications.infrastructure.notifications import (
    NotificationsGateway,
    notifications_gateway,
)
from task_notifications.interfaces.api.routes import register_routes

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    session_factory: Callable[[], Session] | None = None,
    gateway: NotificationsGateway | None = None,
    consumer_factory: Callable[..., Any] | None = None,
) -> FastAPI:
    """Create and configure the notifications FastAPI application."""

    settings = settings or get_settings()
    engine = engine or database.engine
    session_factory = session_factory or database.SessionLocal
    gateway = gateway or notifications_gateway

    service = NotificationService(session_factory, gateway)
    dispatcher = EventDispatcher(service)
    consumer_kwargs: dict[str, Any] = {}
    if consumer_factory is not None:
        consumer_kwargs["consumer_factory"] = consumer_factory
    consumer = EventConsumer(dispatcher, settings, **consumer_kwargs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Prepare the database and the consumer, and release them on shutdown."""

        configure_logging(settings.log_level)
        database.initialize_database(engine)
        if settings.kafka_consumer_enabled:
            # The HTTP surface stays available when the broker is unreachable.
            if not await consumer.start():
                logger.warning("Starting without event consumption")
        try:
            yield
        finally:
            await consumer.stop()
            engine.dispose()

    app = FastAPI(title="Task Notifications", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.gateway = gateway
    app.state.notification_service = service
    app.state.dispatcher = dispatcher
    app.state.consumer = consumer

    register_routes(app)
    return app


app = create_app()
