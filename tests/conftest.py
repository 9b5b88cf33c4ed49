"""Shared fixtures for the notifications service tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["KAFKA_CONSUMER_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["KAFKA_RETRIES"] = "0"
os.environ["PUBLISHER_RETRIES"] = "0"

from task_notifications.application.use_cases.notifications import (  # noqa: E402
    EventDispatcher,
    NotificationService,
)
from task_notifications.config import reset_settings_cache  # noqa: E402
from task_notifications.infrastructure.database import (  # noqa: E402
    build_engine,
    build_session_factory,
    initialize_database,
)
from task_notifications.infrastructure.notifications import (  # noqa: E402
    ConnectionRegistry,
    NotificationsGateway,
)

reset_settings_cache()


class FakeWebSocket:
    """Stand-in for a Starlette websocket that records what it is sent."""

    def __init__(self, *, fail_sends: bool = False) -> None:
        self.fail_sends = fail_sends
        self.accepted = False
        self.closed_with: int | None = None
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    async def send_json(self, data: Any) -> None:
        if self.fail_sends:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [message["data"] for message in self.sent if message["type"] == event_type]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'notifications.db'}")
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def gateway():
    return NotificationsGateway(ConnectionRegistry())


@pytest.fixture
def service(session_factory, gateway):
    return NotificationService(session_factory, gateway)


@pytest.fixture
def dispatcher(service):
    return EventDispatcher(service)


@pytest.fixture
def make_websocket():
    return FakeWebSocket
