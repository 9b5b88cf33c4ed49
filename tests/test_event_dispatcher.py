"""Tests for routing decoded events to notification behaviour."""

from __future__ import annotations

from typing import Any

import pytest

from task_notifications.domain.entities import NotificationType
from task_notifications.domain.events import EventEnvelope, EventType
from task_notifications.infrastructure.messaging import EventDecodeError
from task_notifications.utils import now_in_app_timezone

pytestmark = pytest.mark.anyio


def _envelope(event_type: EventType, payload: dict[str, Any]) -> EventEnvelope:
    return EventEnvelope(
        event_type=event_type,
        payload=payload,
        occurred_at=now_in_app_timezone(),
        topic=event_type.topic.value if event_type.topic else "task-events",
    )


def test_every_event_type_has_a_handler(dispatcher):
    assert set(dispatcher.handlers) == set(EventType)


async def test_task_assigned_notifies_the_assignee(dispatcher, service):
    handled = await dispatcher.dispatch(
        _envelope(
            EventType.TASK_ASSIGNED,
            {"taskId": "t-1", "title": "Ship it", "assignedTo": "B", "assignedBy": "A"},
        )
    )

    assert handled is True
    page = await service.list_for_user("B")
    assert page.total == 1
    assert page.notifications[0].type is NotificationType.TASK_CREATED


async def test_self_assignment_creates_nothing(dispatcher, service):
    await dispatcher.dispatch(
        _envelope(
            EventType.TASK_ASSIGNED,
            {"taskId": "t-1", "title": "Ship it", "assignedTo": "A", "assignedBy": "A"},
        )
    )

    assert (await service.list_for_user("A")).total == 0


async def test_status_change_needs_status_in_changes(dispatcher, service):
    base = {
        "taskId": "t-1",
        "title": "Ship it",
        "assignedUsers": ["A", "B"],
        "updatedBy": "A",
    }

    ignored = await dispatcher.dispatch(
        _envelope(EventType.TASK_STATUS_CHANGED, {**base, "changes": {"title": "x"}})
    )
    handled = await dispatcher.dispatch(
        _envelope(
            EventType.TASK_STATUS_CHANGED,
            {**base, "changes": {"status": {"from": "todo", "to": "done"}}},
        )
    )

    assert ignored is False
    assert handled is True
    page = await service.list_for_user("B")
    assert page.total == 1
    assert page.notifications[0].data["status_change"] == {"from": "todo", "to": "done"}


async def test_comment_added_uses_participants(dispatcher, service):
    await dispatcher.dispatch(
        _envelope(
            EventType.COMMENT_ADDED,
            {
                "taskId": "t-1",
                "taskTitle": "Ship it",
                "commentId": "c-1",
                "content": "Looks good",
                "authorId": "A",
                "authorUsername": "alice",
                "participantUsers": ["A", "B", "C"],
            },
        )
    )

    assert (await service.list_for_user("A")).total == 0
    assert (await service.list_for_user("B")).total == 1
    assert (await service.list_for_user("C")).total == 1


async def test_user_assignment_goes_to_task_room_only(dispatcher, gateway, service, make_websocket):
    actor_ws, member_ws = make_websocket(), make_websocket()
    actor = await gateway.connect(actor_ws, "A")
    member = await gateway.connect(member_ws, "B")
    await gateway.join_task_room(actor, "t-1")
    await gateway.join_task_room(member, "t-1")

    handled = await dispatcher.dispatch(
        _envelope(EventType.USER_ASSIGNED, {"userId": "C", "taskId": "t-1", "assignedBy": "A"})
    )

    assert handled is True
    assert member_ws.events("task-notification")[0]["user_id"] == "C"
    assert actor_ws.events("task-notification") == []
    assert (await service.list_for_user("C")).total == 0


@pytest.mark.parametrize(
    "event_type",
    [EventType.TASK_DELETED, EventType.USER_LOGGED_IN, EventType.COMMENT_DELETED, EventType.UNKNOWN],
)
async def test_events_without_notifications_are_ignored(dispatcher, event_type):
    assert await dispatcher.dispatch(_envelope(event_type, {"type": event_type.value})) is False


async def test_invalid_payload_raises_decode_error(dispatcher):
    with pytest.raises(EventDecodeError):
        await dispatcher.dispatch(_envelope(EventType.COMMENT_ADDED, {"taskId": "t-1"}))
