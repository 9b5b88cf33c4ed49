"""Persistence tests for notifications and their status lifecycle."""

import pytest

from task_notifications.domain.entities import (
    Notification,
    NotificationStatus,
    NotificationType,
)
from task_notifications.infrastructure.repositories import NotificationRepository


@pytest.fixture
def repository(session_factory):
    session = session_factory()
    try:
        yield NotificationRepository(session)
    finally:
        session.close()


def _draft(user_id: str = "bob", title: str = "New task assigned") -> Notification:
    return Notification(
        id=None,
        user_id=user_id,
        type=NotificationType.TASK_CREATED,
        title=title,
        message="alice created the task",
        data={"task_id": "t-1"},
        task_id="t-1",
        task_title="Ship it",
        triggered_by="alice",
    )


def test_create_many_assigns_ids_and_pending_status(repository):
    saved = repository.create_many([_draft("bob"), _draft("carol")])

    assert [item.user_id for item in saved] == ["bob", "carol"]
    assert all(item.id for item in saved)
    assert all(item.status is NotificationStatus.PENDING for item in saved)
    assert all(item.created_at is not None for item in saved)

    fetched = repository.get(saved[0].id, user_id="bob")
    assert fetched is not None
    assert fetched.data == {"task_id": "t-1"}
    assert repository.get(saved[0].id, user_id="carol") is None


def test_status_moves_forward_only(repository):
    notification = repository.create(_draft())

    sent_at = repository.mark_sent(notification.id)
    assert sent_at is not None
    assert repository.mark_read(notification.id, user_id="bob") is True

    # read notifications never go back to sent
    assert repository.mark_sent(notification.id) is None
    assert repository.mark_read(notification.id, user_id="bob") is False

    stored = repository.get(notification.id)
    assert stored.status is NotificationStatus.READ
    assert stored.sent_at == sent_at
    assert stored.read_at is not None


def test_pending_can_be_read_directly(repository):
    notification = repository.create(_draft())

    assert repository.mark_read(notification.id, user_id="bob") is True
    stored = repository.get(notification.id)
    assert stored.status is NotificationStatus.READ
    assert stored.sent_at is None


def test_failed_only_follows_pending(repository):
    first = repository.create(_draft())
    second = repository.create(_draft())
    repository.mark_sent(second.id)

    assert repository.update_status(first.id, NotificationStatus.FAILED) is True
    assert repository.update_status(second.id, NotificationStatus.FAILED) is False


def test_cannot_transition_back_to_pending(repository):
    notification = repository.create(_draft())

    with pytest.raises(ValueError):
        repository.update_status(notification.id, NotificationStatus.PENDING)


def test_mark_read_checks_owner(repository):
    notification = repository.create(_draft("bob"))

    assert repository.mark_read(notification.id, user_id="carol") is False
    assert repository.get(notification.id).status is NotificationStatus.PENDING


def test_list_for_user_paginates(repository):
    repository.create_many([_draft("bob", title=f"n{index}") for index in range(5)])
    repository.create(_draft("carol"))

    page = repository.list_for_user("bob", page=2, limit=2)

    assert page.total == 5
    assert page.page == 2
    assert page.total_pages == 3
    assert len(page.notifications) == 2
    assert all(item.user_id == "bob" for item in page.notifications)


@pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0)])
def test_list_for_user_rejects_invalid_paging(repository, page, limit):
    with pytest.raises(ValueError):
        repository.list_for_user("bob", page=page, limit=limit)


def test_unread_stats_and_mark_all_read(repository):
    pending, sent, read = repository.create_many([_draft(), _draft(), _draft()])
    repository.mark_sent(sent.id)
    repository.mark_read(read.id, user_id="bob")

    unread_ids = {item.id for item in repository.list_unread_for_user("bob")}
    assert unread_ids == {pending.id, sent.id}

    stats = repository.stats_for_user("bob")
    assert (stats.total, stats.unread, stats.read) == (3, 2, 1)

    assert repository.mark_all_read("bob") == 2
    assert repository.stats_for_user("bob").unread == 0


def test_delete_requires_owner(repository):
    notification = repository.create(_draft("bob"))

    assert repository.delete(notification.id, user_id="carol") is False
    assert repository.delete(notification.id, user_id="bob") is True
    assert repository.get(notification.id) is None
