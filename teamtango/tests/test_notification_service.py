"""
Unit tests for notification service.
Tests notification creation, retrieval, marking as read and deletion.
"""
import pytest

from teamtango.database.models import NotificationType
from teamtango.services import notification_service
from teamtango.services.errors import NotFoundError


async def _notify_many(session, user_id, count):
    for i in range(count):
        await notification_service.create_notification(
            session, user_id, NotificationType.SYSTEM.value, f"Notice {i}", f"Message {i}"
        )


@pytest.mark.asyncio
async def test_create_notification(db_session, player):
    notification = await notification_service.create_notification(
        db_session, player["id"], NotificationType.SYSTEM.value, "Welcome", "Welcome to TeamTango"
    )

    assert notification["id"] > 0
    assert notification["user_id"] == player["id"]
    assert notification["is_read"] is False
    assert notification["read_at"] is None
    assert notification["created_at"] is not None


@pytest.mark.asyncio
async def test_pagination_and_unread_filter(db_session, player):
    await _notify_many(db_session, player["id"], 5)

    page = await notification_service.get_user_notifications(db_session, player["id"], limit=2, offset=0)
    assert page["total_count"] == 5
    assert len(page["notifications"]) == 2
    assert page["has_more"] is True

    last = await notification_service.get_user_notifications(db_session, player["id"], limit=2, offset=4)
    assert len(last["notifications"]) == 1
    assert last["has_more"] is False


@pytest.mark.asyncio
async def test_mark_as_read(db_session, player):
    await _notify_many(db_session, player["id"], 3)
    first = (await notification_service.get_user_notifications(db_session, player["id"]))["notifications"][0]

    read = await notification_service.mark_as_read(db_session, first["id"], player["id"])

    assert read["is_read"] is True
    assert read["read_at"] is not None
    assert await notification_service.get_unread_count(db_session, player["id"]) == 2
    unread = await notification_service.get_user_notifications(db_session, player["id"], unread_only=True)
    assert unread["total_count"] == 2


@pytest.mark.asyncio
async def test_cannot_touch_other_users_notification(db_session, player, other_player):
    await _notify_many(db_session, player["id"], 1)
    mine = (await notification_service.get_user_notifications(db_session, player["id"]))["notifications"][0]

    with pytest.raises(NotFoundError):
        await notification_service.mark_as_read(db_session, mine["id"], other_player["id"])
    with pytest.raises(NotFoundError):
        await notification_service.delete_notification(db_session, mine["id"], other_player["id"])


@pytest.mark.asyncio
async def test_mark_all_as_read(db_session, player):
    await _notify_many(db_session, player["id"], 4)
    assert await notification_service.mark_all_as_read(db_session, player["id"]) == 4
    assert await notification_service.get_unread_count(db_session, player["id"]) == 0
    assert await notification_service.mark_all_as_read(db_session, player["id"]) == 0


@pytest.mark.asyncio
async def test_delete_notification(db_session, player):
    await _notify_many(db_session, player["id"], 1)
    mine = (await notification_service.get_user_notifications(db_session, player["id"]))["notifications"][0]
    await notification_service.delete_notification(db_session, mine["id"], player["id"])
    assert (await notification_service.get_user_notifications(db_session, player["id"]))["total_count"] == 0


@pytest.mark.asyncio
async def test_notify_swallows_failures(db_session, player, monkeypatch, caplog):
    async def broken_create(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(notification_service, "create_notification", broken_create)

    await notification_service.notify(db_session, player["id"], NotificationType.SYSTEM.value, "Hi", "There")

    assert "Failed to create system notification" in caplog.text


@pytest.mark.asyncio
async def test_notify_without_recipient_is_a_no_op(db_session):
    await notification_service.notify(db_session, None, NotificationType.SYSTEM.value, "Hi", "There")
