"""
In-app notifications for bookings, payments and team activity.

Business services call notify() after their own commit; the routes expose a
user's inbox with paging, read markers and deletion.
"""

from typing import Dict, Optional
import logging

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Notification
from teamtango.services.errors import NotFoundError, ValidationError
from teamtango.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def _as_dict(row: Notification) -> Dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "type": row.type,
        "title": row.title,
        "message": row.message,
        "is_read": row.is_read,
        "read_at": row.read_at.isoformat() if row.read_at else None,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def _inbox(user_id: int, unread_only: bool = False):
    clauses = [Notification.user_id == user_id]
    if unread_only:
        clauses.append(Notification.is_read.is_(False))
    return clauses


async def create_notification(
    session: AsyncSession, user_id: int, type: str, title: str, message: str
) -> Dict:
    """
    Store a notification for one recipient and commit it.

    Raises:
        ValidationError: If the recipient, type, title or message is empty
    """
    for field, value in (("user_id", user_id), ("type", type), ("title", title), ("message", message)):
        if not value:
            raise ValidationError(f"{field} is required")

    row = Notification(user_id=user_id, type=type, title=title, message=message, is_read=False)
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return _as_dict(row)


async def notify(session: AsyncSession, user_id: Optional[int], type: str, title: str, message: str) -> None:
    """Fire-and-forget variant of create_notification; failures are only logged."""
    if not user_id:
        return
    try:
        await create_notification(session, user_id, type, title, message)
    except Exception as e:
        await session.rollback()
        logger.warning(f"Failed to create {type} notification for user {user_id}: {e}")


async def get_user_notifications(
    session: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
) -> Dict:
    """
    One page of a user's inbox, newest first.

    Returns:
        Dict with notifications, total_count and has_more
    """
    clauses = _inbox(user_id, unread_only)
    total = await session.scalar(select(func.count(Notification.id)).where(*clauses)) or 0
    rows = await session.scalars(
        select(Notification)
        .where(*clauses)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
    )
    page = [_as_dict(n) for n in rows.all()]
    return {"notifications": page, "total_count": total, "has_more": offset + len(page) < total}


async def get_unread_count(session: AsyncSession, user_id: int) -> int:
    return await session.scalar(select(func.count(Notification.id)).where(*_inbox(user_id, True))) or 0


async def _owned_row(session: AsyncSession, notification_id: int, user_id: int) -> Notification:
    row = await session.get(Notification, notification_id)
    # Other users' notifications look the same as missing ones
    if row is None or row.user_id != user_id:
        raise NotFoundError("Notification not found")
    return row


async def mark_as_read(session: AsyncSession, notification_id: int, user_id: int) -> Dict:
    """
    Set the read marker on one of the caller's notifications.

    Raises:
        NotFoundError: Unknown id, or the notification belongs to someone else
    """
    row = await _owned_row(session, notification_id, user_id)
    if not row.is_read:
        row.is_read = True
        row.read_at = utcnow()
        await session.commit()
    return _as_dict(row)


async def mark_all_as_read(session: AsyncSession, user_id: int) -> int:
    """Returns how many notifications changed."""
    result = await session.execute(
        update(Notification).where(*_inbox(user_id, True)).values(is_read=True, read_at=utcnow())
    )
    await session.commit()
    return result.rowcount or 0


async def delete_notification(session: AsyncSession, notification_id: int, user_id: int) -> None:
    await _owned_row(session, notification_id, user_id)
    await session.execute(delete(Notification).where(Notification.id == notification_id))
    await session.commit()
