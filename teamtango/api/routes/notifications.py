"""Notification route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.database.models import NotificationType
from teamtango.models.schemas import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from teamtango.services import notification_service
from teamtango.services.errors import DomainError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
    user: dict = Depends(require_policy("notifications", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    """Get user notifications with pagination."""
    try:
        return await notification_service.get_user_notifications(
            session, user["id"], limit=min(max(limit, 1), 100), offset=max(offset, 0), unread_only=unread_only
        )
    except Exception as e:
        logger.error(f"Error fetching notifications: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching notifications")


@router.get("/api/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: dict = Depends(require_policy("notifications", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        count = await notification_service.get_unread_count(session, user["id"])
        return {"count": count}
    except Exception as e:
        logger.error(f"Error fetching unread count: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching unread count")


@router.put("/api/notifications/mark-all-read")
async def mark_all_notifications_as_read(
    user: dict = Depends(require_policy("notifications", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark all user notifications as read."""
    try:
        count = await notification_service.mark_all_as_read(session, user["id"])
        return {"success": True, "count": count}
    except Exception as e:
        logger.error(f"Error marking all notifications as read: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error marking all notifications as read")


@router.put("/api/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_as_read(
    notification_id: int,
    user: dict = Depends(require_policy("notifications", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark a single notification as read."""
    try:
        return await notification_service.mark_as_read(session, notification_id, user["id"])
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error marking notification as read: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error marking notification as read")


@router.delete("/api/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: dict = Depends(require_policy("notifications", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    await notification_service.delete_notification(session, notification_id, user["id"])
    return {"success": True, "message": "Notification deleted"}


@router.post("/api/notifications", response_model=NotificationResponse, status_code=201)
async def create_notification(
    payload: NotificationCreate,
    user: dict = Depends(require_policy("notifications", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Send a notification to a user (admin only)."""
    if payload.type not in {t.value for t in NotificationType}:
        raise ValidationError(f"Unknown notification type: {payload.type}")
    return await notification_service.create_notification(
        session, payload.user_id, payload.type, payload.title, payload.message
    )
