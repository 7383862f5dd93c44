"""Venue feedback route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import FeedbackCreate, FeedbackUpdate
from teamtango.services import feedback_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/feedback")
async def list_feedback(venue_id: Optional[int] = None, session: AsyncSession = Depends(get_db_session)):
    return await feedback_service.list_feedback(session, venue_id=venue_id)


@router.get("/api/feedback/{feedback_id}")
async def get_feedback(feedback_id: int, session: AsyncSession = Depends(get_db_session)):
    return await feedback_service.get_feedback(session, feedback_id)


@router.post("/api/feedback", status_code=201)
async def create_feedback(
    payload: FeedbackCreate,
    user: dict = Depends(require_policy("feedback", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Rate a venue from 1 to 5 with an optional comment."""
    return await feedback_service.create_feedback(
        session, user, payload.venue_id, payload.rating, payload.comment
    )


@router.put("/api/feedback/{feedback_id}")
async def update_feedback(
    feedback_id: int,
    payload: FeedbackUpdate,
    user: dict = Depends(require_policy("feedback", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    return await feedback_service.update_feedback(session, feedback_id, user, payload.rating, payload.comment)


@router.delete("/api/feedback/{feedback_id}")
async def delete_feedback(
    feedback_id: int,
    user: dict = Depends(require_policy("feedback", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete feedback (author or admin)."""
    await feedback_service.delete_feedback(session, feedback_id, user)
    return {"success": True, "message": "Feedback deleted"}
