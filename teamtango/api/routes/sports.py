"""Sport catalogue route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import SportRequest
from teamtango.services import sport_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sports")
async def list_sports(session: AsyncSession = Depends(get_db_session)):
    return await sport_service.list_sports(session)


@router.get("/api/sports/{sport_id}")
async def get_sport(sport_id: int, session: AsyncSession = Depends(get_db_session)):
    return await sport_service.get_sport(session, sport_id)


@router.post("/api/sports", status_code=201)
async def create_sport(
    payload: SportRequest,
    user: dict = Depends(require_policy("sports", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a sport (admin only)."""
    return await sport_service.create_sport(session, payload.name)


@router.put("/api/sports/{sport_id}")
async def update_sport(
    sport_id: int,
    payload: SportRequest,
    user: dict = Depends(require_policy("sports", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    return await sport_service.update_sport(session, sport_id, payload.name)


@router.delete("/api/sports/{sport_id}")
async def delete_sport(
    sport_id: int,
    user: dict = Depends(require_policy("sports", "delete")),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a sport no venue or team uses (admin only)."""
    await sport_service.delete_sport(session, sport_id)
    return {"success": True, "message": "Sport deleted"}
