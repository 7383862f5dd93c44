"""Match route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import MatchCreate, MatchUpdate
from teamtango.services import match_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches")
async def list_matches(
    team_id: Optional[int] = None,
    status: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    return await match_service.list_matches(session, team_id=team_id, status=status)


@router.get("/api/matches/{match_id}")
async def get_match(match_id: int, session: AsyncSession = Depends(get_db_session)):
    return await match_service.get_match(session, match_id)


@router.post("/api/matches", status_code=201)
async def create_match(
    payload: MatchCreate,
    user: dict = Depends(require_policy("matches", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Schedule a match for a team the caller captains."""
    return await match_service.create_match(
        session,
        user,
        team1_id=payload.team1_id,
        venue_id=payload.venue_id,
        match_date=payload.match_date,
        team2_id=payload.team2_id,
        match_time=payload.match_time,
        title=payload.title,
    )


@router.put("/api/matches/{match_id}")
async def update_match(
    match_id: int,
    payload: MatchUpdate,
    user: dict = Depends(require_policy("matches", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    """Reschedule a match or record its scores."""
    return await match_service.update_match(session, match_id, payload.model_dump(exclude_unset=True), user)


@router.delete("/api/matches/{match_id}")
async def delete_match(
    match_id: int,
    user: dict = Depends(require_policy("matches", "delete")),
    session: AsyncSession = Depends(get_db_session),
):
    await match_service.delete_match(session, match_id, user)
    return {"success": True, "message": "Match deleted"}
