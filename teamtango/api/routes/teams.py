"""Team route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy, require_team_captain_or_admin
from teamtango.database.db import get_db_session
from teamtango.models.schemas import CaptaincyTransfer, JoinTeamRequest, TeamCreate, TeamUpdate
from teamtango.services import team_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams")
async def list_teams(sport_id: Optional[int] = None, session: AsyncSession = Depends(get_db_session)):
    return await team_service.list_teams(session, sport_id=sport_id)


@router.get("/api/teams/my")
async def list_my_teams(
    user: dict = Depends(require_policy("teams", "membership")),
    session: AsyncSession = Depends(get_db_session),
):
    """Teams the caller captains or plays in, with their role on each."""
    return await team_service.list_my_teams(session, user["id"])


@router.get("/api/teams/{team_id}")
async def get_team(team_id: int, session: AsyncSession = Depends(get_db_session)):
    """Team details with its member roster."""
    return await team_service.get_team(session, team_id)


@router.post("/api/teams", status_code=201)
async def create_team(
    payload: TeamCreate,
    user: dict = Depends(require_policy("teams", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team captained by the caller."""
    try:
        return await team_service.create_team(session, payload.name, payload.sport_id, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error creating team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating team")


@router.post("/api/teams/{team_id}/join")
async def join_team(
    team_id: int,
    payload: Optional[JoinTeamRequest] = None,
    user: dict = Depends(require_policy("teams", "membership")),
    session: AsyncSession = Depends(get_db_session),
):
    position = payload.position if payload else None
    return await team_service.join_team(session, team_id, user, position=position)


@router.post("/api/teams/{team_id}/leave")
async def leave_team(
    team_id: int,
    user: dict = Depends(require_policy("teams", "membership")),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave a team. Captains must transfer captaincy first."""
    await team_service.leave_team(session, team_id, user)
    return {"success": True, "message": "Left team"}


@router.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    user: dict = Depends(require_policy("teams", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    team = await require_team_captain_or_admin(session, team_id, user)
    return await team_service.update_team(session, team, payload.model_dump(exclude_unset=True), user["id"])


@router.put("/api/teams/{team_id}/captain")
async def transfer_captaincy(
    team_id: int,
    payload: CaptaincyTransfer,
    user: dict = Depends(require_policy("teams", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    """Hand captaincy to an existing member (captain or admin)."""
    team = await require_team_captain_or_admin(session, team_id, user)
    return await team_service.transfer_captaincy(session, team, payload.new_captain_id, user["id"])


@router.delete("/api/teams/{team_id}/members/{member_id}")
async def remove_member(
    team_id: int,
    member_id: int,
    user: dict = Depends(require_policy("teams", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    team = await require_team_captain_or_admin(session, team_id, user)
    await team_service.remove_member(session, team, member_id, user["id"])
    return {"success": True, "message": "Member removed"}


@router.delete("/api/teams/{team_id}")
async def delete_team(
    team_id: int,
    user: dict = Depends(require_policy("teams", "manage")),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a team with no active bookings or upcoming matches (captain or admin)."""
    team = await require_team_captain_or_admin(session, team_id, user)
    try:
        await team_service.delete_team(session, team, user["id"])
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error deleting team {team_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error deleting team")
    return {"success": True, "message": "Team deleted"}
