"""
Match service: fixtures between teams and their results.
"""

from datetime import date, time
from typing import Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from teamtango.database.models import Match, MatchStatus, Team, Venue
from teamtango.services import audit_service
from teamtango.services.errors import ForbiddenError, NotFoundError, ValidationError
from teamtango.utils.constants import ADMIN_ROLES
from teamtango.utils.datetime_utils import parse_date, parse_time

logger = logging.getLogger(__name__)

MATCH_STATUSES = tuple(s.value for s in MatchStatus)


def match_result(match: Match) -> Optional[str]:
    """'Team1 Won', 'Team2 Won' or 'Draw' for completed matches with scores, else None."""
    if match.status != MatchStatus.COMPLETED.value:
        return None
    if match.team1_score is None or match.team2_score is None:
        return None
    if match.team1_score > match.team2_score:
        return "Team1 Won"
    if match.team2_score > match.team1_score:
        return "Team2 Won"
    return "Draw"


def _match_to_dict(match: Match, team1_name: str, team2_name: Optional[str], venue_name: str) -> Dict:
    return {
        "id": match.id,
        "title": match.title,
        "team1_id": match.team1_id,
        "team1_name": team1_name,
        "team2_id": match.team2_id,
        "team2_name": team2_name if match.team2_id else "External opponent",
        "venue_id": match.venue_id,
        "venue_name": venue_name,
        "match_date": match.match_date.isoformat(),
        "match_time": match.match_time.strftime("%H:%M") if match.match_time else None,
        "team1_score": match.team1_score,
        "team2_score": match.team2_score,
        "status": match.status,
        "result": match_result(match),
    }


def _match_query():
    team1 = aliased(Team)
    team2 = aliased(Team)
    return (
        select(Match, team1.name, team2.name, Venue.name)
        .join(team1, Match.team1_id == team1.id)
        .outerjoin(team2, Match.team2_id == team2.id)
        .join(Venue, Match.venue_id == Venue.id)
    )


async def list_matches(
    session: AsyncSession, team_id: Optional[int] = None, status: Optional[str] = None
) -> List[Dict]:
    query = _match_query()
    if team_id is not None:
        query = query.where((Match.team1_id == team_id) | (Match.team2_id == team_id))
    if status:
        query = query.where(Match.status == status)
    result = await session.execute(query.order_by(Match.match_date.desc(), Match.id.desc()))
    return [_match_to_dict(*row) for row in result.all()]


async def get_match(session: AsyncSession, match_id: int) -> Dict:
    row = (await session.execute(_match_query().where(Match.id == match_id))).first()
    if row is None:
        raise NotFoundError("Match not found")
    return _match_to_dict(*row)


def _check_scores(*scores: Optional[int]) -> None:
    for score in scores:
        if score is not None and score < 0:
            raise ValidationError("Scores must be non-negative")


async def create_match(
    session: AsyncSession,
    user: Dict,
    team1_id: Optional[int],
    venue_id: Optional[int],
    match_date: Union[str, date, None],
    team2_id: Optional[int] = None,
    match_time: Union[str, time, None] = None,
    title: Optional[str] = None,
) -> Dict:
    """
    Schedule a match. Without team2_id the opponent is external.

    Raises:
        ValidationError: Missing fields or both sides are the same team
        NotFoundError: Unknown team or venue
        ForbiddenError: Caller does not captain team 1 (admins exempt)
    """
    if team1_id is None or venue_id is None or not match_date:
        raise ValidationError("team1_id, venue_id and match_date are required")
    if team2_id is not None and team2_id == team1_id:
        raise ValidationError("A team cannot play against itself")
    try:
        match_date = parse_date(match_date)
        match_time = parse_time(match_time)
    except ValueError:
        raise ValidationError("Invalid date or time format; use YYYY-MM-DD and HH:MM")

    team1 = await session.get(Team, team1_id)
    if team1 is None:
        raise NotFoundError("Team not found")
    if team2_id is not None and await session.get(Team, team2_id) is None:
        raise NotFoundError("Opponent team not found")
    if await session.get(Venue, venue_id) is None:
        raise NotFoundError("Venue not found")
    if team1.captain_id != user["id"] and user["role_id"] not in ADMIN_ROLES:
        raise ForbiddenError("Only the team captain can schedule matches", "not_owner")

    match = Match(
        title=title or (f"{team1.name} match"),
        team1_id=team1_id,
        team2_id=team2_id,
        venue_id=venue_id,
        match_date=match_date,
        match_time=match_time,
        status=MatchStatus.SCHEDULED.value,
    )
    session.add(match)
    await session.flush()
    await session.commit()
    match_id = match.id
    await audit_service.record(session, user["id"], "CREATE", "Matches", match_id)
    return await get_match(session, match_id)


async def _load_for_captain(session: AsyncSession, match_id: int, user: Dict) -> Match:
    match = await session.get(Match, match_id)
    if match is None:
        raise NotFoundError("Match not found")
    if user["role_id"] not in ADMIN_ROLES:
        team1 = await session.get(Team, match.team1_id)
        if team1.captain_id != user["id"]:
            raise ForbiddenError("Only the home team captain can change this match", "not_owner")
    return match


async def update_match(session: AsyncSession, match_id: int, changes: Dict, user: Dict) -> Dict:
    """
    Update status, scores, schedule or title (home captain or admin).

    Raises:
        ValidationError: Unknown status, negative scores, or nothing to change
    """
    match = await _load_for_captain(session, match_id, user)

    status = changes.get("status")
    if status is not None and status not in MATCH_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(MATCH_STATUSES)}")
    _check_scores(changes.get("team1_score"), changes.get("team2_score"))

    applied = {}
    try:
        if changes.get("match_date") is not None:
            applied["match_date"] = parse_date(changes["match_date"])
        if changes.get("match_time") is not None:
            applied["match_time"] = parse_time(changes["match_time"])
    except ValueError:
        raise ValidationError("Invalid date or time format; use YYYY-MM-DD and HH:MM")
    for field in ("title", "team1_score", "team2_score", "status"):
        if changes.get(field) is not None:
            applied[field] = changes[field]
    if not applied:
        raise ValidationError("No fields to update")

    for field, value in applied.items():
        setattr(match, field, value)
    await session.commit()
    await audit_service.record(session, user["id"], "UPDATE", "Matches", match_id, new_values=applied)
    return await get_match(session, match_id)


async def delete_match(session: AsyncSession, match_id: int, user: Dict) -> None:
    match = await _load_for_captain(session, match_id, user)
    await session.delete(match)
    await session.commit()
    await audit_service.record(session, user["id"], "DELETE", "Matches", match_id)
