"""
Team service: team creation, membership and captaincy.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy import select, func, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Booking, Match, NotificationType, Sport, Team, TeamMember, User
from teamtango.services import audit_service, notification_service
from teamtango.services.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    ValidationError,
)
from teamtango.utils.constants import ACTIVE_BOOKING_STATUSES, ACTIVE_MATCH_STATUSES

logger = logging.getLogger(__name__)

DUPLICATE_TEAM_MESSAGE = "A team with this name already exists for this sport"


async def _get_team_row(session: AsyncSession, team_id: int) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    return team


async def _member_counts(session: AsyncSession, team_ids: List[int]) -> Dict[int, int]:
    if not team_ids:
        return {}
    result = await session.execute(
        select(TeamMember.team_id, func.count(TeamMember.user_id))
        .where(TeamMember.team_id.in_(team_ids))
        .group_by(TeamMember.team_id)
    )
    return dict(result.all())


def _team_query():
    return (
        select(Team, Sport.name, User.name)
        .join(Sport, Team.sport_id == Sport.id)
        .join(User, Team.captain_id == User.id)
    )


def _team_to_dict(team: Team, sport_name: str, captain_name: str, member_count: int = 0) -> Dict:
    return {
        "id": team.id,
        "name": team.name,
        "sport_id": team.sport_id,
        "sport_name": sport_name,
        "captain_id": team.captain_id,
        "captain_name": captain_name,
        "member_count": member_count,
        "created_at": team.created_at.isoformat() if team.created_at else None,
    }


async def list_teams(session: AsyncSession, sport_id: Optional[int] = None) -> List[Dict]:
    query = _team_query()
    if sport_id is not None:
        query = query.where(Team.sport_id == sport_id)
    rows = (await session.execute(query.order_by(Team.name))).all()
    counts = await _member_counts(session, [t.id for t, _, _ in rows])
    return [_team_to_dict(t, s, c, counts.get(t.id, 0)) for t, s, c in rows]


async def list_my_teams(session: AsyncSession, user_id: int) -> List[Dict]:
    """Teams the user belongs to, with their role in each (Captain or Member)."""
    rows = (
        await session.execute(
            _team_query()
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.name)
        )
    ).all()
    counts = await _member_counts(session, [t.id for t, _, _ in rows])
    teams = []
    for team, sport_name, captain_name in rows:
        team_dict = _team_to_dict(team, sport_name, captain_name, counts.get(team.id, 0))
        team_dict["my_role"] = "Captain" if team.captain_id == user_id else "Member"
        teams.append(team_dict)
    return teams


async def get_team(session: AsyncSession, team_id: int) -> Dict:
    """Team detail with its member list."""
    row = (await session.execute(_team_query().where(Team.id == team_id))).first()
    if row is None:
        raise NotFoundError("Team not found")
    members = (
        await session.execute(
            select(TeamMember, User.name, User.email)
            .join(User, TeamMember.user_id == User.id)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at, TeamMember.user_id)
        )
    ).all()
    team_dict = _team_to_dict(*row, member_count=len(members))
    team_dict["members"] = [
        {
            "user_id": m.user_id,
            "name": name,
            "email": email,
            "position": m.position,
            "is_captain": m.user_id == row[0].captain_id,
            "joined_at": m.joined_at.isoformat() if m.joined_at else None,
        }
        for m, name, email in members
    ]
    return team_dict


async def _ensure_unique_name(
    session: AsyncSession, name: str, sport_id: int, exclude_id: Optional[int] = None
) -> None:
    query = select(Team.id).where(func.lower(Team.name) == name.lower(), Team.sport_id == sport_id)
    if exclude_id is not None:
        query = query.where(Team.id != exclude_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError(DUPLICATE_TEAM_MESSAGE)


async def create_team(session: AsyncSession, name: Optional[str], sport_id: Optional[int], user: Dict) -> Dict:
    """
    Create a team captained by the caller, who also becomes its first member.

    Raises:
        ValidationError: Missing name or sport
        NotFoundError: Unknown sport
        ConflictError: Same team name already used for this sport
    """
    name = (name or "").strip()
    if not name or sport_id is None:
        raise ValidationError("Team name and sport are required")
    if await session.get(Sport, sport_id) is None:
        raise NotFoundError("Sport not found")
    await _ensure_unique_name(session, name, sport_id)

    team = Team(name=name, sport_id=sport_id, captain_id=user["id"])
    session.add(team)
    try:
        await session.flush()
        session.add(TeamMember(team_id=team.id, user_id=user["id"], position="Captain"))
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(DUPLICATE_TEAM_MESSAGE)

    team_id = team.id
    await audit_service.record(
        session, user["id"], "CREATE", "Teams", team_id, new_values={"name": name, "sport_id": sport_id}
    )
    logger.info(f"Team {team_id} created by user {user['id']}")
    return await get_team(session, team_id)


async def join_team(session: AsyncSession, team_id: int, user: Dict, position: Optional[str] = None) -> Dict:
    """
    Add the caller to a team.

    Raises:
        NotFoundError: Unknown team
        ConflictError: Caller is already a member or the captain
    """
    team = await _get_team_row(session, team_id)
    if team.captain_id == user["id"]:
        raise ConflictError("You are the captain of this team")
    if await session.get(TeamMember, (team_id, user["id"])) is not None:
        raise ConflictError("You are already a member of this team")

    session.add(TeamMember(team_id=team_id, user_id=user["id"], position=position))
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("You are already a member of this team")

    captain_id = team.captain_id
    message = f"{user['name']} joined {team.name}"
    await audit_service.record(session, user["id"], "JOIN", "TeamMembers", team_id)
    await notification_service.notify(
        session, captain_id, NotificationType.TEAM_JOINED.value, "New team member", message
    )
    return await get_team(session, team_id)


async def leave_team(session: AsyncSession, team_id: int, user: Dict) -> None:
    """
    Remove the caller from a team.

    Raises:
        NotFoundError: Unknown team, or caller is not a member
        DomainError: The captain cannot leave (transfer captaincy or delete the team)
    """
    team = await _get_team_row(session, team_id)
    if team.captain_id == user["id"]:
        raise DomainError(
            "Captains cannot leave their team. Transfer captaincy or delete the team.",
            "captain_cannot_leave",
        )
    member = await session.get(TeamMember, (team_id, user["id"]))
    if member is None:
        raise NotFoundError("You are not a member of this team")
    await session.delete(member)
    await session.commit()
    await audit_service.record(session, user["id"], "LEAVE", "TeamMembers", team_id)


async def update_team(session: AsyncSession, team: Team, changes: Dict, actor_id: int) -> Dict:
    """Rename a team or change its sport, keeping (name, sport) unique."""
    name = changes.get("name")
    sport_id = changes.get("sport_id")
    if name is None and sport_id is None:
        raise ValidationError("No valid fields to update")
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Team name cannot be empty")
    if sport_id is not None and await session.get(Sport, sport_id) is None:
        raise NotFoundError("Sport not found")

    team_id = team.id
    old_values = {"name": team.name, "sport_id": team.sport_id}
    new_name = name if name is not None else team.name
    new_sport = sport_id if sport_id is not None else team.sport_id
    await _ensure_unique_name(session, new_name, new_sport, exclude_id=team_id)

    team.name = new_name
    team.sport_id = new_sport
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(DUPLICATE_TEAM_MESSAGE)

    await audit_service.record(
        session, actor_id, "UPDATE", "Teams", team_id,
        old_values=old_values, new_values={"name": new_name, "sport_id": new_sport},
    )
    return await get_team(session, team_id)


async def transfer_captaincy(session: AsyncSession, team: Team, new_captain_id: int, actor_id: int) -> Dict:
    """
    Hand the captaincy to another member.

    Raises:
        ValidationError: The new captain is not a member
    """
    team_id = team.id
    if new_captain_id == team.captain_id:
        return await get_team(session, team_id)
    new_member = await session.get(TeamMember, (team_id, new_captain_id))
    if new_member is None:
        raise ValidationError("The new captain must already be a member of the team")

    old_captain_id = team.captain_id
    old_member = await session.get(TeamMember, (team_id, old_captain_id))
    if old_member is not None and old_member.position == "Captain":
        old_member.position = None
    new_member.position = "Captain"
    team.captain_id = new_captain_id
    await session.commit()

    await audit_service.record(
        session, actor_id, "TRANSFER_CAPTAINCY", "Teams", team_id,
        old_values={"captain_id": old_captain_id}, new_values={"captain_id": new_captain_id},
    )
    return await get_team(session, team_id)


async def remove_member(session: AsyncSession, team: Team, user_id: int, actor_id: int) -> None:
    """
    Remove a member from a team (captain or admin).

    Raises:
        ValidationError: Attempt to remove the captain
        NotFoundError: The user is not a member
    """
    if user_id == team.captain_id:
        raise ValidationError("The captain cannot be removed; transfer captaincy first")
    team_id = team.id
    member = await session.get(TeamMember, (team_id, user_id))
    if member is None:
        raise NotFoundError("User is not a member of this team")
    await session.delete(member)
    await session.commit()
    await audit_service.record(
        session, actor_id, "REMOVE_MEMBER", "TeamMembers", team_id, new_values={"user_id": user_id}
    )


async def delete_team(session: AsyncSession, team: Team, actor_id: int) -> None:
    """
    Delete a team with no active bookings or upcoming matches.

    Raises:
        ConflictError: Pending/Confirmed bookings or Scheduled/Ongoing matches exist
    """
    team_id = team.id
    bookings = await session.scalar(
        select(func.count(Booking.id)).where(
            Booking.team_id == team_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES)
        )
    )
    if bookings:
        raise ConflictError("Team has active bookings and cannot be deleted")
    matches = await session.scalar(
        select(func.count(Match.id)).where(
            or_(Match.team1_id == team_id, Match.team2_id == team_id),
            Match.status.in_(ACTIVE_MATCH_STATUSES),
        )
    )
    if matches:
        raise ConflictError("Team has scheduled or ongoing matches and cannot be deleted")

    # Past matches and inactive bookings lose their reference to the team
    await session.execute(delete(Match).where(or_(Match.team1_id == team_id, Match.team2_id == team_id)))
    old_bookings = await session.execute(select(Booking).where(Booking.team_id == team_id))
    for booking in old_bookings.scalars().all():
        booking.team_id = None
    await session.execute(delete(TeamMember).where(TeamMember.team_id == team_id))

    name = team.name
    await session.delete(team)
    await session.commit()
    await audit_service.record(session, actor_id, "DELETE", "Teams", team_id, old_values={"name": name})
    logger.info(f"Team {team_id} deleted by user {actor_id}")
