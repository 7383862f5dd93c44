"""
Sport catalogue operations.
"""

from typing import Dict, List
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Sport, Team, Venue
from teamtango.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _sport_to_dict(sport: Sport) -> Dict:
    return {"id": sport.id, "name": sport.name}


async def list_sports(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Sport).order_by(Sport.name))
    return [_sport_to_dict(s) for s in result.scalars().all()]


async def get_sport(session: AsyncSession, sport_id: int) -> Dict:
    sport = await session.get(Sport, sport_id)
    if sport is None:
        raise NotFoundError("Sport not found")
    return _sport_to_dict(sport)


async def _save(session: AsyncSession, sport: Sport) -> Dict:
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(f"Sport '{sport.name}' already exists")
    return _sport_to_dict(sport)


async def create_sport(session: AsyncSession, name: str) -> Dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Sport name is required")
    existing = await session.execute(select(Sport.id).where(func.lower(Sport.name) == name.lower()))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Sport '{name}' already exists")
    sport = Sport(name=name)
    session.add(sport)
    return await _save(session, sport)


async def update_sport(session: AsyncSession, sport_id: int, name: str) -> Dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Sport name is required")
    sport = await session.get(Sport, sport_id)
    if sport is None:
        raise NotFoundError("Sport not found")
    sport.name = name
    return await _save(session, sport)


async def delete_sport(session: AsyncSession, sport_id: int) -> None:
    """
    Delete a sport that no venue or team references.

    Raises:
        NotFoundError: If the sport does not exist
        ConflictError: If venues or teams still use it
    """
    sport = await session.get(Sport, sport_id)
    if sport is None:
        raise NotFoundError("Sport not found")
    venues = await session.scalar(select(func.count(Venue.id)).where(Venue.sport_id == sport_id))
    teams = await session.scalar(select(func.count(Team.id)).where(Team.sport_id == sport_id))
    if venues or teams:
        raise ConflictError("Sport is used by venues or teams and cannot be deleted")
    await session.delete(sport)
    await session.commit()
