"""Venue and timeslot route handlers."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy, require_venue_ownership
from teamtango.database.db import get_db_session
from teamtango.models.schemas import TimeslotCreate, VenueCreate, VenueUpdate
from teamtango.services import booking_service, timeslot_service, venue_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/venues")
async def list_venues(
    city: Optional[str] = None,
    sport_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """List venues, optionally filtered by city or sport."""
    return await venue_service.list_venues(session, city=city, sport_id=sport_id)


@router.get("/api/venues/search")
async def search_venues(q: Optional[str] = None, session: AsyncSession = Depends(get_db_session)):
    """Search venues by name, area, address, city, owner or sport."""
    return await venue_service.search_venues(session, q)


@router.get("/api/venues/my")
async def get_my_venues(
    user: dict = Depends(require_policy("venues", "dashboard")),
    session: AsyncSession = Depends(get_db_session),
):
    """Caller's venues with booking and revenue totals (all venues for admins)."""
    try:
        return await venue_service.get_my_venues(session, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error fetching venues for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching venues")


@router.get("/api/venues/revenue")
async def get_revenue(
    user: dict = Depends(require_policy("venues", "dashboard")),
    session: AsyncSession = Depends(get_db_session),
):
    """Revenue from completed payments per venue."""
    try:
        return await venue_service.get_revenue(session, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error computing revenue for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error computing revenue")


@router.get("/api/venues/{venue_id}")
async def get_venue(venue_id: int, session: AsyncSession = Depends(get_db_session)):
    return await venue_service.get_venue(session, venue_id)


@router.post("/api/venues", status_code=201)
async def create_venue(
    payload: VenueCreate,
    user: dict = Depends(require_policy("venues", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a venue owned by the caller (admins may set owner_id)."""
    try:
        return await venue_service.create_venue(session, payload.model_dump(), user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error creating venue: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating venue")


@router.put("/api/venues/{venue_id}")
async def update_venue(
    venue_id: int,
    payload: VenueUpdate,
    user: dict = Depends(require_policy("venues", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a venue (owner or admin)."""
    venue = await require_venue_ownership(session, venue_id, user)
    try:
        return await venue_service.update_venue(session, venue, payload.model_dump(exclude_unset=True), user["id"])
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error updating venue {venue_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error updating venue")


@router.delete("/api/venues/{venue_id}")
async def delete_venue(
    venue_id: int,
    user: dict = Depends(require_policy("venues", "delete")),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a venue with no active bookings (owner or admin)."""
    venue = await require_venue_ownership(session, venue_id, user)
    await venue_service.delete_venue(session, venue, user["id"])
    return {"success": True, "message": "Venue deleted"}


@router.get("/api/venues/{venue_id}/bookings")
async def get_venue_bookings(
    venue_id: int,
    user: dict = Depends(require_policy("venues", "dashboard")),
    session: AsyncSession = Depends(get_db_session),
):
    """All bookings of a venue (owner or admin)."""
    await require_venue_ownership(session, venue_id, user)
    return await booking_service.list_venue_bookings(session, venue_id)


@router.get("/api/venues/{venue_id}/timeslots")
async def list_timeslots(
    venue_id: int,
    slot_date: Optional[date] = Query(None, alias="date"),
    available: Optional[bool] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Timeslots of a venue, optionally for one date or only open ones."""
    await venue_service.get_venue_row(session, venue_id)
    return await timeslot_service.list_timeslots(session, venue_id, slot_date=slot_date, available=available)


@router.post("/api/venues/{venue_id}/timeslots", status_code=201)
async def create_timeslot(
    venue_id: int,
    payload: TimeslotCreate,
    user: dict = Depends(require_policy("timeslots", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Publish a timeslot (venue owner or admin). Price defaults to hourly rate times duration."""
    venue = await require_venue_ownership(session, venue_id, user)
    return await timeslot_service.create_timeslot(
        session, venue, payload.slot_date, payload.start_time, payload.end_time, payload.price
    )
