"""Booking route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import is_admin, require_policy, require_venue_ownership
from teamtango.database.db import get_db_session
from teamtango.models.schemas import BookingCreate, BookingResponse, BookingUpdate
from teamtango.services import booking_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/bookings", response_model=List[BookingResponse])
async def list_bookings(
    user: dict = Depends(require_policy("bookings", "list")),
    session: AsyncSession = Depends(get_db_session),
):
    """
    List bookings visible to the caller.

    Players see their own bookings, venue owners see bookings of their venues
    and admins see everything.
    """
    try:
        return await booking_service.list_bookings(session, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error listing bookings for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error fetching bookings")


@router.get("/api/bookings/my", response_model=List[BookingResponse])
async def get_my_bookings(
    user_id: Optional[int] = None,
    user: dict = Depends(require_policy("bookings", "mine")),
    session: AsyncSession = Depends(get_db_session),
):
    """Caller's own bookings. Admins may pass user_id to view another player's."""
    target = user_id if user_id is not None and is_admin(user) else user["id"]
    return await booking_service.list_user_bookings(session, target)


@router.get("/api/bookings/venue/{venue_id}", response_model=List[BookingResponse])
async def get_bookings_for_venue(
    venue_id: int,
    user: dict = Depends(require_policy("venues", "dashboard")),
    session: AsyncSession = Depends(get_db_session),
):
    await require_venue_ownership(session, venue_id, user)
    return await booking_service.list_venue_bookings(session, venue_id)


@router.get("/api/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    user: dict = Depends(require_policy("bookings", "list")),
    session: AsyncSession = Depends(get_db_session),
):
    return await booking_service.get_booking(session, booking_id, user)


@router.post("/api/bookings", response_model=BookingResponse, status_code=201)
async def create_booking(
    payload: BookingCreate,
    user: dict = Depends(require_policy("bookings", "create")),
    session: AsyncSession = Depends(get_db_session),
):
    """Book a venue for a future interval. The slot is created on demand."""
    try:
        return await booking_service.create_booking(
            session,
            user,
            venue_id=payload.venue_id,
            booking_date=payload.booking_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            team_id=payload.team_id,
        )
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error creating booking for user {user['id']}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating booking")


@router.put("/api/bookings/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    payload: BookingUpdate,
    user: dict = Depends(require_policy("bookings", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    """Change booking status, reschedule within the same day, or attach a team."""
    try:
        return await booking_service.update_booking(
            session, booking_id, payload.model_dump(exclude_unset=True), user
        )
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error updating booking {booking_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error updating booking")


@router.delete("/api/bookings/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    user: dict = Depends(require_policy("bookings", "cancel")),
    session: AsyncSession = Depends(get_db_session),
):
    """Cancel a booking and release its timeslot."""
    try:
        return await booking_service.cancel_booking(session, booking_id, user)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error cancelling booking {booking_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error cancelling booking")
