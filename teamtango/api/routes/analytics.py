"""Reporting route handlers."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.services import analytics_service
from teamtango.services.errors import DomainError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/analytics/venue-utilization")
async def venue_utilization(
    user: dict = Depends(require_policy("analytics", "reports")),
    session: AsyncSession = Depends(get_db_session),
):
    """Slot utilisation per venue and day over the last 30 days."""
    try:
        return await analytics_service.venue_utilization(session, user)
    except Exception as e:
        logger.error(f"Error computing venue utilization: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error computing venue utilization")


@router.get("/api/analytics/popular-sports")
async def popular_sports(session: AsyncSession = Depends(get_db_session)):
    return await analytics_service.popular_sports(session)


@router.get("/api/analytics/peak-hours")
async def peak_hours(
    user: dict = Depends(require_policy("analytics", "reports")),
    session: AsyncSession = Depends(get_db_session),
):
    """Bookings per start hour, busiest first."""
    try:
        return await analytics_service.peak_hours(session, user)
    except Exception as e:
        logger.error(f"Error computing peak hours: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error computing peak hours")


@router.get("/api/analytics/booking-summaries")
async def booking_summaries(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    user: dict = Depends(require_policy("analytics", "summaries")),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await analytics_service.booking_summaries(session, user, status=status, user_id=user_id)
    except DomainError:
        raise
    except Exception as e:
        logger.error(f"Error building booking summaries: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error building booking summaries")


@router.get("/api/analytics/available-timeslots")
async def available_timeslots(
    sport: Optional[str] = None,
    slot_date: Optional[date] = Query(None, alias="date"),
    session: AsyncSession = Depends(get_db_session),
):
    """Open timeslots from today on, filterable by sport name and date."""
    return await analytics_service.available_timeslots(session, sport=sport, slot_date=slot_date)


@router.get("/api/analytics/profiles")
async def user_profiles(
    user: dict = Depends(require_policy("analytics", "profiles")),
    session: AsyncSession = Depends(get_db_session),
):
    return await analytics_service.user_profiles(session)
