"""
Read-only reporting over bookings, timeslots and venues.

Hour and date bucketing is done in Python so the same queries run on
PostgreSQL and SQLite.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Booking, BookingStatus, Role, Sport, Timeslot, User, Venue
from teamtango.services import booking_service
from teamtango.utils.constants import ADMIN_ROLES, VENUE_OWNER
from teamtango.utils.datetime_utils import local_now

logger = logging.getLogger(__name__)

UTILIZATION_WINDOW_DAYS = 30


def _scope_to_owner(query, user: Dict):
    if user["role_id"] == VENUE_OWNER:
        return query.where(Venue.owner_id == user["id"])
    return query


async def venue_utilization(session: AsyncSession, user: Dict) -> List[Dict]:
    """Per venue and day over the last 30 days: total slots, booked slots, utilisation %."""
    since = local_now().date() - timedelta(days=UTILIZATION_WINDOW_DAYS)
    query = (
        select(Venue.id, Venue.name, Timeslot.slot_date, Timeslot.is_available)
        .join(Timeslot, Timeslot.venue_id == Venue.id)
        .where(Timeslot.slot_date >= since)
    )
    result = await session.execute(_scope_to_owner(query, user))

    buckets = defaultdict(lambda: {"total_slots": 0, "booked_slots": 0})
    names = {}
    for venue_id, venue_name, slot_date, is_available in result.all():
        names[venue_id] = venue_name
        bucket = buckets[(venue_id, slot_date)]
        bucket["total_slots"] += 1
        if not is_available:
            bucket["booked_slots"] += 1

    rows = []
    for (venue_id, slot_date), bucket in sorted(buckets.items(), key=lambda kv: (names[kv[0][0]], kv[0][1])):
        rows.append(
            {
                "venue_id": venue_id,
                "venue_name": names[venue_id],
                "date": slot_date.isoformat(),
                "total_slots": bucket["total_slots"],
                "booked_slots": bucket["booked_slots"],
                "utilization_percent": round(100.0 * bucket["booked_slots"] / bucket["total_slots"], 2),
            }
        )
    return rows


async def popular_sports(session: AsyncSession) -> List[Dict]:
    """Non-cancelled bookings and venue count per sport, most booked first."""
    result = await session.execute(
        select(
            Sport.id,
            Sport.name,
            func.count(func.distinct(Venue.id)),
            func.count(Booking.id),
        )
        .outerjoin(Venue, Venue.sport_id == Sport.id)
        .outerjoin(
            Booking,
            (Booking.venue_id == Venue.id) & (Booking.status != BookingStatus.CANCELLED.value),
        )
        .group_by(Sport.id, Sport.name)
    )
    rows = [
        {"sport_id": sid, "sport_name": name, "venue_count": venues or 0, "total_bookings": bookings or 0}
        for sid, name, venues, bookings in result.all()
    ]
    rows.sort(key=lambda r: (-r["total_bookings"], r["sport_name"]))
    return rows


async def peak_hours(session: AsyncSession, user: Dict) -> List[Dict]:
    """Non-cancelled bookings grouped by start hour and sport."""
    query = (
        select(Timeslot.start_time, Sport.name)
        .select_from(Booking)
        .join(Timeslot, Booking.timeslot_id == Timeslot.id)
        .join(Venue, Booking.venue_id == Venue.id)
        .outerjoin(Sport, Venue.sport_id == Sport.id)
        .where(Booking.status != BookingStatus.CANCELLED.value)
    )
    result = await session.execute(_scope_to_owner(query, user))

    counts = defaultdict(int)
    for start_time, sport_name in result.all():
        counts[(start_time.hour, sport_name or "Unspecified")] += 1
    rows = [
        {"hour": hour, "sport_name": sport, "booking_count": count}
        for (hour, sport), count in counts.items()
    ]
    rows.sort(key=lambda r: (-r["booking_count"], r["hour"], r["sport_name"]))
    return rows


async def booking_summaries(
    session: AsyncSession, user: Dict, status: Optional[str] = None, user_id: Optional[int] = None
) -> List[Dict]:
    """
    Booking rows for reporting.

    Players only ever see their own bookings; venue owners see their venues'.
    """
    if user["role_id"] not in ADMIN_ROLES and user["role_id"] != VENUE_OWNER:
        user_id = user["id"]
    bookings = await booking_service.list_bookings(session, user)
    if status:
        bookings = [b for b in bookings if b["status"] == status]
    if user_id is not None:
        bookings = [b for b in bookings if b["user_id"] == user_id]
    return bookings


async def available_timeslots(
    session: AsyncSession, sport: Optional[str] = None, slot_date: Optional[date] = None
) -> List[Dict]:
    """Open timeslots from today on, optionally filtered by sport name and date."""
    query = (
        select(Timeslot, Venue.name, Venue.location, Sport.name)
        .join(Venue, Timeslot.venue_id == Venue.id)
        .outerjoin(Sport, Venue.sport_id == Sport.id)
        .where(Timeslot.is_available == True)  # noqa: E712
        .where(Timeslot.slot_date >= local_now().date())
    )
    if sport:
        query = query.where(func.lower(Sport.name) == sport.strip().lower())
    if slot_date is not None:
        query = query.where(Timeslot.slot_date == slot_date)
    result = await session.execute(query.order_by(Timeslot.slot_date, Timeslot.start_time, Venue.name))
    return [
        {
            "timeslot_id": slot.id,
            "venue_id": slot.venue_id,
            "venue_name": venue_name,
            "location": location,
            "sport_name": sport_name,
            "slot_date": slot.slot_date.isoformat(),
            "start_time": slot.start_time.strftime("%H:%M"),
            "end_time": slot.end_time.strftime("%H:%M"),
            "price": slot.price,
        }
        for slot, venue_name, location, sport_name in result.all()
    ]


async def user_profiles(session: AsyncSession) -> List[Dict]:
    """Every user with role name and number of bookings."""
    booking_counts = (
        select(Booking.user_id, func.count(Booking.id).label("booking_count"))
        .group_by(Booking.user_id)
        .subquery()
    )
    result = await session.execute(
        select(User, Role.name, booking_counts.c.booking_count)
        .join(Role, User.role_id == Role.id)
        .outerjoin(booking_counts, booking_counts.c.user_id == User.id)
        .order_by(User.name)
    )
    return [
        {
            "user_id": u.id,
            "name": u.name,
            "email": u.email,
            "role_name": role_name,
            "booking_count": count or 0,
        }
        for u, role_name, count in result.all()
    ]
