"""
Timeslot listing, creation and pricing.
"""

from datetime import date, time
from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.config import get_settings
from teamtango.database.models import Timeslot, Venue
from teamtango.services.errors import ConflictError, ValidationError
from teamtango.utils.datetime_utils import hours_between

logger = logging.getLogger(__name__)


def timeslot_to_dict(slot: Timeslot) -> Dict:
    return {
        "id": slot.id,
        "venue_id": slot.venue_id,
        "slot_date": slot.slot_date.isoformat(),
        "start_time": slot.start_time.strftime("%H:%M"),
        "end_time": slot.end_time.strftime("%H:%M"),
        "price": slot.price,
        "is_available": slot.is_available,
    }


def slot_price(venue: Venue, start_time: time, end_time: time) -> float:
    """Hourly rate (venue's, else the default) times duration, rounded to paise."""
    rate = venue.price_per_hour if venue.price_per_hour is not None else get_settings().DEFAULT_HOURLY_RATE
    return round(rate * hours_between(start_time, end_time), 2)


def validate_interval(start_time: Optional[time], end_time: Optional[time]) -> None:
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")


async def find_timeslot(
    session: AsyncSession,
    venue_id: int,
    slot_date: date,
    start_time: time,
    end_time: time,
    for_update: bool = False,
) -> Optional[Timeslot]:
    """Exact-match lookup; with for_update the row is locked until commit."""
    query = select(Timeslot).where(
        Timeslot.venue_id == venue_id,
        Timeslot.slot_date == slot_date,
        Timeslot.start_time == start_time,
        Timeslot.end_time == end_time,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_timeslots(
    session: AsyncSession,
    venue_id: int,
    slot_date: Optional[date] = None,
    available: Optional[bool] = None,
) -> List[Dict]:
    query = select(Timeslot).where(Timeslot.venue_id == venue_id)
    if slot_date is not None:
        query = query.where(Timeslot.slot_date == slot_date)
    if available is not None:
        query = query.where(Timeslot.is_available == available)
    result = await session.execute(query.order_by(Timeslot.slot_date, Timeslot.start_time))
    return [timeslot_to_dict(s) for s in result.scalars().all()]


async def create_timeslot(
    session: AsyncSession,
    venue: Venue,
    slot_date: date,
    start_time: time,
    end_time: time,
    price: Optional[float] = None,
) -> Dict:
    """
    Publish a timeslot for a venue.

    Raises:
        ValidationError: If the interval is empty or the price negative
        ConflictError: If the same interval already exists
    """
    validate_interval(start_time, end_time)
    if price is not None and price < 0:
        raise ValidationError("price must be non-negative")
    if await find_timeslot(session, venue.id, slot_date, start_time, end_time) is not None:
        raise ConflictError("Timeslot already exists")

    slot = Timeslot(
        venue_id=venue.id,
        slot_date=slot_date,
        start_time=start_time,
        end_time=end_time,
        price=price if price is not None else slot_price(venue, start_time, end_time),
        is_available=True,
    )
    session.add(slot)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Timeslot already exists")
    return timeslot_to_dict(slot)
