"""
Venue service: catalogue, search, owner dashboards and venue CRUD.
"""

from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import delete, select, func, case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.config import get_settings
from teamtango.database.models import (
    Booking,
    BookingStatus,
    Feedback,
    Match,
    Payment,
    PaymentStatus,
    Sport,
    Timeslot,
    User,
    Venue,
)
from teamtango.services import audit_service
from teamtango.services.errors import ConflictError, NotFoundError, ValidationError
from teamtango.utils.constants import ACTIVE_BOOKING_STATUSES, ADMIN_ROLES, PLAYER, VENUE_OWNER

logger = logging.getLogger(__name__)

VENUE_FIELDS = (
    "name",
    "address",
    "location",
    "city",
    "sport_id",
    "contact_number",
    "price_per_hour",
    "description",
)


def _venue_to_dict(venue: Venue, owner_name: Optional[str] = None, sport_name: Optional[str] = None) -> Dict:
    return {
        "id": venue.id,
        "name": venue.name,
        "address": venue.address,
        "location": venue.location,
        "city": venue.city,
        "owner_id": venue.owner_id,
        "owner_name": owner_name,
        "sport_id": venue.sport_id,
        "sport_name": sport_name,
        "contact_number": venue.contact_number,
        "price_per_hour": venue.price_per_hour,
        "description": venue.description,
        "created_at": venue.created_at.isoformat() if venue.created_at else None,
    }


def _venue_query():
    return (
        select(Venue, User.name, Sport.name)
        .join(User, Venue.owner_id == User.id)
        .outerjoin(Sport, Venue.sport_id == Sport.id)
    )


async def _booking_stats(session: AsyncSession, venue_ids: Iterable[int]) -> Dict[int, Dict]:
    """Per-venue booking counts and completed-payment revenue."""
    venue_ids = list(venue_ids)
    stats = {vid: {"total_bookings": 0, "confirmed_bookings": 0, "total_revenue": 0.0} for vid in venue_ids}
    if not venue_ids:
        return stats

    counts = await session.execute(
        select(
            Booking.venue_id,
            func.count(Booking.id),
            func.sum(case((Booking.status == BookingStatus.CONFIRMED.value, 1), else_=0)),
        )
        .where(Booking.venue_id.in_(venue_ids))
        .group_by(Booking.venue_id)
    )
    for venue_id, total, confirmed in counts.all():
        stats[venue_id]["total_bookings"] = total or 0
        stats[venue_id]["confirmed_bookings"] = confirmed or 0

    revenue = await session.execute(
        select(Booking.venue_id, func.coalesce(func.sum(Payment.amount), 0))
        .join(Payment, Payment.booking_id == Booking.id)
        .where(Booking.venue_id.in_(venue_ids), Payment.status == PaymentStatus.COMPLETED.value)
        .group_by(Booking.venue_id)
    )
    for venue_id, amount in revenue.all():
        stats[venue_id]["total_revenue"] = round(float(amount or 0), 2)
    return stats


async def get_venue_row(session: AsyncSession, venue_id: int) -> Venue:
    venue = await session.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue not found")
    return venue


async def list_venues(
    session: AsyncSession, city: Optional[str] = None, sport_id: Optional[int] = None
) -> List[Dict]:
    query = _venue_query()
    if city:
        query = query.where(func.lower(Venue.city) == city.strip().lower())
    if sport_id is not None:
        query = query.where(Venue.sport_id == sport_id)
    result = await session.execute(query.order_by(Venue.name))
    return [_venue_to_dict(v, owner, sport) for v, owner, sport in result.all()]


async def search_venues(session: AsyncSession, q: Optional[str]) -> List[Dict]:
    """
    Case-insensitive substring search over venue name, location, address,
    city, owner name and sport name.

    Raises:
        ValidationError: If the search term is empty
    """
    term = (q or "").strip()
    if not term:
        raise ValidationError("Search term is required")
    pattern = f"%{term.lower()}%"
    result = await session.execute(
        _venue_query()
        .where(
            or_(
                func.lower(Venue.name).like(pattern),
                func.lower(Venue.location).like(pattern),
                func.lower(Venue.address).like(pattern),
                func.lower(Venue.city).like(pattern),
                func.lower(User.name).like(pattern),
                func.lower(Sport.name).like(pattern),
            )
        )
        .order_by(Venue.name)
    )
    return [_venue_to_dict(v, owner, sport) for v, owner, sport in result.all()]


async def get_venue(session: AsyncSession, venue_id: int) -> Dict:
    """Venue detail with booking counts and average rating."""
    result = await session.execute(_venue_query().where(Venue.id == venue_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Venue not found")
    venue_dict = _venue_to_dict(*row)
    stats = (await _booking_stats(session, [venue_id]))[venue_id]
    venue_dict["total_bookings"] = stats["total_bookings"]
    venue_dict["confirmed_bookings"] = stats["confirmed_bookings"]
    avg = await session.scalar(select(func.avg(Feedback.rating)).where(Feedback.venue_id == venue_id))
    venue_dict["average_rating"] = round(float(avg), 2) if avg is not None else None
    return venue_dict


async def get_my_venues(session: AsyncSession, user: Dict) -> List[Dict]:
    """Owner's venues (all venues for admins) with booking and revenue stats."""
    query = _venue_query()
    if user["role_id"] not in ADMIN_ROLES:
        query = query.where(Venue.owner_id == user["id"])
    result = await session.execute(query.order_by(Venue.name))
    rows = result.all()
    stats = await _booking_stats(session, [v.id for v, _, _ in rows])
    venues = []
    for venue, owner, sport in rows:
        venue_dict = _venue_to_dict(venue, owner, sport)
        venue_dict.update(stats[venue.id])
        venues.append(venue_dict)
    return venues


async def get_revenue(session: AsyncSession, user: Dict) -> Dict:
    """Per-venue revenue plus totals across the caller's venues."""
    venues = await get_my_venues(session, user)
    return {
        "venues": [
            {
                "venue_id": v["id"],
                "venue_name": v["name"],
                "total_bookings": v["total_bookings"],
                "confirmed_bookings": v["confirmed_bookings"],
                "total_revenue": v["total_revenue"],
            }
            for v in venues
        ],
        "total_venues": len(venues),
        "total_bookings": sum(v["total_bookings"] for v in venues),
        "total_revenue": round(sum(v["total_revenue"] for v in venues), 2),
    }


async def _validate_fields(session: AsyncSession, data: Dict) -> None:
    if data.get("price_per_hour") is not None and data["price_per_hour"] < 0:
        raise ValidationError("price_per_hour must be non-negative")
    if data.get("sport_id") is not None and await session.get(Sport, data["sport_id"]) is None:
        raise NotFoundError("Sport not found")


async def _ensure_unique(session: AsyncSession, name: str, address: str, exclude_id: Optional[int] = None) -> None:
    query = select(Venue.id).where(Venue.name == name, Venue.address == address)
    if exclude_id is not None:
        query = query.where(Venue.id != exclude_id)
    if (await session.execute(query)).scalar_one_or_none() is not None:
        raise ConflictError("A venue with this name and address already exists")


async def create_venue(session: AsyncSession, data: Dict, user: Dict) -> Dict:
    """
    Create a venue owned by the caller.

    Admins create on behalf of a player or venue owner named by owner_id.

    Raises:
        ValidationError: If name or address is missing, the price is negative,
            or an admin omits owner_id or names a user who cannot own venues
        ConflictError: If a venue with the same name and address exists
    """
    name = (data.get("name") or "").strip()
    address = (data.get("address") or "").strip()
    if not name or not address:
        raise ValidationError("Venue name and address are required")
    await _validate_fields(session, data)

    owner_id = user["id"]
    if user["role_id"] in ADMIN_ROLES:
        if data.get("owner_id") is None:
            raise ValidationError("owner_id is required when an admin creates a venue")
        owner = await session.get(User, data["owner_id"])
        if owner is None or owner.role_id not in (PLAYER, VENUE_OWNER):
            raise ValidationError("owner_id must reference a player or venue owner")
        owner_id = owner.id

    await _ensure_unique(session, name, address)

    venue = Venue(
        name=name,
        address=address,
        location=data.get("location"),
        city=(data.get("city") or get_settings().DEFAULT_CITY).strip(),
        owner_id=owner_id,
        sport_id=data.get("sport_id"),
        contact_number=data.get("contact_number"),
        price_per_hour=data.get("price_per_hour"),
        description=data.get("description"),
    )
    session.add(venue)
    try:
        await session.flush()
        await session.refresh(venue)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A venue with this name and address already exists")

    venue_id = venue.id
    await audit_service.record(
        session, user["id"], "CREATE", "Venues", venue_id, new_values={"name": name, "owner_id": owner_id}
    )
    logger.info(f"Venue {venue_id} created by user {user['id']}")
    return await get_venue(session, venue_id)


async def update_venue(session: AsyncSession, venue: Venue, data: Dict, actor_id: int) -> Dict:
    """Apply partial updates to a venue already authorized by the caller."""
    await _validate_fields(session, data)
    old_values = {field: getattr(venue, field) for field in VENUE_FIELDS}

    changes = {field: data[field] for field in VENUE_FIELDS if data.get(field) is not None}
    if not changes:
        raise ValidationError("No fields to update")
    for field in ("name", "address"):
        if field in changes:
            changes[field] = changes[field].strip()
            if not changes[field]:
                raise ValidationError(f"Venue {field} cannot be empty")
    await _ensure_unique(
        session, changes.get("name", venue.name), changes.get("address", venue.address), venue.id
    )

    for field, value in changes.items():
        setattr(venue, field, value)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A venue with this name and address already exists")

    venue_id = venue.id
    await audit_service.record(
        session, actor_id, "UPDATE", "Venues", venue_id, old_values=old_values, new_values=changes
    )
    return await get_venue(session, venue_id)


async def delete_venue(session: AsyncSession, venue: Venue, actor_id: int) -> None:
    """
    Delete a venue with no Pending or Confirmed bookings.

    Raises:
        ConflictError: If active bookings or matches reference the venue
    """
    active = await session.scalar(
        select(func.count(Booking.id)).where(
            Booking.venue_id == venue.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES)
        )
    )
    if active:
        raise ConflictError(f"Venue has {active} active booking(s) and cannot be deleted")

    matches = await session.scalar(select(func.count(Match.id)).where(Match.venue_id == venue.id))
    if matches:
        raise ConflictError("Venue has matches scheduled against it and cannot be deleted")

    # Finished and cancelled bookings go with the venue
    booking_ids = select(Booking.id).where(Booking.venue_id == venue.id)
    await session.execute(delete(Payment).where(Payment.booking_id.in_(booking_ids)))
    await session.execute(delete(Booking).where(Booking.venue_id == venue.id))
    await session.execute(delete(Timeslot).where(Timeslot.venue_id == venue.id))
    await session.execute(delete(Feedback).where(Feedback.venue_id == venue.id))

    venue_id, name = venue.id, venue.name
    await session.delete(venue)
    await session.commit()
    await audit_service.record(session, actor_id, "DELETE", "Venues", venue_id, old_values={"name": name})
    logger.info(f"Venue {venue_id} deleted by user {actor_id}")
