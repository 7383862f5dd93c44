"""
Booking service: timeslot allocation and the booking lifecycle.

Lifecycle: Pending -> Confirmed -> Completed, and Pending|Confirmed -> Cancelled.
Allocation (find or create the timeslot, insert booking and payment, mark the
slot taken) commits as one transaction. A partial unique index on
bookings.timeslot_id guarantees at most one non-cancelled booking per slot
even when two requests race.
"""

from datetime import date, time
from typing import Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import (
    Booking,
    BookingStatus,
    NotificationType,
    Payment,
    PaymentStatus,
    TeamMember,
    Timeslot,
    User,
    Venue,
)
from teamtango.services import audit_service, notification_service, timeslot_service
from teamtango.services.errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from teamtango.utils.constants import (
    ADMIN_ROLES,
    BOOKING_TRANSITIONS,
    DEFAULT_PAYMENT_METHOD,
    VENUE_OWNER,
)
from teamtango.utils.datetime_utils import is_in_future, parse_date, parse_time

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Timeslot is already booked"


def _booking_to_dict(
    booking: Booking,
    slot: Optional[Timeslot] = None,
    venue_name: Optional[str] = None,
    user_name: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> Dict:
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "user_name": user_name,
        "venue_id": booking.venue_id,
        "venue_name": venue_name,
        "timeslot_id": booking.timeslot_id,
        "team_id": booking.team_id,
        "booking_date": booking.booking_date.isoformat(),
        "start_time": slot.start_time.strftime("%H:%M") if slot else None,
        "end_time": slot.end_time.strftime("%H:%M") if slot else None,
        "total_amount": booking.total_amount,
        "status": booking.status,
        "payment_status": payment_status,
        "created_at": booking.created_at.isoformat() if booking.created_at else None,
    }


def _detail_query():
    return (
        select(Booking, Timeslot, Venue.name, User.name, Payment.status)
        .join(Timeslot, Booking.timeslot_id == Timeslot.id)
        .join(Venue, Booking.venue_id == Venue.id)
        .join(User, Booking.user_id == User.id)
        .outerjoin(Payment, Payment.booking_id == Booking.id)
    )


async def _fetch(session: AsyncSession, query) -> List[Dict]:
    result = await session.execute(query.order_by(Booking.booking_date.desc(), Timeslot.start_time.desc()))
    return [_booking_to_dict(*row) for row in result.all()]


async def get_booking_dict(session: AsyncSession, booking_id: int) -> Dict:
    rows = await _fetch(session, _detail_query().where(Booking.id == booking_id))
    if not rows:
        raise NotFoundError("Booking not found")
    return rows[0]


async def find_active_booking(session: AsyncSession, timeslot_id: int) -> Optional[Booking]:
    """The non-cancelled booking holding a timeslot, if any."""
    result = await session.execute(
        select(Booking).where(
            Booking.timeslot_id == timeslot_id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return result.scalars().first()


async def _load_for_caller(session: AsyncSession, booking_id: int, user: Dict):
    """
    Load a booking and classify the caller's relationship to it.

    Returns:
        (booking, venue, is_player, is_venue_owner, is_admin)

    Raises:
        NotFoundError, ForbiddenError
    """
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    venue = await session.get(Venue, booking.venue_id)
    is_player = booking.user_id == user["id"]
    is_owner = venue is not None and venue.owner_id == user["id"]
    is_admin = user["role_id"] in ADMIN_ROLES
    if not (is_player or is_owner or is_admin):
        raise ForbiddenError("You do not have access to this booking", "not_owner")
    return booking, venue, is_player, is_owner, is_admin


def _parse_slot_inputs(booking_date, start_time, end_time):
    try:
        return parse_date(booking_date), parse_time(start_time), parse_time(end_time)
    except ValueError:
        raise ValidationError("Invalid date or time format; use YYYY-MM-DD and HH:MM")


def _check_bookable(booking_date: date, start_time: time, end_time: time) -> None:
    timeslot_service.validate_interval(start_time, end_time)
    if not is_in_future(booking_date, start_time):
        raise ValidationError("Booking must be for a future date and time")


async def _claim_timeslot(
    session: AsyncSession, venue: Venue, booking_date: date, start_time: time, end_time: time
) -> Timeslot:
    """
    Find (locking) or create the timeslot and verify nobody holds it.

    Raises:
        ConflictError: If the slot is unavailable or already booked
    """
    slot = await timeslot_service.find_timeslot(
        session, venue.id, booking_date, start_time, end_time, for_update=True
    )
    if slot is not None and not slot.is_available:
        raise ConflictError("Timeslot is not available")
    if slot is None:
        slot = Timeslot(
            venue_id=venue.id,
            slot_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            price=timeslot_service.slot_price(venue, start_time, end_time),
            is_available=True,
        )
        session.add(slot)
        await session.flush()
    if await find_active_booking(session, slot.id) is not None:
        raise ConflictError(SLOT_TAKEN_MESSAGE)
    return slot


async def _check_team_member(session: AsyncSession, team_id: Optional[int], user_id: int) -> None:
    if team_id is None:
        return
    member = await session.get(TeamMember, (team_id, user_id))
    if member is None:
        raise ValidationError("You can only book for a team you belong to")


async def create_booking(
    session: AsyncSession,
    user: Dict,
    venue_id: Optional[int],
    booking_date: Union[str, date, None],
    start_time: Union[str, time, None],
    end_time: Union[str, time, None],
    team_id: Optional[int] = None,
) -> Dict:
    """
    Book a venue interval for the caller.

    Args:
        session: Database session
        user: Authenticated caller
        venue_id: Venue to book
        booking_date: Local date of play
        start_time, end_time: Interval on that date
        team_id: Optional team the booking is for (caller must be a member)

    Returns:
        The created booking dict (status Pending, with a Pending Cash payment)

    Raises:
        ValidationError: Missing inputs, empty interval, or a past start
        NotFoundError: Unknown venue
        ConflictError: Slot unavailable or already booked, including lost races
    """
    if venue_id is None or not booking_date or not start_time or not end_time:
        raise ValidationError("venue_id, booking_date, start_time and end_time are required")
    booking_date, start_time, end_time = _parse_slot_inputs(booking_date, start_time, end_time)
    _check_bookable(booking_date, start_time, end_time)

    venue = await session.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue not found")
    await _check_team_member(session, team_id, user["id"])

    try:
        slot = await _claim_timeslot(session, venue, booking_date, start_time, end_time)
        booking = Booking(
            user_id=user["id"],
            venue_id=venue.id,
            timeslot_id=slot.id,
            team_id=team_id,
            booking_date=booking_date,
            total_amount=slot.price,
            status=BookingStatus.PENDING.value,
        )
        session.add(booking)
        await session.flush()
        session.add(
            Payment(
                booking_id=booking.id,
                amount=slot.price,
                method=DEFAULT_PAYMENT_METHOD,
                status=PaymentStatus.PENDING.value,
            )
        )
        slot.is_available = False
        await session.flush()
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.info(f"Booking race lost for venue {venue_id} on {booking_date} {start_time}: {e.orig}")
        raise ConflictError(SLOT_TAKEN_MESSAGE)
    except DomainError:
        await session.rollback()
        raise

    booking_id = booking.id
    new_values = {"venue_id": venue.id, "timeslot_id": slot.id, "total_amount": slot.price}
    owner_id = venue.owner_id
    message = (
        f"{venue.name} was booked for {booking_date.isoformat()} "
        f"{start_time.strftime('%H:%M')}-{end_time.strftime('%H:%M')}"
    )
    logger.info(f"Booking {booking_id} created by user {user['id']} for venue {venue_id}")
    await audit_service.record(session, user["id"], "CREATE", "Bookings", booking_id, new_values=new_values)
    await notification_service.notify(
        session, owner_id, NotificationType.BOOKING_CREATED.value, "New booking", message
    )
    return await get_booking_dict(session, booking_id)


async def get_booking(session: AsyncSession, booking_id: int, user: Dict) -> Dict:
    """Booking detail for its player, the venue owner or an admin."""
    await _load_for_caller(session, booking_id, user)
    return await get_booking_dict(session, booking_id)


async def list_bookings(session: AsyncSession, user: Dict) -> List[Dict]:
    """Players see their own bookings, venue owners their venues', admins all."""
    query = _detail_query()
    if user["role_id"] == VENUE_OWNER:
        query = query.where(Venue.owner_id == user["id"])
    elif user["role_id"] not in ADMIN_ROLES:
        query = query.where(Booking.user_id == user["id"])
    return await _fetch(session, query)


async def list_user_bookings(session: AsyncSession, user_id: int) -> List[Dict]:
    return await _fetch(session, _detail_query().where(Booking.user_id == user_id))


async def list_venue_bookings(session: AsyncSession, venue_id: int) -> List[Dict]:
    return await _fetch(session, _detail_query().where(Booking.venue_id == venue_id))


async def _reschedule(
    session: AsyncSession, booking: Booking, venue: Venue, start_time: time, end_time: time
) -> None:
    """Move a Pending booking onto another interval of the same venue and date."""
    old_slot = await session.get(Timeslot, booking.timeslot_id)
    if old_slot.start_time == start_time and old_slot.end_time == end_time:
        return
    _check_bookable(booking.booking_date, start_time, end_time)

    new_slot = await _claim_timeslot(session, venue, booking.booking_date, start_time, end_time)
    old_slot.is_available = True
    new_slot.is_available = False
    booking.timeslot_id = new_slot.id
    booking.total_amount = new_slot.price

    payment = (
        await session.execute(select(Payment).where(Payment.booking_id == booking.id))
    ).scalar_one_or_none()
    if payment is not None and payment.status == PaymentStatus.PENDING.value:
        payment.amount = new_slot.price


async def update_booking(session: AsyncSession, booking_id: int, changes: Dict, user: Dict) -> Dict:
    """
    Change a booking's status, time or team.

    Status changes are reserved to the venue owner and admins and must follow
    the lifecycle. Time and team changes are reserved to the booking's player
    while the booking is Pending.

    Args:
        changes: Any of status, start_time, end_time, team_id

    Raises:
        ForbiddenError: Caller not allowed to make the requested change
        InvalidStateError: Transition not allowed from the current status
        ValidationError: Nothing to change or malformed input
        ConflictError: Target interval unavailable
    """
    booking, venue, is_player, is_owner, is_admin = await _load_for_caller(session, booking_id, user)

    new_status = changes.get("status")
    start_time = changes.get("start_time")
    end_time = changes.get("end_time")
    team_id = changes.get("team_id")
    wants_time = start_time is not None or end_time is not None
    if new_status is None and not wants_time and team_id is None:
        raise ValidationError("No changes supplied")

    if new_status is not None:
        if not (is_owner or is_admin):
            raise ForbiddenError("Only the venue owner or an admin can change booking status", "not_owner")
        if new_status not in BOOKING_TRANSITIONS:
            raise ValidationError(f"Unknown booking status '{new_status}'")
        if new_status == BookingStatus.CANCELLED.value and not wants_time and team_id is None:
            return await cancel_booking(session, booking_id, user)
        if new_status != booking.status and new_status not in BOOKING_TRANSITIONS[booking.status]:
            raise InvalidStateError(f"Cannot change booking from {booking.status} to {new_status}")

    if wants_time or team_id is not None:
        if not is_player:
            raise ForbiddenError("Only the booking's player can change its time or team", "not_owner")
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidStateError("Only pending bookings can be changed")

    old_values = {"status": booking.status, "timeslot_id": booking.timeslot_id, "team_id": booking.team_id}
    try:
        if wants_time:
            slot = await session.get(Timeslot, booking.timeslot_id)
            _, start, end = _parse_slot_inputs(
                booking.booking_date,
                start_time if start_time is not None else slot.start_time,
                end_time if end_time is not None else slot.end_time,
            )
            await _reschedule(session, booking, venue, start, end)
        if team_id is not None:
            await _check_team_member(session, team_id, booking.user_id)
            booking.team_id = team_id
        if new_status is not None and new_status != booking.status:
            if new_status == BookingStatus.CANCELLED.value:
                await _release(session, booking)
            booking.status = new_status
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(SLOT_TAKEN_MESSAGE)
    except DomainError:
        await session.rollback()
        raise

    new_values = {"status": booking.status, "timeslot_id": booking.timeslot_id, "team_id": booking.team_id}
    player_id = booking.user_id
    message = f"Your booking #{booking_id} at {venue.name} is now {new_status}"
    await audit_service.record(
        session, user["id"], "UPDATE", "Bookings", booking_id, old_values=old_values, new_values=new_values
    )
    if new_status is not None and new_status != old_values["status"]:
        await notification_service.notify(
            session, player_id, NotificationType.BOOKING_STATUS.value, "Booking updated", message
        )
    return await get_booking_dict(session, booking_id)


async def _release(session: AsyncSession, booking: Booking) -> None:
    """Make the booking's timeslot available again."""
    slot = await session.get(Timeslot, booking.timeslot_id)
    if slot is not None:
        slot.is_available = True


async def cancel_booking(session: AsyncSession, booking_id: int, user: Dict) -> Dict:
    """
    Cancel a booking and release its timeslot.

    The booking row is kept with status Cancelled. Cancelling an already
    cancelled booking returns it unchanged.

    Raises:
        ForbiddenError: Caller is not the player, venue owner or an admin
        InvalidStateError: The booking is Completed
    """
    booking, venue, is_player, _, _ = await _load_for_caller(session, booking_id, user)

    if booking.status == BookingStatus.CANCELLED.value:
        return await get_booking_dict(session, booking_id)
    if booking.status == BookingStatus.COMPLETED.value:
        raise InvalidStateError("Completed bookings cannot be cancelled")

    old_status = booking.status
    booking.status = BookingStatus.CANCELLED.value
    await _release(session, booking)
    await session.flush()
    await session.commit()

    recipient = venue.owner_id if is_player else booking.user_id
    message = f"Booking #{booking_id} at {venue.name} on {booking.booking_date.isoformat()} was cancelled"
    logger.info(f"Booking {booking_id} cancelled by user {user['id']}")
    await audit_service.record(
        session, user["id"], "CANCEL", "Bookings", booking_id,
        old_values={"status": old_status}, new_values={"status": BookingStatus.CANCELLED.value},
    )
    await notification_service.notify(
        session, recipient, NotificationType.BOOKING_CANCELLED.value, "Booking cancelled", message
    )
    return await get_booking_dict(session, booking_id)
