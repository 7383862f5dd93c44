"""
Payment service: settling and refunding booking payments.

Each booking has at most one payment row (unique booking_id). Settling a
payment confirms the booking; refunding it cancels the booking and releases
the timeslot. Both run as a single transaction.
"""

from typing import Dict, List, Optional
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
    Timeslot,
    Venue,
)
from teamtango.services import audit_service, booking_service, notification_service
from teamtango.services.errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from teamtango.utils.constants import ADMIN_ROLES, PAYMENT_METHODS, VENUE_OWNER
from teamtango.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

PAYABLE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def _payment_to_dict(payment: Payment, booking: Optional[Booking] = None, venue_name: Optional[str] = None) -> Dict:
    return {
        "id": payment.id,
        "booking_id": payment.booking_id,
        "user_id": booking.user_id if booking else None,
        "venue_id": booking.venue_id if booking else None,
        "venue_name": venue_name,
        "booking_status": booking.status if booking else None,
        "amount": payment.amount,
        "method": payment.method,
        "status": payment.status,
        "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
        "refund_reason": payment.refund_reason,
        "created_at": payment.created_at.isoformat() if payment.created_at else None,
    }


def _detail_query():
    return (
        select(Payment, Booking, Venue.name)
        .join(Booking, Payment.booking_id == Booking.id)
        .join(Venue, Booking.venue_id == Venue.id)
    )


async def _get_payment_dict(session: AsyncSession, payment_id: int) -> Dict:
    result = await session.execute(_detail_query().where(Payment.id == payment_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Payment not found")
    return _payment_to_dict(*row)


async def _locked(session: AsyncSession, query):
    """Load one row under a row lock, refreshing any stale copy in the session."""
    result = await session.execute(query.with_for_update().execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def process_payment(
    session: AsyncSession,
    booking_id: Optional[int],
    method: Optional[str],
    amount: Optional[float],
    user: Dict,
) -> Dict:
    """
    Settle a booking's payment and confirm the booking.

    Args:
        session: Database session
        booking_id: Booking being paid for
        method: One of Cash, Card, UPI, NetBanking, Wallet
        amount: Must equal the booking's total
        user: Authenticated caller (booking's player or an admin)

    Returns:
        The completed payment dict

    Raises:
        ValidationError: Missing input, unknown method or wrong amount
        NotFoundError: Unknown booking
        ForbiddenError: Caller does not own the booking
        InvalidStateError: Booking is Cancelled or Completed
        ConflictError: Payment already completed or refunded
    """
    if booking_id is None or amount is None or not method:
        raise ValidationError("booking_id, amount and method are required")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {', '.join(PAYMENT_METHODS)}")

    booking = await _locked(session, select(Booking).where(Booking.id == booking_id))
    if booking is None:
        raise NotFoundError("Booking not found")
    if booking.user_id != user["id"] and user["role_id"] not in ADMIN_ROLES:
        raise ForbiddenError("You can only pay for your own bookings", "not_owner")
    if booking.status not in PAYABLE_BOOKING_STATUSES:
        raise InvalidStateError(f"Cannot pay for a {booking.status} booking")
    if round(float(amount), 2) != round(booking.total_amount, 2):
        raise ValidationError(f"Payment amount must equal the booking total of {booking.total_amount:.2f}")

    existing = await _locked(session, select(Payment).where(Payment.booking_id == booking.id))
    if existing is not None and existing.status in (
        PaymentStatus.COMPLETED.value,
        PaymentStatus.REFUNDED.value,
    ):
        raise ConflictError(f"Payment for this booking is already {existing.status}")

    try:
        payment = existing
        if payment is None:
            payment = Payment(booking_id=booking.id)
            session.add(payment)
        payment.amount = booking.total_amount
        payment.method = method
        payment.status = PaymentStatus.COMPLETED.value
        payment.payment_date = utcnow()
        booking.status = BookingStatus.CONFIRMED.value
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Payment for this booking was already processed")
    except DomainError:
        await session.rollback()
        raise

    payment_id = payment.id
    player_id = booking.user_id
    message = f"Payment of {payment.amount:.2f} received; booking #{booking_id} is confirmed"
    logger.info(f"Payment {payment_id} completed for booking {booking_id}")
    await audit_service.record(
        session, user["id"], "PAYMENT", "Payments", payment_id,
        new_values={"booking_id": booking_id, "amount": payment.amount, "method": method},
    )
    await notification_service.notify(
        session, player_id, NotificationType.PAYMENT_COMPLETED.value, "Payment received", message
    )
    return await _get_payment_dict(session, payment_id)


async def refund_payment(session: AsyncSession, payment_id: int, reason: Optional[str], user: Dict) -> Dict:
    """
    Refund a completed payment, cancel its booking and release the timeslot.

    A booking that was already cancelled keeps its state; its slot was released
    at cancellation and may belong to a newer booking by now.

    Raises:
        NotFoundError: Unknown payment
        InvalidStateError: Payment is not Completed, or the booking is Completed
    """
    payment = await _locked(session, select(Payment).where(Payment.id == payment_id))
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.COMPLETED.value:
        raise InvalidStateError(f"Only completed payments can be refunded (status is {payment.status})")

    booking = await _locked(session, select(Booking).where(Booking.id == payment.booking_id))
    if booking.status == BookingStatus.COMPLETED.value:
        raise InvalidStateError("Cannot refund a payment for a Completed booking")

    try:
        payment.status = PaymentStatus.REFUNDED.value
        payment.refund_reason = reason or "Refund requested"
        if booking.status != BookingStatus.CANCELLED.value:
            booking.status = BookingStatus.CANCELLED.value
            await session.flush()
            slot = await _locked(session, select(Timeslot).where(Timeslot.id == booking.timeslot_id))
            if slot is not None and await booking_service.find_active_booking(session, slot.id) is None:
                slot.is_available = True
        await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    booking_id = booking.id
    player_id = booking.user_id
    amount = payment.amount
    logger.info(f"Payment {payment_id} refunded by user {user['id']}")
    await audit_service.record(
        session, user["id"], "REFUND", "Payments", payment_id,
        details=reason, new_values={"booking_id": booking_id, "amount": amount},
    )
    await notification_service.notify(
        session,
        player_id,
        NotificationType.PAYMENT_REFUNDED.value,
        "Payment refunded",
        f"Your payment of {amount:.2f} for booking #{booking_id} was refunded",
    )
    return await _get_payment_dict(session, payment_id)


async def list_payments(session: AsyncSession, user: Dict) -> List[Dict]:
    """Players see their payments, venue owners their venues', admins all."""
    query = _detail_query()
    if user["role_id"] == VENUE_OWNER:
        query = query.where(Venue.owner_id == user["id"])
    elif user["role_id"] not in ADMIN_ROLES:
        query = query.where(Booking.user_id == user["id"])
    result = await session.execute(query.order_by(Payment.id.desc()))
    return [_payment_to_dict(*row) for row in result.all()]


async def get_payment(session: AsyncSession, payment_id: int, user: Dict) -> Dict:
    """Payment detail for the payer, the venue owner or an admin."""
    result = await session.execute(
        select(Payment, Booking, Venue)
        .join(Booking, Payment.booking_id == Booking.id)
        .join(Venue, Booking.venue_id == Venue.id)
        .where(Payment.id == payment_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("Payment not found")
    payment, booking, venue = row
    if user["role_id"] not in ADMIN_ROLES and user["id"] not in (booking.user_id, venue.owner_id):
        raise ForbiddenError("You do not have access to this payment", "not_owner")
    return _payment_to_dict(payment, booking, venue.name)
