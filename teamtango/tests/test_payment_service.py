"""
Tests for settling and refunding booking payments.
"""
import pytest
from sqlalchemy import select

from teamtango.database import db
from teamtango.database.models import Booking, Notification, Payment, Timeslot
from teamtango.services import booking_service, payment_service
from teamtango.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


async def _pending_booking(session, player, venue, play_date):
    return await booking_service.create_booking(
        session, player, venue["id"], play_date.isoformat(), "18:00", "19:00"
    )


@pytest.mark.asyncio
async def test_payment_confirms_booking(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, booking["id"], "UPI", 1000, player)

    assert payment["status"] == "Completed"
    assert payment["method"] == "UPI"
    assert payment["booking_status"] == "Confirmed"
    assert payment["payment_date"] is not None

    notes = (
        await db_session.execute(select(Notification).where(Notification.user_id == player["id"]))
    ).scalars().all()
    assert any(n.type == "payment_completed" for n in notes)


@pytest.mark.asyncio
async def test_payment_amount_must_match(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    with pytest.raises(ValidationError, match="1000.00"):
        await payment_service.process_payment(db_session, booking["id"], "Cash", 999, player)


@pytest.mark.asyncio
async def test_payment_method_must_be_known(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    with pytest.raises(ValidationError):
        await payment_service.process_payment(db_session, booking["id"], "Bitcoin", 1000, player)


@pytest.mark.asyncio
async def test_second_payment_conflicts(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    await payment_service.process_payment(db_session, booking["id"], "Card", 1000, player)
    with pytest.raises(ConflictError):
        await payment_service.process_payment(db_session, booking["id"], "Card", 1000, player)


@pytest.mark.asyncio
async def test_cannot_pay_for_someone_elses_booking(db_session, player, other_player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    with pytest.raises(ForbiddenError):
        await payment_service.process_payment(db_session, booking["id"], "Cash", 1000, other_player)


@pytest.mark.asyncio
async def test_cannot_pay_for_cancelled_booking(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    await booking_service.cancel_booking(db_session, booking["id"], player)
    with pytest.raises(InvalidStateError):
        await payment_service.process_payment(db_session, booking["id"], "Cash", 1000, player)


@pytest.mark.asyncio
async def test_unknown_booking(db_session, player):
    with pytest.raises(NotFoundError):
        await payment_service.process_payment(db_session, 4242, "Cash", 100, player)


@pytest.mark.asyncio
async def test_refund_cancels_booking_and_frees_slot(db_session, player, admin, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, booking["id"], "Wallet", 1000, player)

    refunded = await payment_service.refund_payment(db_session, payment["id"], "Rain", admin)

    assert refunded["status"] == "Refunded"
    assert refunded["refund_reason"] == "Rain"
    assert refunded["booking_status"] == "Cancelled"
    stored = await db_session.get(Booking, booking["id"])
    slot = await db_session.get(Timeslot, stored.timeslot_id)
    assert slot.is_available is True


@pytest.mark.asyncio
async def test_refund_requires_completed_payment(db_session, player, admin, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    pending = (await payment_service.list_payments(db_session, player))[0]
    assert pending["booking_id"] == booking["id"]
    with pytest.raises(InvalidStateError):
        await payment_service.refund_payment(db_session, pending["id"], None, admin)


@pytest.mark.asyncio
async def test_payment_visibility(db_session, player, other_player, owner, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, booking["id"], "Cash", 1000, player)

    assert len(await payment_service.list_payments(db_session, owner)) == 1
    assert await payment_service.list_payments(db_session, other_player) == []
    assert (await payment_service.get_payment(db_session, payment["id"], owner))["venue_name"] == "Koregaon Turf"
    with pytest.raises(ForbiddenError):
        await payment_service.get_payment(db_session, payment["id"], other_player)


@pytest.mark.asyncio
async def test_refund_twice_fails(db_session, player, admin, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, booking["id"], "Card", 1000, player)
    await payment_service.refund_payment(db_session, payment["id"], None, admin)

    with pytest.raises(InvalidStateError):
        await payment_service.refund_payment(db_session, payment["id"], None, admin)


@pytest.mark.asyncio
async def test_refund_keeps_completed_booking(db_session, player, owner, admin, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, booking["id"], "UPI", 1000, player)
    await booking_service.update_booking(db_session, booking["id"], {"status": "Completed"}, owner)

    with pytest.raises(InvalidStateError):
        await payment_service.refund_payment(db_session, payment["id"], "Too late", admin)

    stored = await db_session.get(Booking, booking["id"])
    await db_session.refresh(stored)
    assert stored.status == "Completed"
    assert (await payment_service.get_payment(db_session, payment["id"], admin))["status"] == "Completed"


@pytest.mark.asyncio
async def test_refund_leaves_rebooked_slot_taken(db_session, player, other_player, admin, venue, play_date):
    first = await _pending_booking(db_session, player, venue, play_date)
    payment = await payment_service.process_payment(db_session, first["id"], "Cash", 1000, player)
    await booking_service.cancel_booking(db_session, first["id"], player)
    second = await _pending_booking(db_session, other_player, venue, play_date)
    assert second["timeslot_id"] == first["timeslot_id"]

    refunded = await payment_service.refund_payment(db_session, payment["id"], "Cancelled early", admin)

    assert refunded["status"] == "Refunded"
    assert refunded["booking_status"] == "Cancelled"
    slot = await db_session.get(Timeslot, second["timeslot_id"])
    await db_session.refresh(slot)
    assert slot.is_available is False
    assert (await db_session.get(Booking, second["id"])).status == "Pending"


@pytest.mark.asyncio
async def test_payment_rereads_rows_another_session_settled(db_session, player, venue, play_date):
    booking = await _pending_booking(db_session, player, venue, play_date)
    pending = (await payment_service.list_payments(db_session, player))[0]

    async with db.AsyncSessionLocal() as racing_session:
        stale = await racing_session.get(Payment, pending["id"])
        assert stale.status == "Pending"

        await payment_service.process_payment(db_session, booking["id"], "UPI", 1000, player)

        with pytest.raises(ConflictError):
            await payment_service.process_payment(racing_session, booking["id"], "UPI", 1000, player)

    rows = (await db_session.execute(select(Payment).where(Payment.booking_id == booking["id"]))).scalars().all()
    assert len(rows) == 1
