"""
Tests for reporting queries and venue dashboards.
"""
import pytest

from teamtango.services import analytics_service, booking_service, payment_service, timeslot_service, venue_service
from teamtango.services.errors import ConflictError, ValidationError


async def _book(session, user, venue, play_date, start, end):
    return await booking_service.create_booking(session, user, venue["id"], play_date, start, end)


@pytest.mark.asyncio
async def test_venue_utilization(db_session, player, owner, venue, play_date):
    row = await venue_service.get_venue_row(db_session, venue["id"])
    await timeslot_service.create_timeslot(db_session, row, play_date, _t("06:00"), _t("07:00"))
    await _book(db_session, player, venue, play_date, "18:00", "19:00")

    report = await analytics_service.venue_utilization(db_session, owner)

    assert len(report) == 1
    assert report[0]["total_slots"] == 2
    assert report[0]["booked_slots"] == 1
    assert report[0]["utilization_percent"] == 50.0


@pytest.mark.asyncio
async def test_utilization_is_scoped_to_owner(db_session, player, make_user, venue, play_date):
    from teamtango.utils.constants import VENUE_OWNER

    rival = await make_user(VENUE_OWNER)
    await _book(db_session, player, venue, play_date, "18:00", "19:00")
    assert await analytics_service.venue_utilization(db_session, rival) == []


@pytest.mark.asyncio
async def test_popular_sports_and_peak_hours(db_session, player, other_player, admin, venue, play_date):
    await _book(db_session, player, venue, play_date, "18:00", "19:00")
    await _book(db_session, other_player, venue, play_date, "18:30", "19:30")
    cancelled = await _book(db_session, player, venue, play_date, "07:00", "08:00")
    await booking_service.cancel_booking(db_session, cancelled["id"], player)

    sports = await analytics_service.popular_sports(db_session)
    assert sports[0]["sport_name"] == "Football"
    assert sports[0]["venue_count"] == 1

    hours = await analytics_service.peak_hours(db_session, admin)
    assert hours[0] == {"hour": 18, "sport_name": "Football", "booking_count": 2}
    assert all(h["hour"] != 7 for h in hours)


@pytest.mark.asyncio
async def test_booking_summaries_scope(db_session, player, other_player, admin, venue, play_date):
    await _book(db_session, player, venue, play_date, "18:00", "19:00")
    await _book(db_session, other_player, venue, play_date, "19:00", "20:00")

    # A player asking for someone else's bookings still only gets their own
    mine = await analytics_service.booking_summaries(db_session, player, user_id=other_player["id"])
    assert {b["user_id"] for b in mine} == {player["id"]}

    filtered = await analytics_service.booking_summaries(db_session, admin, user_id=other_player["id"])
    assert len(filtered) == 1
    assert await analytics_service.booking_summaries(db_session, admin, status="Confirmed") == []


@pytest.mark.asyncio
async def test_available_timeslots(db_session, player, venue, play_date):
    row = await venue_service.get_venue_row(db_session, venue["id"])
    await timeslot_service.create_timeslot(db_session, row, play_date, _t("06:00"), _t("07:00"), price=500)
    await _book(db_session, player, venue, play_date, "18:00", "19:00")

    open_slots = await analytics_service.available_timeslots(db_session, sport="football")
    assert len(open_slots) == 1
    assert open_slots[0]["price"] == 500
    assert await analytics_service.available_timeslots(db_session, sport="Cricket") == []


@pytest.mark.asyncio
async def test_user_profiles(db_session, player, owner, venue, play_date):
    await _book(db_session, player, venue, play_date, "18:00", "19:00")
    profiles = {p["user_id"]: p for p in await analytics_service.user_profiles(db_session)}
    assert profiles[player["id"]]["booking_count"] == 1
    assert profiles[owner["id"]]["role_name"] == "VenueOwner"


@pytest.mark.asyncio
async def test_revenue_counts_completed_payments(db_session, player, owner, venue, play_date):
    booking = await _book(db_session, player, venue, play_date, "18:00", "20:00")
    await payment_service.process_payment(db_session, booking["id"], "UPI", 2000, player)
    await _book(db_session, player, venue, play_date, "20:00", "21:00")

    revenue = await venue_service.get_revenue(db_session, owner)

    assert revenue["total_venues"] == 1
    assert revenue["total_bookings"] == 2
    assert revenue["total_revenue"] == 2000.0


@pytest.mark.asyncio
async def test_search_venues(db_session, venue):
    assert [v["id"] for v in await venue_service.search_venues(db_session, "koregaon")] == [venue["id"]]
    assert [v["id"] for v in await venue_service.search_venues(db_session, "vikram")] == [venue["id"]]
    assert await venue_service.search_venues(db_session, "hinjewadi") == []
    with pytest.raises(ValidationError):
        await venue_service.search_venues(db_session, "   ")


@pytest.mark.asyncio
async def test_duplicate_venue(db_session, owner, venue):
    with pytest.raises(ConflictError):
        await venue_service.create_venue(
            db_session, {"name": "Koregaon Turf", "address": "Lane 7, Koregaon Park"}, owner
        )


@pytest.mark.asyncio
async def test_admin_must_name_venue_owner(db_session, admin, player, owner):
    with pytest.raises(ValidationError, match="owner_id"):
        await venue_service.create_venue(db_session, {"name": "Aundh Arena", "address": "ITI Rd"}, admin)
    with pytest.raises(ValidationError):
        await venue_service.create_venue(
            db_session, {"name": "Aundh Arena", "address": "ITI Rd", "owner_id": admin["id"]}, admin
        )

    created = await venue_service.create_venue(
        db_session, {"name": "Aundh Arena", "address": "ITI Rd", "owner_id": owner["id"]}, admin
    )
    assert created["owner_id"] == owner["id"]
    by_player = await venue_service.create_venue(
        db_session, {"name": "Wakad Nets", "address": "Datta Mandir Rd", "owner_id": player["id"]}, admin
    )
    assert by_player["owner_id"] == player["id"]


@pytest.mark.asyncio
async def test_delete_venue_blocked_by_active_booking(db_session, player, owner, venue, play_date):
    booking = await _book(db_session, player, venue, play_date, "18:00", "19:00")
    row = await venue_service.get_venue_row(db_session, venue["id"])
    with pytest.raises(ConflictError):
        await venue_service.delete_venue(db_session, row, owner["id"])

    await booking_service.cancel_booking(db_session, booking["id"], player)
    await venue_service.delete_venue(db_session, row, owner["id"])
    assert await venue_service.list_venues(db_session) == []


def _t(value):
    from teamtango.utils.datetime_utils import parse_time

    return parse_time(value)
