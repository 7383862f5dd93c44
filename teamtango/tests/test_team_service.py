"""
Tests for teams, membership and captaincy.
"""
import pytest
import pytest_asyncio
from sqlalchemy import select

from teamtango.database.models import Sport, Team
from teamtango.services import booking_service, match_service, team_service
from teamtango.services.errors import ConflictError, DomainError, NotFoundError, ValidationError


@pytest_asyncio.fixture
async def cricket_id(db_session):
    return (await db_session.execute(select(Sport.id).where(Sport.name == "Cricket"))).scalar_one()


@pytest_asyncio.fixture
async def team(db_session, player, cricket_id):
    return await team_service.create_team(db_session, "Aundh Avengers", cricket_id, player)


@pytest.mark.asyncio
async def test_create_team_makes_captain_a_member(db_session, player, team):
    assert team["captain_id"] == player["id"]
    assert team["sport_name"] == "Cricket"
    assert team["member_count"] == 1
    assert team["members"][0]["is_captain"] is True
    assert team["members"][0]["position"] == "Captain"


@pytest.mark.asyncio
async def test_duplicate_team_name_per_sport(db_session, other_player, team, cricket_id):
    with pytest.raises(ConflictError):
        await team_service.create_team(db_session, "aundh avengers", cricket_id, other_player)


@pytest.mark.asyncio
async def test_same_name_allowed_for_other_sport(db_session, other_player, team):
    football = (await db_session.execute(select(Sport.id).where(Sport.name == "Football"))).scalar_one()
    other = await team_service.create_team(db_session, "Aundh Avengers", football, other_player)
    assert other["id"] != team["id"]


@pytest.mark.asyncio
async def test_create_team_validation(db_session, player):
    with pytest.raises(ValidationError):
        await team_service.create_team(db_session, "  ", 1, player)
    with pytest.raises(NotFoundError):
        await team_service.create_team(db_session, "Ghosts", 999, player)


@pytest.mark.asyncio
async def test_join_and_leave(db_session, player, other_player, team):
    joined = await team_service.join_team(db_session, team["id"], other_player, position="Bowler")
    assert joined["member_count"] == 2

    with pytest.raises(ConflictError):
        await team_service.join_team(db_session, team["id"], other_player)

    mine = await team_service.list_my_teams(db_session, other_player["id"])
    assert mine[0]["my_role"] == "Member"

    await team_service.leave_team(db_session, team["id"], other_player)
    assert (await team_service.get_team(db_session, team["id"]))["member_count"] == 1


@pytest.mark.asyncio
async def test_captain_cannot_join_or_leave(db_session, player, team):
    with pytest.raises(ConflictError):
        await team_service.join_team(db_session, team["id"], player)
    with pytest.raises(DomainError) as exc:
        await team_service.leave_team(db_session, team["id"], player)
    assert exc.value.error == "captain_cannot_leave"


@pytest.mark.asyncio
async def test_leave_when_not_member(db_session, other_player, team):
    with pytest.raises(NotFoundError):
        await team_service.leave_team(db_session, team["id"], other_player)


@pytest.mark.asyncio
async def test_transfer_captaincy(db_session, player, other_player, team):
    await team_service.join_team(db_session, team["id"], other_player)
    row = await db_session.get(Team, team["id"])

    updated = await team_service.transfer_captaincy(db_session, row, other_player["id"], player["id"])

    assert updated["captain_id"] == other_player["id"]
    await team_service.leave_team(db_session, team["id"], player)


@pytest.mark.asyncio
async def test_transfer_captaincy_requires_member(db_session, player, other_player, team):
    row = await db_session.get(Team, team["id"])
    with pytest.raises(ValidationError):
        await team_service.transfer_captaincy(db_session, row, other_player["id"], player["id"])


@pytest.mark.asyncio
async def test_remove_member(db_session, player, other_player, team):
    await team_service.join_team(db_session, team["id"], other_player)
    row = await db_session.get(Team, team["id"])
    await team_service.remove_member(db_session, row, other_player["id"], player["id"])

    with pytest.raises(ValidationError):
        await team_service.remove_member(db_session, row, player["id"], player["id"])


@pytest.mark.asyncio
async def test_delete_team_blocked_by_active_booking(db_session, player, team, venue, play_date):
    await booking_service.create_booking(
        db_session, player, venue["id"], play_date, "06:00", "07:00", team_id=team["id"]
    )
    row = await db_session.get(Team, team["id"])
    with pytest.raises(ConflictError):
        await team_service.delete_team(db_session, row, player["id"])


@pytest.mark.asyncio
async def test_delete_team_blocked_by_scheduled_match(db_session, player, team, venue, play_date):
    await match_service.create_match(db_session, player, team["id"], venue["id"], play_date)
    row = await db_session.get(Team, team["id"])
    with pytest.raises(ConflictError):
        await team_service.delete_team(db_session, row, player["id"])


@pytest.mark.asyncio
async def test_delete_team(db_session, player, other_player, team):
    await team_service.join_team(db_session, team["id"], other_player)
    row = await db_session.get(Team, team["id"])
    await team_service.delete_team(db_session, row, player["id"])

    with pytest.raises(NotFoundError):
        await team_service.get_team(db_session, team["id"])
    assert await team_service.list_my_teams(db_session, other_player["id"]) == []
