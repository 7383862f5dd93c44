"""
Tests for role gates, ownership checks, the permission table and route policies.
"""
from types import SimpleNamespace

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select

from teamtango.api import auth_dependencies
from teamtango.api.auth_dependencies import (
    POLICIES,
    get_current_user,
    make_require_permission,
    require_profile_ownership,
    require_roles,
    require_team_captain_or_admin,
    require_venue_ownership,
)
from teamtango.database.models import AuditLog
from teamtango.services import auth_service, permission_service, team_service
from teamtango.services.errors import AuthenticationError, ForbiddenError, NotFoundError, ValidationError
from teamtango.utils.constants import ADMIN, PLAYER, SUPER_ADMIN, VENUE_OWNER


def _bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
async def test_current_user_from_token(db_session, player):
    token = auth_service.create_access_token({"user_id": player["id"]})
    user = await get_current_user(session=db_session, credentials=_bearer(token))
    assert user["id"] == player["id"]
    assert user["role_name"] == "Player"


@pytest.mark.asyncio
async def test_missing_token_is_401(db_session):
    with pytest.raises(AuthenticationError) as exc:
        await get_current_user(session=db_session, credentials=None)
    assert exc.value.error == "missing_token"
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_403(db_session):
    with pytest.raises(ForbiddenError) as exc:
        await get_current_user(session=db_session, credentials=_bearer("garbage"))
    assert exc.value.error == "invalid_token"


@pytest.mark.asyncio
async def test_token_for_deleted_user_is_401(db_session):
    token = auth_service.create_access_token({"user_id": 31337})
    with pytest.raises(AuthenticationError):
        await get_current_user(session=db_session, credentials=_bearer(token))


@pytest.mark.asyncio
async def test_role_claim_in_token_is_ignored(db_session, player):
    """The role always comes from the user row, not from the token."""
    token = auth_service.create_access_token({"user_id": player["id"], "role_id": SUPER_ADMIN})
    user = await get_current_user(session=db_session, credentials=_bearer(token))
    assert user["role_id"] == PLAYER


@pytest.mark.asyncio
async def test_require_roles(player, owner, admin, super_admin):
    player_only = require_roles(PLAYER)
    owner_or_admin = require_roles(VENUE_OWNER, ADMIN)

    assert (await player_only(user=player))["id"] == player["id"]
    with pytest.raises(ForbiddenError) as exc:
        await player_only(user=owner)
    assert exc.value.error == "insufficient_role"

    assert await owner_or_admin(user=owner)
    assert await owner_or_admin(user=admin)
    assert await owner_or_admin(user=super_admin)
    with pytest.raises(ForbiddenError):
        await owner_or_admin(user=player)


@pytest.mark.asyncio
async def test_super_admin_gate_excludes_admin(admin, super_admin):
    gate = require_roles(SUPER_ADMIN)
    assert await gate(user=super_admin)
    with pytest.raises(ForbiddenError):
        await gate(user=admin)


@pytest.mark.asyncio
async def test_venue_ownership(db_session, owner, make_user, admin, venue):
    stranger = await make_user(VENUE_OWNER)

    assert (await require_venue_ownership(db_session, venue["id"], owner)).id == venue["id"]
    assert (await require_venue_ownership(db_session, venue["id"], admin)).id == venue["id"]
    with pytest.raises(ForbiddenError) as exc:
        await require_venue_ownership(db_session, venue["id"], stranger)
    assert exc.value.error == "not_owner"
    with pytest.raises(NotFoundError):
        await require_venue_ownership(db_session, 999, owner)


@pytest.mark.asyncio
async def test_team_captaincy(db_session, player, other_player, venue):
    team = await team_service.create_team(db_session, "Baner Blasters", venue["sport_id"], player)
    assert (await require_team_captain_or_admin(db_session, team["id"], player)).id == team["id"]
    with pytest.raises(ForbiddenError):
        await require_team_captain_or_admin(db_session, team["id"], other_player)


@pytest.mark.asyncio
async def test_profile_ownership(player, other_player, admin):
    assert await require_profile_ownership(player["id"], user=player)
    assert await require_profile_ownership(player["id"], user=admin)
    with pytest.raises(ForbiddenError):
        await require_profile_ownership(player["id"], user=other_player)


@pytest.mark.asyncio
async def test_permission_matrix(db_session):
    assert await permission_service.has_permission(db_session, PLAYER, "Bookings", "insert")
    assert await permission_service.has_permission(db_session, PLAYER, "Bookings", "create")
    assert not await permission_service.has_permission(db_session, PLAYER, "Venues", "insert")
    assert await permission_service.has_permission(db_session, VENUE_OWNER, "Venues", "delete")
    assert await permission_service.has_permission(db_session, ADMIN, "UserPermissions", "update")
    assert not await permission_service.has_permission(db_session, PLAYER, "Bookings", "frobnicate")
    assert not await permission_service.has_permission(db_session, PLAYER, "NoSuchTable", "select")


@pytest.mark.asyncio
async def test_permission_denial_is_audited(db_session, player):
    check = make_require_permission("Venues", "insert")
    request = SimpleNamespace(client=SimpleNamespace(host="203.0.113.9"))

    with pytest.raises(ForbiddenError) as exc:
        await check(request=request, user=player, session=db_session)
    assert exc.value.error == "insufficient_permission"

    entry = (
        await db_session.execute(select(AuditLog).where(AuditLog.action == "UNAUTHORIZED_ATTEMPT"))
    ).scalar_one()
    assert entry.user_id == player["id"]
    assert entry.table_name == "Venues"
    assert entry.ip_address == "203.0.113.9"


@pytest.mark.asyncio
async def test_set_permission_changes_decision(db_session, admin):
    await permission_service.set_permission(db_session, PLAYER, "Venues", {"can_insert": True}, admin["id"])
    assert await permission_service.has_permission(db_session, PLAYER, "Venues", "insert")

    with pytest.raises(ValidationError):
        await permission_service.set_permission(db_session, PLAYER, "Nope", {"can_insert": True}, admin["id"])


@pytest.mark.asyncio
async def test_roles_listing(db_session):
    roles = await permission_service.list_roles(db_session)
    assert [r["name"] for r in roles] == ["Player", "VenueOwner", "Admin", "SuperAdmin"]
    admin_role = await permission_service.get_role(db_session, ADMIN)
    assert len(admin_role["permissions"]) == 13


def test_every_policy_resolves_to_a_dependency():
    for resource, action in POLICIES:
        assert callable(auth_dependencies.require_policy(resource, action))


def test_policies_reference_known_permission_tables():
    from teamtango.utils.constants import PERMISSION_TABLES

    for roles, permission in POLICIES.values():
        assert roles
        if permission is not None:
            assert permission[0] in PERMISSION_TABLES
