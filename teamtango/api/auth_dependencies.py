"""
Authentication and authorization dependencies for FastAPI routes.

Every guard starts from the verified bearer token; the caller's role always
comes from the user row, never from request headers or query parameters.
"""

from typing import Optional, Type

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.db import get_db_session
from teamtango.database.models import Team, Venue
from teamtango.services import audit_service, auth_service, permission_service, user_service
from teamtango.services.errors import AuthenticationError, ForbiddenError, NotFoundError
from teamtango.utils.constants import (
    ADMIN,
    ADMIN_ROLES,
    PLAYER,
    ROLE_NAMES,
    SUPER_ADMIN,
    VENUE_OWNER,
)

security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from the JWT token.

    Returns:
        User dictionary (id, email, role_id, role_name, ...)

    Raises:
        AuthenticationError: 401 when no token is supplied or the user no longer exists
        ForbiddenError: 403 when the token is invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required", "missing_token")

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None or payload.get("user_id") is None:
        raise ForbiddenError("Invalid or expired token", "invalid_token")

    user = await user_service.get_user_by_id(session, payload["user_id"])
    if user is None:
        raise AuthenticationError("User not found")
    return user


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role_id") in ADMIN_ROLES


def require_roles(*role_ids: int):
    """
    Build a dependency admitting only the given roles.

    Admitting Admin also admits SuperAdmin.
    """
    allowed = set(role_ids)
    if ADMIN in allowed:
        allowed.add(SUPER_ADMIN)
    names = " or ".join(ROLE_NAMES[r] for r in role_ids)

    async def _dep(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role_id") not in allowed:
            raise ForbiddenError(f"{names} role required", "insufficient_role")
        return user

    return _dep


require_player = require_roles(PLAYER)
require_venue_owner = require_roles(VENUE_OWNER)
require_admin = require_roles(ADMIN)
require_super_admin = require_roles(SUPER_ADMIN)
require_player_or_admin = require_roles(PLAYER, ADMIN)
require_venue_owner_or_admin = require_roles(VENUE_OWNER, ADMIN)
require_any_role = require_roles(PLAYER, VENUE_OWNER, ADMIN)


async def require_ownership_or_admin(
    session: AsyncSession,
    model: Type,
    resource_id: int,
    owner_field: str,
    user: dict,
    label: str = "Resource",
):
    """
    Load a row and verify the caller owns it or is an admin.

    Args:
        session: Database session
        model: ORM class to load
        resource_id: Primary key of the row
        owner_field: Attribute holding the owning user id
        user: Authenticated user dict
        label: Name used in error messages

    Returns:
        The ORM instance.

    Raises:
        NotFoundError if the row is missing, ForbiddenError if not authorized.
    """
    row = await session.get(model, resource_id)
    if row is None:
        raise NotFoundError(f"{label} not found")
    if getattr(row, owner_field) != user["id"] and not is_admin(user):
        raise ForbiddenError(f"You do not own this {label.lower()}", "not_owner")
    return row


async def require_venue_ownership(session: AsyncSession, venue_id: int, user: dict) -> Venue:
    """Venue owner or admin."""
    return await require_ownership_or_admin(session, Venue, venue_id, "owner_id", user, "Venue")


async def require_team_captain_or_admin(session: AsyncSession, team_id: int, user: dict) -> Team:
    """Team captain or admin."""
    return await require_ownership_or_admin(session, Team, team_id, "captain_id", user, "Team")


async def require_profile_ownership(user_id: int, user: dict = Depends(get_current_user)) -> dict:
    """The path's user_id must be the caller, unless the caller is an admin."""
    if user["id"] != user_id and not is_admin(user):
        raise ForbiddenError("You can only access your own profile", "not_owner")
    return user


def make_require_permission(table_name: str, action: str):
    """
    Build a dependency that consults the permission table for the caller's role.

    A denial is recorded in the audit log as UNAUTHORIZED_ATTEMPT.
    """

    async def _dep(
        request: Request,
        user: dict = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        if await permission_service.has_permission(session, user["role_id"], table_name, action):
            return user
        await audit_service.record(
            session,
            user["id"],
            "UNAUTHORIZED_ATTEMPT",
            table_name,
            details=f"Attempted {action} on {table_name} without permission",
            ip_address=client_ip(request),
        )
        raise ForbiddenError(
            f"You don't have permission to {action} on {table_name}", "insufficient_permission"
        )

    return _dep


# ---------------------------------------------------------------------------
# Route policies: (resource, action) -> (allowed roles, permission-table check)
# Row ownership (venue owner, team captain, booking party, profile owner) is
# checked once the row is loaded.
# ---------------------------------------------------------------------------
ANY_ROLE = (PLAYER, VENUE_OWNER, ADMIN)
PLAYER_OR_ADMIN = (PLAYER, ADMIN)
OWNER_OR_ADMIN = (VENUE_OWNER, ADMIN)

POLICIES = {
    ("users", "list"): ((ADMIN,), None),
    ("users", "read"): (ANY_ROLE, None),
    ("users", "update"): (ANY_ROLE, ("Users", "update")),
    ("users", "delete"): ((SUPER_ADMIN,), None),
    ("users", "promote"): ((SUPER_ADMIN,), None),
    ("users", "change_role"): ((ADMIN,), None),
    ("users", "activity"): ((ADMIN,), None),
    ("roles", "read"): (ANY_ROLE, None),
    ("roles", "update"): ((ADMIN,), ("UserPermissions", "update")),
    ("sports", "create"): ((ADMIN,), ("Sports", "insert")),
    ("sports", "update"): ((ADMIN,), ("Sports", "update")),
    ("sports", "delete"): ((ADMIN,), ("Sports", "delete")),
    ("venues", "create"): (OWNER_OR_ADMIN, ("Venues", "insert")),
    ("venues", "update"): (OWNER_OR_ADMIN, ("Venues", "update")),
    ("venues", "delete"): (OWNER_OR_ADMIN, ("Venues", "delete")),
    ("venues", "dashboard"): (OWNER_OR_ADMIN, None),
    ("timeslots", "create"): (OWNER_OR_ADMIN, ("Timeslots", "insert")),
    ("bookings", "list"): (ANY_ROLE, None),
    ("bookings", "mine"): (PLAYER_OR_ADMIN, None),
    ("bookings", "create"): (PLAYER_OR_ADMIN, ("Bookings", "insert")),
    ("bookings", "update"): (ANY_ROLE, None),
    ("bookings", "cancel"): (ANY_ROLE, None),
    ("payments", "list"): (ANY_ROLE, None),
    ("payments", "create"): (PLAYER_OR_ADMIN, ("Payments", "insert")),
    ("payments", "refund"): ((ADMIN,), None),
    ("teams", "create"): (PLAYER_OR_ADMIN, ("Teams", "insert")),
    ("teams", "membership"): (PLAYER_OR_ADMIN, None),
    ("teams", "manage"): (ANY_ROLE, None),
    ("matches", "create"): (PLAYER_OR_ADMIN, ("Matches", "insert")),
    ("matches", "update"): (PLAYER_OR_ADMIN, ("Matches", "update")),
    ("matches", "delete"): (PLAYER_OR_ADMIN, ("Matches", "delete")),
    ("feedback", "create"): (ANY_ROLE, ("Feedback", "insert")),
    ("feedback", "manage"): (ANY_ROLE, None),
    ("notifications", "read"): (ANY_ROLE, None),
    ("notifications", "create"): ((ADMIN,), None),
    ("analytics", "reports"): (OWNER_OR_ADMIN, None),
    ("analytics", "summaries"): (ANY_ROLE, None),
    ("analytics", "profiles"): ((ADMIN,), None),
}


def require_policy(resource: str, action: str):
    """
    Build the dependency for a (resource, action) entry of POLICIES.

    The role gate runs first, then the permission table when the policy names one.
    """
    roles, permission = POLICIES[(resource, action)]
    role_dep = require_roles(*roles)
    if permission is None:
        return role_dep
    permission_dep = make_require_permission(*permission)

    async def _dep(user: dict = Depends(role_dep), _checked: dict = Depends(permission_dep)) -> dict:
        return user

    return _dep
