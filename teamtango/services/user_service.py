"""
User service layer: registration, login, profiles and role administration.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy import delete, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import (
    Booking,
    Feedback,
    Notification,
    Role,
    Team,
    TeamMember,
    User,
    UserPermission,
    Venue,
)
from teamtango.services import audit_service, auth_service
from teamtango.services.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from teamtango.utils.constants import (
    ADMIN,
    ADMIN_ROLES,
    PLAYER,
    ROLE_NAMES,
    SUPER_ADMIN,
    USER_TYPE_ROLES,
    VENUE_OWNER,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"

ROLE_DESCRIPTIONS = {
    PLAYER: "Player - Can create teams, make bookings, join matches",
    VENUE_OWNER: "Venue Owner - Can manage venues, timeslots, view bookings",
    ADMIN: "Website Admin - Can moderate content, manage users",
    SUPER_ADMIN: "Super Admin - Can delete users and promote admins",
}


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _user_to_dict(user: User, role_name: Optional[str] = None) -> Dict:
    """Public representation of a user; never includes the password hash."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "gender": user.gender,
        "address": user.address,
        "role_id": user.role_id,
        "role_name": role_name or ROLE_NAMES.get(user.role_id),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def _get_user_row(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def register(
    session: AsyncSession,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
    phone_number: Optional[str],
    user_type: Optional[str],
    gender: Optional[str] = None,
    address: Optional[str] = None,
) -> Dict:
    """
    Register a new player or venue owner.

    Args:
        session: Database session
        name, email, password, phone_number, user_type: Required fields
        gender, address: Optional profile fields

    Returns:
        The created user dict (without credentials)

    Raises:
        ValidationError: If a required field is missing or user_type is not allowed
        ConflictError: If the email is already registered
    """
    missing = [
        field
        for field, value in (
            ("name", name),
            ("email", email),
            ("password", password),
            ("phone_number", phone_number),
            ("user_type", user_type),
        )
        if not value or not str(value).strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    role_id = USER_TYPE_ROLES.get(user_type.strip().lower())
    if role_id is None:
        raise ValidationError("user_type must be 'player' or 'venue_owner'")

    email = _normalize_email(email)
    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email is already registered")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=auth_service.hash_password(password),
        phone_number=phone_number.strip(),
        gender=gender,
        address=address,
        role_id=role_id,
    )
    session.add(user)
    try:
        await session.flush()
        await session.refresh(user)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Email is already registered")

    user_dict = _user_to_dict(user)
    await audit_service.record(
        session, user_dict["id"], "CREATE", "Users", user_dict["id"], "User registered",
        new_values={"email": email, "role_id": role_id},
    )
    logger.info(f"Registered user {user_dict['id']} as {ROLE_NAMES[role_id]}")
    return user_dict


async def login(
    session: AsyncSession, email: Optional[str], password: Optional[str], ip_address: Optional[str] = None
) -> Dict:
    """
    Verify credentials and issue an access token.

    Unknown email and wrong password produce the same error.

    Returns:
        Dict with access_token, token_type and user

    Raises:
        AuthenticationError: On any credential failure
    """
    if not email or not password:
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE, "invalid_credentials")

    result = await session.execute(
        select(User, Role.name).join(Role, User.role_id == Role.id).where(User.email == _normalize_email(email))
    )
    row = result.first()
    if row is None or not auth_service.verify_password(password, row[0].password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE, "invalid_credentials")

    user, role_name = row
    token = auth_service.create_access_token(
        {"user_id": user.id, "email": user.email, "role_id": user.role_id, "role_name": role_name}
    )
    user_dict = _user_to_dict(user, role_name)
    await audit_service.record(session, user.id, "LOGIN", "Users", user.id, ip_address=ip_address)
    return {"access_token": token, "token_type": "bearer", "user": user_dict}


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Returns:
        User dictionary including role_name, or None if not found
    """
    result = await session.execute(
        select(User, Role.name).join(Role, User.role_id == Role.id).where(User.id == user_id)
    )
    row = result.first()
    if row is None:
        return None
    return _user_to_dict(row[0], row[1])


async def list_users(session: AsyncSession) -> List[Dict]:
    result = await session.execute(
        select(User, Role.name).join(Role, User.role_id == Role.id).order_by(User.id)
    )
    return [_user_to_dict(user, role_name) for user, role_name in result.all()]


async def update_user(session: AsyncSession, user_id: int, changes: Dict, actor_id: int) -> Dict:
    """
    Update profile fields of a user.

    Args:
        changes: Any of name, email, phone_number, gender, address, password

    Raises:
        NotFoundError: If the user does not exist
        ConflictError: If the new email belongs to someone else
        ValidationError: If nothing updatable was supplied
    """
    user = await _get_user_row(session, user_id)
    old_values = {"name": user.name, "email": user.email, "phone_number": user.phone_number}

    applied = {}
    for field in ("name", "phone_number", "gender", "address"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
            applied[field] = changes[field]

    if changes.get("email") is not None:
        email = _normalize_email(changes["email"])
        if not email:
            raise ValidationError("email cannot be empty")
        if email != user.email:
            taken = await session.execute(
                select(User.id).where(User.email == email, User.id != user_id)
            )
            if taken.scalar_one_or_none() is not None:
                raise ConflictError("Email is already registered")
            user.email = email
            applied["email"] = email

    if changes.get("password"):
        user.password_hash = auth_service.hash_password(changes["password"])
        applied["password"] = "***"

    if not applied:
        raise ValidationError("No fields to update")

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Email is already registered")

    await audit_service.record(
        session, actor_id, "UPDATE", "Users", user_id, old_values=old_values, new_values=applied
    )
    return await get_user_by_id(session, user_id)


async def delete_user(session: AsyncSession, user_id: int, actor_id: int) -> None:
    """
    Delete a user account (SuperAdmin only, enforced by the caller).

    Raises:
        ValidationError: If the actor tries to delete themselves
        NotFoundError: If the user does not exist
        ConflictError: If the user still owns venues, has bookings or captains a team
    """
    if user_id == actor_id:
        raise ValidationError("You cannot delete your own account")
    user = await _get_user_row(session, user_id)

    venue_count = await session.scalar(select(func.count(Venue.id)).where(Venue.owner_id == user_id))
    booking_count = await session.scalar(select(func.count(Booking.id)).where(Booking.user_id == user_id))
    captain_count = await session.scalar(select(func.count(Team.id)).where(Team.captain_id == user_id))
    if venue_count or booking_count or captain_count:
        raise ConflictError("User has venues, bookings or captained teams and cannot be deleted")

    for model in (TeamMember, Feedback, Notification):
        await session.execute(delete(model).where(model.user_id == user_id))

    old_values = {"email": user.email, "role_id": user.role_id}
    await session.delete(user)
    await session.commit()
    await audit_service.record(session, actor_id, "DELETE", "Users", user_id, old_values=old_values)
    logger.info(f"User {user_id} deleted by {actor_id}")


async def change_role(session: AsyncSession, user_id: int, role_id: int, actor: Dict) -> Dict:
    """
    Assign a role to a user.

    Admins may assign Player, VenueOwner or Admin. Only a SuperAdmin may
    assign SuperAdmin or change another admin's role.
    """
    if role_id not in ROLE_NAMES:
        raise ValidationError("Unknown role")
    user = await _get_user_row(session, user_id)
    is_super = actor["role_id"] == SUPER_ADMIN
    if role_id == SUPER_ADMIN and not is_super:
        raise ForbiddenError("Only a SuperAdmin can grant SuperAdmin", "insufficient_role")
    if user.role_id in ADMIN_ROLES and not is_super:
        raise ForbiddenError("Only a SuperAdmin can change an admin's role", "insufficient_role")

    old_role = user.role_id
    user.role_id = role_id
    await session.commit()
    await audit_service.record(
        session, actor["id"], "UPDATE_ROLE", "Users", user_id,
        old_values={"role_id": old_role}, new_values={"role_id": role_id},
    )
    return await get_user_by_id(session, user_id)


async def promote_to_admin(session: AsyncSession, user_id: int, actor: Dict) -> Dict:
    """Promote a user to Admin (SuperAdmin only, enforced by the caller)."""
    user = await _get_user_row(session, user_id)
    if user.role_id in ADMIN_ROLES:
        raise ConflictError("User is already an admin")
    return await change_role(session, user_id, ADMIN, actor)


async def get_user_permissions(session: AsyncSession, user_id: int) -> Dict:
    """
    Classification and permission rows for a user's role.

    Returns:
        Dict with user_type, access_description and a per-table permission list
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User not found")

    result = await session.execute(
        select(UserPermission)
        .where(UserPermission.role_id == user["role_id"])
        .order_by(UserPermission.table_name)
    )
    permissions = [
        {
            "table_name": p.table_name,
            "can_select": p.can_select,
            "can_insert": p.can_insert,
            "can_update": p.can_update,
            "can_delete": p.can_delete,
        }
        for p in result.scalars().all()
    ]
    return {
        "user_id": user["id"],
        "name": user["name"],
        "role_id": user["role_id"],
        "role_name": user["role_name"],
        "user_type": "Admin User" if user["role_id"] in ADMIN_ROLES else "Regular User",
        "access_description": ROLE_DESCRIPTIONS.get(user["role_id"], "Limited access"),
        "permissions": permissions,
    }


async def ensure_super_admin(session: AsyncSession, email: str, password: str) -> Optional[int]:
    """
    Create a SuperAdmin account if no user with this email exists.

    Returns:
        The new user id, or None if the account already existed
    """
    email = _normalize_email(email)
    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        return None
    user = User(
        name="Super Admin",
        email=email,
        password_hash=auth_service.hash_password(password),
        role_id=SUPER_ADMIN,
    )
    session.add(user)
    await session.flush()
    await session.commit()
    return user.id
