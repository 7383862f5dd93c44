"""User administration route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy, require_profile_ownership
from teamtango.database.db import get_db_session
from teamtango.models.schemas import RoleChangeRequest, UserResponse, UserUpdate
from teamtango.services import audit_service, user_service
from teamtango.services.errors import NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users", response_model=List[UserResponse])
async def list_users(
    user: dict = Depends(require_policy("users", "list")),
    session: AsyncSession = Depends(get_db_session),
):
    """List all users (admin only)."""
    return await user_service.list_users(session)


@router.get("/api/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    _policy: dict = Depends(require_policy("users", "read")),
    user: dict = Depends(require_profile_ownership),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a user profile (the user themself or an admin)."""
    found = await user_service.get_user_by_id(session, user_id)
    if found is None:
        raise NotFoundError("User not found")
    return found


@router.put("/api/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    _policy: dict = Depends(require_policy("users", "update")),
    user: dict = Depends(require_profile_ownership),
    session: AsyncSession = Depends(get_db_session),
):
    """Update a user profile (the user themself or an admin)."""
    return await user_service.update_user(
        session, user_id, payload.model_dump(exclude_unset=True), actor_id=user["id"]
    )


@router.delete("/api/users/{user_id}")
async def delete_user(
    user_id: int,
    user: dict = Depends(require_policy("users", "delete")),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a user (SuperAdmin only, never yourself)."""
    await user_service.delete_user(session, user_id, actor_id=user["id"])
    return {"success": True, "message": "User deleted"}


@router.post("/api/users/{user_id}/promote", response_model=UserResponse)
async def promote_user(
    user_id: int,
    user: dict = Depends(require_policy("users", "promote")),
    session: AsyncSession = Depends(get_db_session),
):
    """Promote a user to Admin (SuperAdmin only)."""
    return await user_service.promote_to_admin(session, user_id, user)


@router.put("/api/users/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: int,
    payload: RoleChangeRequest,
    user: dict = Depends(require_policy("users", "change_role")),
    session: AsyncSession = Depends(get_db_session),
):
    """Change a user's role (admin only; SuperAdmin can only be granted by a SuperAdmin)."""
    return await user_service.change_role(session, user_id, payload.role_id, user)


@router.get("/api/users/{user_id}/permissions")
async def get_user_permissions(
    user_id: int,
    user: dict = Depends(require_profile_ownership),
    session: AsyncSession = Depends(get_db_session),
):
    """Role classification and permission rows for a user."""
    return await user_service.get_user_permissions(session, user_id)


@router.get("/api/users/{user_id}/activity")
async def get_user_activity(
    user_id: int,
    limit: int = 50,
    user: dict = Depends(require_policy("users", "activity")),
    session: AsyncSession = Depends(get_db_session),
):
    """Most recent audit entries for a user (admin only)."""
    return await audit_service.get_user_activity(session, user_id, limit=min(max(limit, 1), 200))
