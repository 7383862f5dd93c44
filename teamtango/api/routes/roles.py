"""Role and permission-table route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.api.auth_dependencies import require_policy
from teamtango.database.db import get_db_session
from teamtango.models.schemas import PermissionUpdate
from teamtango.services import permission_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/roles")
async def list_roles(
    user: dict = Depends(require_policy("roles", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    return await permission_service.list_roles(session)


@router.get("/api/roles/{role_id}")
async def get_role(
    role_id: int,
    user: dict = Depends(require_policy("roles", "read")),
    session: AsyncSession = Depends(get_db_session),
):
    """Role with its permission rows."""
    return await permission_service.get_role(session, role_id)


@router.put("/api/roles/{role_id}/permissions/{table_name}")
async def update_role_permission(
    role_id: int,
    table_name: str,
    payload: PermissionUpdate,
    user: dict = Depends(require_policy("roles", "update")),
    session: AsyncSession = Depends(get_db_session),
):
    """Set CRUD flags for a role on a table (admin only)."""
    return await permission_service.set_permission(
        session, role_id, table_name, payload.model_dump(), actor_id=user["id"]
    )
