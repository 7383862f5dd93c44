"""
Role and permission-table lookups.
"""

from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import Role, UserPermission
from teamtango.services import audit_service
from teamtango.services.errors import NotFoundError, ValidationError
from teamtango.utils.constants import PERMISSION_ACTIONS, PERMISSION_TABLES

logger = logging.getLogger(__name__)


def _permission_to_dict(p: UserPermission) -> Dict:
    return {
        "role_id": p.role_id,
        "table_name": p.table_name,
        "can_select": p.can_select,
        "can_insert": p.can_insert,
        "can_update": p.can_update,
        "can_delete": p.can_delete,
    }


async def has_permission(session: AsyncSession, role_id: int, table_name: str, action: str) -> bool:
    """
    Check the permission table for a role/table/action.

    Actions accept aliases: select|read, insert|create, update|edit, delete|remove.
    Unknown actions and missing rows deny.
    """
    column = PERMISSION_ACTIONS.get((action or "").lower())
    if column is None:
        return False
    result = await session.execute(
        select(UserPermission).where(
            UserPermission.role_id == role_id, UserPermission.table_name == table_name
        )
    )
    permission = result.scalar_one_or_none()
    if permission is None:
        return False
    return bool(getattr(permission, column))


async def list_roles(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Role).order_by(Role.id))
    return [{"id": r.id, "name": r.name, "description": r.description} for r in result.scalars().all()]


async def get_role(session: AsyncSession, role_id: int) -> Dict:
    """Role with its permission rows."""
    role = await session.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    result = await session.execute(
        select(UserPermission)
        .where(UserPermission.role_id == role_id)
        .order_by(UserPermission.table_name)
    )
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "permissions": [_permission_to_dict(p) for p in result.scalars().all()],
    }


async def set_permission(
    session: AsyncSession,
    role_id: int,
    table_name: str,
    flags: Dict[str, Optional[bool]],
    actor_id: int,
) -> Dict:
    """
    Create or update the permission row for a role and table.

    Args:
        flags: Any of can_select, can_insert, can_update, can_delete; None leaves a flag unchanged
    """
    if table_name not in PERMISSION_TABLES:
        raise ValidationError(f"Unknown table '{table_name}'")
    if await session.get(Role, role_id) is None:
        raise NotFoundError("Role not found")

    result = await session.execute(
        select(UserPermission).where(
            UserPermission.role_id == role_id, UserPermission.table_name == table_name
        )
    )
    permission = result.scalar_one_or_none()
    old_values = _permission_to_dict(permission) if permission else None
    if permission is None:
        permission = UserPermission(role_id=role_id, table_name=table_name)
        session.add(permission)

    for column in ("can_select", "can_insert", "can_update", "can_delete"):
        value = flags.get(column)
        if value is not None:
            setattr(permission, column, value)
        elif getattr(permission, column) is None:
            setattr(permission, column, False)

    await session.flush()
    await session.commit()
    new_values = _permission_to_dict(permission)
    await audit_service.record(
        session, actor_id, "UPDATE", "UserPermissions", permission.id,
        old_values=old_values, new_values=new_values,
    )
    return new_values
