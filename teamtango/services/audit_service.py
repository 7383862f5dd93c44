"""
Audit log writes and queries.

Audit entries are best-effort: a failure to record one is logged and never
propagates to the operation being audited.
"""

from typing import Dict, List, Optional
import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.database.models import AuditLog

logger = logging.getLogger(__name__)


async def record(
    session: AsyncSession,
    user_id: Optional[int],
    action: str,
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    details: Optional[str] = None,
    old_values: Optional[Dict] = None,
    new_values: Optional[Dict] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    Append an audit entry and commit it.

    Must be called after the primary operation has committed; on failure the
    session is rolled back and a warning is logged.
    """
    try:
        session.add(
            AuditLog(
                user_id=user_id,
                action=action,
                table_name=table_name,
                record_id=record_id,
                details=details,
                old_values=json.dumps(old_values, default=str) if old_values else None,
                new_values=json.dumps(new_values, default=str) if new_values else None,
                ip_address=ip_address,
            )
        )
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.warning(f"Failed to write audit entry {action} on {table_name}: {e}")


def _entry_to_dict(entry: AuditLog) -> Dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "action": entry.action,
        "table_name": entry.table_name,
        "record_id": entry.record_id,
        "details": entry.details,
        "old_values": json.loads(entry.old_values) if entry.old_values else None,
        "new_values": json.loads(entry.new_values) if entry.new_values else None,
        "ip_address": entry.ip_address,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


async def get_user_activity(session: AsyncSession, user_id: int, limit: int = 50) -> List[Dict]:
    """Most recent audit entries for a user, newest first."""
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.user_id == user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
    )
    return [_entry_to_dict(e) for e in result.scalars().all()]
