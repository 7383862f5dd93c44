#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to seed roles, the permission matrix and sports.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teamtango.config import get_settings
from teamtango.database.db import AsyncSessionLocal
from teamtango.database.models import Role, Sport, UserPermission
from teamtango.services import user_service
from teamtango.utils.constants import (
    ADMIN,
    DEFAULT_SPORTS,
    PERMISSION_TABLES,
    PLAYER,
    ROLE_NAMES,
    SUPER_ADMIN,
    VENUE_OWNER,
)

logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS = {
    PLAYER: "Books venues, forms teams and plays matches",
    VENUE_OWNER: "Manages venues, timeslots and their bookings",
    ADMIN: "Moderates content and manages users",
    SUPER_ADMIN: "Full control including user deletion and admin promotion",
}

# (select, insert, update, delete) per role and table; row-level ownership is
# enforced separately by the route guards.
READ_ONLY = (True, False, False, False)
FULL = (True, True, True, True)
DEFAULT_PERMISSIONS = {
    PLAYER: {
        "Venues": READ_ONLY,
        "Sports": READ_ONLY,
        "Timeslots": READ_ONLY,
        "Bookings": (True, True, True, False),
        "Payments": (True, True, False, False),
        "Teams": FULL,
        "TeamMembers": FULL,
        "Matches": FULL,
        "Feedback": FULL,
        "Notifications": (True, False, True, True),
        "Users": (True, False, True, False),
    },
    VENUE_OWNER: {
        "Venues": FULL,
        "Sports": READ_ONLY,
        "Timeslots": FULL,
        "Bookings": (True, False, True, False),
        "Payments": READ_ONLY,
        "Teams": READ_ONLY,
        "TeamMembers": READ_ONLY,
        "Matches": READ_ONLY,
        "Feedback": (True, True, True, True),
        "Notifications": (True, False, True, True),
        "Users": (True, False, True, False),
    },
    ADMIN: {table: FULL for table in PERMISSION_TABLES},
    SUPER_ADMIN: {table: FULL for table in PERMISSION_TABLES},
}


async def seed_reference_data(session: AsyncSession) -> None:
    """Insert any missing roles, permission rows and sports. Safe to run repeatedly."""
    for role_id, name in ROLE_NAMES.items():
        if await session.get(Role, role_id) is None:
            session.add(Role(id=role_id, name=name, description=ROLE_DESCRIPTIONS[role_id]))
            logger.info(f"✓ Added role {name}")
    await session.flush()

    existing = await session.execute(select(UserPermission.role_id, UserPermission.table_name))
    seeded = set(existing.all())
    for role_id, tables in DEFAULT_PERMISSIONS.items():
        for table_name, (can_select, can_insert, can_update, can_delete) in tables.items():
            if (role_id, table_name) in seeded:
                continue
            session.add(
                UserPermission(
                    role_id=role_id,
                    table_name=table_name,
                    can_select=can_select,
                    can_insert=can_insert,
                    can_update=can_update,
                    can_delete=can_delete,
                )
            )

    sports = await session.execute(select(Sport.name))
    known = {name for (name,) in sports.all()}
    for sport_name in DEFAULT_SPORTS:
        if sport_name not in known:
            session.add(Sport(name=sport_name))

    await session.commit()


async def init_defaults():
    """Seed reference data and create the bootstrap SuperAdmin if configured."""
    logger.info("Initializing default database values...")
    settings = get_settings()

    async with AsyncSessionLocal() as session:
        await seed_reference_data(session)

        if settings.BOOTSTRAP_ADMIN_EMAIL and settings.BOOTSTRAP_ADMIN_PASSWORD:
            user_id = await user_service.ensure_super_admin(
                session, settings.BOOTSTRAP_ADMIN_EMAIL, settings.BOOTSTRAP_ADMIN_PASSWORD
            )
            if user_id:
                logger.info(f"✓ Created bootstrap SuperAdmin {settings.BOOTSTRAP_ADMIN_EMAIL}")

    logger.info("✓ Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
