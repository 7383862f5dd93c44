"""
Shared pytest configuration for TeamTango tests.

Each test gets its own SQLite database file (via aiosqlite) with the full
schema and the seeded roles, permission matrix and sports. The settings the
application reads at import time are pinned here, before any teamtango
module is imported.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-only-signing-key")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from teamtango.database import db  # noqa: E402
from teamtango.database.db import Base  # noqa: E402
from teamtango.database.init_defaults import seed_reference_data  # noqa: E402
from teamtango.database.models import Sport, User  # noqa: E402
from teamtango.services import auth_service, user_service  # noqa: E402
from teamtango.utils.constants import ADMIN, PLAYER, SUPER_ADMIN, VENUE_OWNER  # noqa: E402
from teamtango.utils.datetime_utils import local_now  # noqa: E402

TEST_PASSWORD = "s3cret-pass"


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Engine over a fresh SQLite file; AsyncSessionLocal is pointed at it for the test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'teamtango_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with session_maker() as session:
        await seed_reference_data(session)

    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory creating a user with the given role and returning its public dict."""
    counter = {"n": 0}

    async def _make(role_id=PLAYER, name=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@example.com",
            password_hash=auth_service.hash_password(TEST_PASSWORD),
            phone_number=f"98220{n:05d}",
            role_id=role_id,
        )
        db_session.add(user)
        await db_session.flush()
        await db_session.commit()
        return await user_service.get_user_by_id(db_session, user.id)

    return _make


@pytest_asyncio.fixture
async def player(make_user):
    return await make_user(PLAYER, name="Asha Player", email="asha@example.com")


@pytest_asyncio.fixture
async def other_player(make_user):
    return await make_user(PLAYER, name="Rohan Player", email="rohan@example.com")


@pytest_asyncio.fixture
async def owner(make_user):
    return await make_user(VENUE_OWNER, name="Vikram Owner", email="vikram@example.com")


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(ADMIN, name="Meera Admin", email="meera@example.com")


@pytest_asyncio.fixture
async def super_admin(make_user):
    return await make_user(SUPER_ADMIN, name="Root Admin", email="root@example.com")


@pytest_asyncio.fixture
async def venue(db_session, owner):
    """A Koregaon Park football turf owned by `owner`, at 1000/hour."""
    from teamtango.services import venue_service

    football = (await db_session.execute(select(Sport.id).where(Sport.name == "Football"))).scalar_one()
    return await venue_service.create_venue(
        db_session,
        {
            "name": "Koregaon Turf",
            "address": "Lane 7, Koregaon Park",
            "location": "Koregaon Park",
            "city": "Pune",
            "sport_id": football,
            "price_per_hour": 1000,
        },
        owner,
    )


@pytest.fixture
def play_date():
    """A local date safely in the future."""
    return local_now().date() + timedelta(days=2)
