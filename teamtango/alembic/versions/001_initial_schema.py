"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Creates the full TeamTango schema: roles and permissions, users, sports,
venues, timeslots, bookings, payments, teams and members, matches,
feedback, notifications and the audit log. Includes the partial unique
index that allows one non-cancelled booking per timeslot.
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    from teamtango.database.db import Base
    from teamtango.database import models  # noqa: F401

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    from teamtango.database.db import Base
    from teamtango.database import models  # noqa: F401

    Base.metadata.drop_all(bind=op.get_bind(), checkfirst=True)
