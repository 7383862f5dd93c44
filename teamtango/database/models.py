"""
SQLAlchemy ORM models for the TeamTango booking system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    Date,
    Time,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from teamtango.database.db import Base


class BookingStatus(str, enum.Enum):
    """Booking status enum."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class PaymentStatus(str, enum.Enum):
    """Payment status enum."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class MatchStatus(str, enum.Enum):
    """Match status enum."""

    SCHEDULED = "Scheduled"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class NotificationType(str, enum.Enum):
    """Notification type enum."""

    BOOKING_CREATED = "booking_created"
    BOOKING_STATUS = "booking_status"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_REFUNDED = "payment_refunded"
    TEAM_JOINED = "team_joined"
    SYSTEM = "system"


class Role(Base):
    """User roles (Player, VenueOwner, Admin, SuperAdmin)."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(50), nullable=False, unique=True)
    description = Column(String(255), nullable=True)

    permissions = relationship(
        "UserPermission", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )


class User(Base):
    """User accounts with email/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    phone_number = Column(String(20), nullable=True)
    gender = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    role = relationship("Role")

    __table_args__ = (Index("idx_users_role", "role_id"),)


class UserPermission(Base):
    """Per-role CRUD flags for each logical table."""

    __tablename__ = "user_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    table_name = Column(String(50), nullable=False)
    can_select = Column(Boolean, default=False, nullable=False)
    can_insert = Column(Boolean, default=False, nullable=False)
    can_update = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)

    role = relationship("Role", back_populates="permissions")

    __table_args__ = (UniqueConstraint("role_id", "table_name", name="uq_permission_role_table"),)


class Sport(Base):
    __tablename__ = "sports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)


class Venue(Base):
    """Bookable sports venue owned by a venue owner."""

    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    address = Column(Text, nullable=False)
    location = Column(String(150), nullable=True)  # Area/neighbourhood
    city = Column(String(100), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sport_id = Column(Integer, ForeignKey("sports.id"), nullable=True)
    contact_number = Column(String(20), nullable=True)
    price_per_hour = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User")
    sport = relationship("Sport")

    __table_args__ = (
        UniqueConstraint("name", "address", name="uq_venue_name_address"),
        CheckConstraint("price_per_hour IS NULL OR price_per_hour >= 0", name="ck_venue_price"),
        Index("idx_venues_owner", "owner_id"),
        Index("idx_venues_city", "city"),
    )


class Timeslot(Base):
    """A bookable interval at a venue on a given date."""

    __tablename__ = "timeslots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    price = Column(Float, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    venue = relationship("Venue")

    __table_args__ = (
        UniqueConstraint(
            "venue_id", "slot_date", "start_time", "end_time", name="uq_timeslot_venue_interval"
        ),
        CheckConstraint("end_time > start_time", name="ck_timeslot_interval"),
        Index("idx_timeslots_venue_date", "venue_id", "slot_date"),
    )


class Booking(Base):
    """A player's reservation of a timeslot."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False)
    timeslot_id = Column(Integer, ForeignKey("timeslots.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    booking_date = Column(Date, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    venue = relationship("Venue")
    timeslot = relationship("Timeslot")
    team = relationship("Team")
    payment = relationship("Payment", back_populates="booking", uselist=False)

    __table_args__ = (
        # At most one live booking per timeslot
        Index(
            "uq_bookings_active_timeslot",
            "timeslot_id",
            unique=True,
            postgresql_where=text("status <> 'Cancelled'"),
            sqlite_where=text("status <> 'Cancelled'"),
        ),
        Index("idx_bookings_user", "user_id"),
        Index("idx_bookings_venue_status", "venue_id", "status"),
    )


class Payment(Base):
    """Payment for a booking; one row per booking."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    amount = Column(Float, nullable=False)
    method = Column(String(20), nullable=False, default="Cash")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="payment")


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    sport_id = Column(Integer, ForeignKey("sports.id"), nullable=False)
    captain_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sport = relationship("Sport")
    captain = relationship("User")
    members = relationship(
        "TeamMember", back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (UniqueConstraint("name", "sport_id", name="uq_team_name_sport"),)


class TeamMember(Base):
    __tablename__ = "team_members"

    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    position = Column(String(50), nullable=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    team = relationship("Team", back_populates="members")
    user = relationship("User")


class Match(Base):
    """A fixture between a team and another team or an external opponent."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(150), nullable=True)
    team1_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    team2_id = Column(Integer, ForeignKey("teams.id"), nullable=True)  # NULL = external opponent
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False)
    match_date = Column(Date, nullable=False)
    match_time = Column(Time, nullable=True)
    team1_score = Column(Integer, nullable=True)
    team2_score = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=MatchStatus.SCHEDULED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    team1 = relationship("Team", foreign_keys=[team1_id])
    team2 = relationship("Team", foreign_keys=[team2_id])
    venue = relationship("Venue")

    __table_args__ = (
        CheckConstraint("team2_id IS NULL OR team1_id <> team2_id", name="ck_match_distinct_teams"),
        Index("idx_matches_date", "match_date"),
    )


class Feedback(Base):
    """User rating and comment for a venue."""

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    venue_id = Column(Integer, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")
    venue = relationship("Venue")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating"),
        Index("idx_feedback_venue", "venue_id"),
    )


class Notification(Base):
    """User notifications for in-app messaging."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # NotificationType enum value
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
    )


class AuditLog(Base):
    """Append-only record of user actions, including denied attempts."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True)  # no FK: entries outlive deleted users
    action = Column(String(50), nullable=False)
    table_name = Column(String(50), nullable=True)
    record_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)
    old_values = Column(Text, nullable=True)  # JSON string
    new_values = Column(Text, nullable=True)  # JSON string
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_audit_user_created", "user_id", "created_at"),)
