"""
Pydantic models for API request/response validation.

Request fields that the service layer validates (to report a precise 400)
are Optional here.
"""

from datetime import date, time
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Auth / users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Self-registration for players and venue owners."""

    model_config = ConfigDict(populate_by_name=True)
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    user_type: Optional[str] = Field(None, alias="userType")
    gender: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    role_id: int
    role_name: Optional[str] = None
    created_at: Optional[str] = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)


class RoleChangeRequest(BaseModel):
    role_id: int


class PermissionCheckResponse(BaseModel):
    table_name: str
    action: str
    role_name: Optional[str] = None
    has_permission: bool


class PermissionUpdate(BaseModel):
    can_select: Optional[bool] = None
    can_insert: Optional[bool] = None
    can_update: Optional[bool] = None
    can_delete: Optional[bool] = None


# ---------------------------------------------------------------------------
# Sports / venues / timeslots
# ---------------------------------------------------------------------------


class SportRequest(BaseModel):
    name: Optional[str] = None


class VenueCreate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    sport_id: Optional[int] = None
    contact_number: Optional[str] = None
    price_per_hour: Optional[float] = None
    description: Optional[str] = None
    owner_id: Optional[int] = None


class VenueUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = None
    city: Optional[str] = None
    sport_id: Optional[int] = None
    contact_number: Optional[str] = None
    price_per_hour: Optional[float] = None
    description: Optional[str] = None


class TimeslotCreate(BaseModel):
    slot_date: date
    start_time: time
    end_time: time
    price: Optional[float] = None


# ---------------------------------------------------------------------------
# Bookings / payments
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    venue_id: Optional[int] = None
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    team_id: Optional[int] = None


class BookingUpdate(BaseModel):
    status: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    team_id: Optional[int] = None


class BookingResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    venue_id: int
    venue_name: Optional[str] = None
    timeslot_id: int
    team_id: Optional[int] = None
    booking_date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    total_amount: float
    status: str
    payment_status: Optional[str] = None
    created_at: Optional[str] = None


class PaymentCreate(BaseModel):
    booking_id: Optional[int] = None
    amount: Optional[float] = None
    method: Optional[str] = "Cash"


class RefundRequest(BaseModel):
    reason: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    user_id: Optional[int] = None
    venue_id: Optional[int] = None
    venue_name: Optional[str] = None
    booking_status: Optional[str] = None
    amount: float
    method: str
    status: str
    payment_date: Optional[str] = None
    refund_reason: Optional[str] = None
    created_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Teams / matches / feedback
# ---------------------------------------------------------------------------


class TeamCreate(BaseModel):
    name: Optional[str] = None
    sport_id: Optional[int] = None


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    sport_id: Optional[int] = None


class JoinTeamRequest(BaseModel):
    position: Optional[str] = None


class CaptaincyTransfer(BaseModel):
    new_captain_id: int


class MatchCreate(BaseModel):
    title: Optional[str] = None
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    venue_id: Optional[int] = None
    match_date: Optional[date] = None
    match_time: Optional[time] = None


class MatchUpdate(BaseModel):
    title: Optional[str] = None
    match_date: Optional[date] = None
    match_time: Optional[time] = None
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    status: Optional[str] = None


class FeedbackCreate(BaseModel):
    venue_id: Optional[int] = None
    rating: Optional[int] = None
    comment: Optional[str] = None


class FeedbackUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationCreate(BaseModel):
    user_id: int
    title: str
    message: str
    type: str = "system"


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    read_at: Optional[str] = None
    created_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total_count: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    count: int
