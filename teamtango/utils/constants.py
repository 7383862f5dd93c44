"""
Constants used across the booking system.
"""

# Role ids (seeded in init_defaults, referenced by users.role_id)
PLAYER = 1
VENUE_OWNER = 2
ADMIN = 3
SUPER_ADMIN = 4

ROLE_NAMES = {
    PLAYER: "Player",
    VENUE_OWNER: "VenueOwner",
    ADMIN: "Admin",
    SUPER_ADMIN: "SuperAdmin",
}

ADMIN_ROLES = (ADMIN, SUPER_ADMIN)

# Self-registration user types
USER_TYPE_ROLES = {
    "player": PLAYER,
    "venue_owner": VENUE_OWNER,
}

# Booking lifecycle: allowed status transitions
BOOKING_TRANSITIONS = {
    "Pending": {"Confirmed", "Cancelled"},
    "Confirmed": {"Completed", "Cancelled"},
    "Completed": set(),
    "Cancelled": set(),
}

ACTIVE_BOOKING_STATUSES = ("Pending", "Confirmed")

PAYMENT_METHODS = ("Cash", "Card", "UPI", "NetBanking", "Wallet")
DEFAULT_PAYMENT_METHOD = "Cash"

ACTIVE_MATCH_STATUSES = ("Scheduled", "Ongoing")

DEFAULT_SPORTS = (
    "Cricket",
    "Football",
    "Badminton",
    "Tennis",
    "Basketball",
    "Volleyball",
    "Table Tennis",
)

# Permission table: action aliases -> permission column
PERMISSION_ACTIONS = {
    "select": "can_select",
    "read": "can_select",
    "insert": "can_insert",
    "create": "can_insert",
    "update": "can_update",
    "edit": "can_update",
    "delete": "can_delete",
    "remove": "can_delete",
}

PERMISSION_TABLES = (
    "Users",
    "Venues",
    "Sports",
    "Timeslots",
    "Bookings",
    "Payments",
    "Teams",
    "TeamMembers",
    "Matches",
    "Feedback",
    "Notifications",
    "Roles",
    "UserPermissions",
)
