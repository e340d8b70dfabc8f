"""Common application-wide constants."""

# Event emitted when a waitlisted booking takes a vacated seat
BOOKING_PROMOTED_EVENT = "booking.promoted"

# Actor recorded for cancellations and promotions triggered by the service itself
SYSTEM_ACTOR = "system"

# Audit log actions
BOOKING_PROMOTED_ACTION = "booking_promoted"
CLASS_CANCELLED_ACTION = "class_cancelled_booking"

STAFF_ROLES = ("admin", "manager", "staff")
MEMBER_ROLE = "member"
ALL_ROLES = (*STAFF_ROLES, MEMBER_ROLE)


__all__ = [
    "BOOKING_PROMOTED_EVENT",
    "SYSTEM_ACTOR",
    "BOOKING_PROMOTED_ACTION",
    "CLASS_CANCELLED_ACTION",
    "STAFF_ROLES",
    "MEMBER_ROLE",
    "ALL_ROLES",
]
