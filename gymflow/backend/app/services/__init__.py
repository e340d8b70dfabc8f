from . import (
    booking_service,
    notification_service,
    preferences_service,
    schedule_service,
    waitlist_service,
)
__all__ = [
    "booking_service",
    "notification_service",
    "preferences_service",
    "schedule_service",
    "waitlist_service",
]
