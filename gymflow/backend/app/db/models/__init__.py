from .member import Member
from .gym_class import ClassSession, ClassStatus
from .booking import (
    ACTIVE_BOOKING_STATUSES,
    BOOKING_TRANSITIONS,
    Booking,
    BookingStatus,
)
from .notification_preference import NotificationPreference, NotificationChannel
from .audit_log import AuditLog, ActorType
