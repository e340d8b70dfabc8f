from .booking import (
    Booking,
    BookingCancelResult,
    BookingCreate,
    BookingStats,
    WaitlistEntry,
)
from .gym_class import ClassOccupancy, ClassSession, ClassSessionCreate, ClassSessionUpdate
from .member import NotificationPreference, NotificationPreferenceUpdate
