from .booking_events import BookingPromoted
from .channel import EventChannel, EventHandler

__all__ = ["BookingPromoted", "EventChannel", "EventHandler"]
