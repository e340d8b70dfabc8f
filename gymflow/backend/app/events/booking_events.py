"""Booking domain events."""
from dataclasses import dataclass
from typing import Any, ClassVar, Dict

from ..core.constants import BOOKING_PROMOTED_EVENT


@dataclass(slots=True, frozen=True)
class BookingPromoted:
    """Fired after a waitlisted booking is moved into a vacated seat."""

    name: ClassVar[str] = BOOKING_PROMOTED_EVENT

    booking_id: int
    member_id: int
    class_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookingId": self.booking_id,
            "memberId": self.member_id,
            "classId": self.class_id,
        }
