from datetime import datetime
from pydantic import BaseModel

from ..models.booking import BookingStatus


class BookingBase(BaseModel):
    class_id: int
    member_id: int


class BookingCreate(BookingBase):
    pass


class Booking(BookingBase):
    id: int
    status: BookingStatus
    booked_at: datetime
    checked_in_at: datetime | None = None
    promoted_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None

    class Config:
        from_attributes = True


class BookingCancelResult(BaseModel):
    booking: Booking | None = None
    promoted: Booking | None = None


class WaitlistEntry(BaseModel):
    position: int
    booking: Booking


class BookingStats(BaseModel):
    total: int
    booked: int
    waitlisted: int
    cancelled: int
    checked_in: int
    attendance_rate: float
