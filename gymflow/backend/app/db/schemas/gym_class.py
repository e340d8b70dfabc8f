from datetime import datetime
from pydantic import BaseModel, Field

from ..models.gym_class import ClassStatus
from .booking import WaitlistEntry


class ClassSessionBase(BaseModel):
    title: str = ""
    starts_at: datetime
    ends_at: datetime | None = None
    capacity: int = Field(ge=1)


class ClassSessionCreate(ClassSessionBase):
    pass


class ClassSessionUpdate(BaseModel):
    title: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    capacity: int | None = Field(default=None, ge=1)


class ClassSession(ClassSessionBase):
    id: int
    status: ClassStatus
    booked_seats: int | None = None
    available_seats: int | None = None
    waitlist_count: int | None = None

    class Config:
        from_attributes = True


class ClassOccupancy(BaseModel):
    class_id: int
    status: ClassStatus
    capacity: int
    booked: int
    available: int
    waitlist: list[WaitlistEntry]
