from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class BookingStatus(str, PyEnum):
    booked = "booked"
    waitlisted = "waitlisted"
    cancelled = "cancelled"


ACTIVE_BOOKING_STATUSES = (BookingStatus.booked, BookingStatus.waitlisted)

# Every status must appear as a key; transitions not listed here are rejected.
BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.booked: frozenset({BookingStatus.cancelled}),
    BookingStatus.waitlisted: frozenset({BookingStatus.booked, BookingStatus.cancelled}),
    BookingStatus.cancelled: frozenset(),
}

_ACTIVE_WHERE = text("status IN ('booked', 'waitlisted')")


class Booking(Base):
    __tablename__ = "class_bookings"
    __table_args__ = (
        Index(
            "uq_class_booking_active_member",
            "class_id",
            "member_id",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index("ix_class_bookings_class_status_booked_at", "class_id", "status", "booked_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"))
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id", ondelete="CASCADE"))
    status: Mapped[BookingStatus] = mapped_column(Enum(BookingStatus), default=BookingStatus.booked)
    booked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    promoted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(64))

    member = relationship("Member")
    gym_class = relationship("ClassSession", back_populates="bookings")
