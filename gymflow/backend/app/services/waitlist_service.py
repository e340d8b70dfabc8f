"""Read-only capacity and waitlist queries over the booking ledger.

Nothing here is cached; every call recomputes from ``class_bookings``.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import models
from ..db.models.booking import ACTIVE_BOOKING_STATUSES, BookingStatus


@dataclass(slots=True)
class WaitlistPosition:
    position: int
    booking: models.Booking


@dataclass(slots=True)
class ClassOccupancy:
    class_id: int
    status: models.ClassStatus
    capacity: int
    booked: int
    waitlist: list[WaitlistPosition] = field(default_factory=list)

    @property
    def available(self) -> int:
        return max(self.capacity - self.booked, 0)


def _fifo_order():
    return (models.Booking.booked_at, models.Booking.id)


def count_booked(db: Session, class_id: int) -> int:
    return int(
        db.scalar(
            select(func.count(models.Booking.id)).where(
                models.Booking.class_id == class_id,
                models.Booking.status == BookingStatus.booked,
            )
        )
        or 0
    )


def oldest_waitlisted(db: Session, class_id: int) -> models.Booking | None:
    return (
        db.execute(
            select(models.Booking)
            .where(
                models.Booking.class_id == class_id,
                models.Booking.status == BookingStatus.waitlisted,
            )
            .order_by(*_fifo_order())
            .limit(1)
        )
        .scalars()
        .first()
    )


def list_waitlist(db: Session, class_id: int) -> list[WaitlistPosition]:
    bookings = (
        db.execute(
            select(models.Booking)
            .where(
                models.Booking.class_id == class_id,
                models.Booking.status == BookingStatus.waitlisted,
            )
            .order_by(*_fifo_order())
        )
        .scalars()
        .all()
    )
    return [WaitlistPosition(position=index, booking=booking) for index, booking in enumerate(bookings, start=1)]


def get_active_booking(db: Session, class_id: int, member_id: int) -> models.Booking | None:
    return (
        db.execute(
            select(models.Booking)
            .where(
                models.Booking.class_id == class_id,
                models.Booking.member_id == member_id,
                models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(models.Booking.id)
        )
        .scalars()
        .first()
    )


def list_member_bookings(
    db: Session, member_id: int, *, active_only: bool = False
) -> list[models.Booking]:
    stmt = select(models.Booking).where(models.Booking.member_id == member_id)
    if active_only:
        stmt = stmt.where(models.Booking.status.in_(ACTIVE_BOOKING_STATUSES))
    return list(db.execute(stmt.order_by(models.Booking.booked_at.desc(), models.Booking.id.desc())).scalars().all())


def class_occupancy(db: Session, gym_class: models.ClassSession) -> ClassOccupancy:
    return ClassOccupancy(
        class_id=gym_class.id,
        status=gym_class.status,
        capacity=gym_class.capacity,
        booked=count_booked(db, gym_class.id),
        waitlist=list_waitlist(db, gym_class.id),
    )


def seat_counts(db: Session, class_ids: list[int]) -> dict[int, dict[BookingStatus, int]]:
    """Per-class counts of active bookings keyed by status, for list views."""

    if not class_ids:
        return {}
    rows = db.execute(
        select(
            models.Booking.class_id,
            models.Booking.status,
            func.count(models.Booking.id),
        )
        .where(models.Booking.class_id.in_(class_ids))
        .where(models.Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .group_by(models.Booking.class_id, models.Booking.status)
    ).all()
    counts: dict[int, dict[BookingStatus, int]] = {}
    for class_id, status, count in rows:
        counts.setdefault(class_id, {})[status] = int(count)
    return counts
