from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.constants import CLASS_CANCELLED_ACTION
from ..core.locks import KeyedLock, class_locks
from ..db import models
from ..db.models.booking import ACTIVE_BOOKING_STATUSES
from ..events import EventChannel
from . import booking_service

logger = logging.getLogger(__name__)


def list_classes(
    db: Session,
    *,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    status: models.ClassStatus | None = None,
) -> list[models.ClassSession]:
    stmt = select(models.ClassSession)
    if from_dt:
        stmt = stmt.where(models.ClassSession.starts_at >= from_dt)
    if to_dt:
        stmt = stmt.where(models.ClassSession.starts_at <= to_dt)
    if status:
        stmt = stmt.where(models.ClassSession.status == status)
    return list(db.execute(stmt.order_by(models.ClassSession.starts_at)).scalars().all())


def create_class(db: Session, **fields: Any) -> models.ClassSession:
    gym_class = models.ClassSession(**fields)
    with booking_service.unit_of_work(db, operation="class creation"):
        db.add(gym_class)
    db.refresh(gym_class)
    return gym_class


def update_class(
    db: Session,
    gym_class: models.ClassSession,
    changes: dict[str, Any],
    *,
    events: EventChannel | None = None,
    locks: KeyedLock = class_locks,
) -> models.ClassSession:
    """Apply field changes; extra capacity is offered to the waitlist straight away.

    Lowering capacity below the current number of booked members keeps them
    booked, it only stops further admissions.
    """

    class_id = gym_class.id
    with locks.hold(class_id):
        with booking_service.unit_of_work(db, operation="class update"):
            locked = booking_service.lock_class(db, class_id)
            if locked is None:
                raise booking_service.ClassNotFound("Class not found")
            previous_capacity = locked.capacity
            for key, value in changes.items():
                setattr(locked, key, value)
        if locked.capacity > previous_capacity:
            booking_service.reconcile_waitlist(db, class_id, events=events, locks=locks)
    db.refresh(locked)
    return locked


def cancel_class(
    db: Session,
    gym_class: models.ClassSession,
    *,
    actor: str,
    locks: KeyedLock = class_locks,
) -> models.ClassSession:
    """Cancel a class together with every active booking it holds.

    Already cancelled classes are returned unchanged.
    """

    class_id = gym_class.id
    bookings: list[models.Booking] = []
    now = datetime.now(timezone.utc)
    with locks.hold(class_id):
        with booking_service.unit_of_work(db, operation="class cancellation"):
            locked = booking_service.lock_class(db, class_id)
            if locked is None:
                raise booking_service.ClassNotFound("Class not found")
            if locked.status == models.ClassStatus.cancelled:
                return locked

            locked.status = models.ClassStatus.cancelled
            # admissions that commit after this flush see the class as cancelled
            db.flush()

            bookings = list(
                db.execute(
                    select(models.Booking)
                    .where(models.Booking.class_id == class_id)
                    .where(models.Booking.status.in_(ACTIVE_BOOKING_STATUSES))
                    .order_by(models.Booking.booked_at, models.Booking.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                .scalars()
                .all()
            )

            for booking in bookings:
                prior_status = booking.status
                booking_service.transition(booking, models.BookingStatus.cancelled)
                booking.cancelled_at = now
                booking.cancelled_by = actor
                db.add(
                    models.AuditLog(
                        actor_type=models.ActorType.staff,
                        actor_id=actor,
                        action=CLASS_CANCELLED_ACTION,
                        payload={
                            "booking_id": booking.id,
                            "member_id": booking.member_id,
                            "class_id": class_id,
                            "prior_status": prior_status.value,
                        },
                    )
                )
    logger.info(
        "Cancelled class",
        extra={"class_id": class_id, "cancelled_bookings": len(bookings), "actor": actor},
    )
    db.refresh(locked)
    return locked
