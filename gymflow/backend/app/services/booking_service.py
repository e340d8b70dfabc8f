import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import BOOKING_PROMOTED_ACTION, SYSTEM_ACTOR
from ..core.locks import KeyedLock, class_locks
from ..db import models
from ..db.models.booking import BOOKING_TRANSITIONS, BookingStatus
from ..db.models.gym_class import ClassStatus
from ..events import BookingPromoted, EventChannel
from . import waitlist_service

logger = logging.getLogger(__name__)

_ACTIVE_BOOKING_INDEX = "uq_class_booking_active_member"
_DUPLICATE_MESSAGE = "Member already booked this class"


class BookingError(Exception):
    pass


class DuplicateBooking(BookingError):
    pass


class ClassNotFound(BookingError):
    pass


class MemberNotFound(BookingError):
    pass


class BookingNotFound(BookingError):
    pass


class ClassNotBookable(BookingError):
    pass


class InvalidTransition(BookingError):
    pass


class StoreError(BookingError):
    pass


@dataclass(slots=True)
class CancellationResult:
    booking: models.Booking | None = None
    promoted: models.Booking | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_active_booking_conflict(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", "") or ""
    if constraint == _ACTIVE_BOOKING_INDEX:
        return True
    # sqlite reports the columns instead of the index name
    return "class_bookings.class_id, class_bookings.member_id" in str(exc.orig)


@contextmanager
def unit_of_work(db: Session, *, operation: str) -> Iterator[None]:
    try:
        yield
        db.commit()
    except BookingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        if _is_active_booking_conflict(exc):
            raise DuplicateBooking(_DUPLICATE_MESSAGE) from exc
        raise StoreError(f"Store rejected {operation}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(f"Store failed during {operation}") from exc


def lock_class(db: Session, class_id: int) -> models.ClassSession | None:
    return (
        db.execute(
            select(models.ClassSession)
            .where(models.ClassSession.id == class_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalar_one_or_none()
    )


def transition(booking: models.Booking, target: BookingStatus) -> None:
    allowed = BOOKING_TRANSITIONS[booking.status]
    if target not in allowed:
        raise InvalidTransition(
            f"Cannot move booking from {booking.status.value} to {target.value}"
        )
    booking.status = target


def _promote_next(db: Session, class_id: int, *, vacated_by: str) -> models.Booking | None:
    candidate = waitlist_service.oldest_waitlisted(db, class_id)
    if candidate is None:
        return None
    transition(candidate, BookingStatus.booked)
    candidate.promoted_at = _utc_now()
    db.add(
        models.AuditLog(
            actor_type=models.ActorType.system,
            actor_id=SYSTEM_ACTOR,
            action=BOOKING_PROMOTED_ACTION,
            payload={
                "booking_id": candidate.id,
                "member_id": candidate.member_id,
                "class_id": class_id,
                "vacated_by": vacated_by,
            },
        )
    )
    # later queries in the same transaction must not see it as waitlisted
    db.flush()
    logger.info(
        "Promoted waitlisted booking",
        extra={"booking_id": candidate.id, "class_id": class_id, "member_id": candidate.member_id},
    )
    return candidate


def _publish_promotion(events: EventChannel | None, booking: models.Booking) -> None:
    if events is None:
        return
    events.publish(
        BookingPromoted(
            booking_id=booking.id,
            member_id=booking.member_id,
            class_id=booking.class_id,
        )
    )


def create_booking(
    db: Session,
    class_id: int,
    member_id: int,
    *,
    locks: KeyedLock = class_locks,
) -> models.Booking:
    """Admit a member to a class, as ``booked`` while seats remain, else ``waitlisted``."""

    with locks.hold(class_id):
        with unit_of_work(db, operation="booking"):
            gym_class = lock_class(db, class_id)
            if gym_class is None:
                raise ClassNotFound("Class not found")
            if db.get(models.Member, member_id) is None:
                raise MemberNotFound("Member not found")
            if gym_class.status != ClassStatus.scheduled:
                raise ClassNotBookable("Class is cancelled")
            if waitlist_service.get_active_booking(db, class_id, member_id) is not None:
                raise DuplicateBooking(_DUPLICATE_MESSAGE)

            booked = waitlist_service.count_booked(db, class_id)
            status = BookingStatus.booked if booked < gym_class.capacity else BookingStatus.waitlisted
            booking = models.Booking(
                class_id=class_id,
                member_id=member_id,
                status=status,
                booked_at=_utc_now(),
            )
            db.add(booking)
    logger.info(
        "Created booking",
        extra={"booking_id": booking.id, "class_id": class_id, "member_id": member_id, "status": status.value},
    )
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    *,
    actor: str = SYSTEM_ACTOR,
    events: EventChannel | None = None,
    locks: KeyedLock = class_locks,
) -> CancellationResult:
    """Cancel a booking and hand a vacated seat to the oldest waitlisted booking.

    Unknown or already cancelled bookings are a no-op and yield an empty result.
    Cancellation and promotion commit together; the promotion event is
    published only after the commit.
    """

    try:
        booking = db.get(models.Booking, booking_id)
    except SQLAlchemyError as exc:
        raise StoreError("Store failed during cancellation") from exc
    if booking is None or booking.status == BookingStatus.cancelled:
        return CancellationResult()

    class_id = booking.class_id
    promoted = None
    with locks.hold(class_id):
        with unit_of_work(db, operation="cancellation"):
            lock_class(db, class_id)
            db.refresh(booking, with_for_update=True)
            if booking.status == BookingStatus.cancelled:
                return CancellationResult()
            prior_status = booking.status
            transition(booking, BookingStatus.cancelled)
            booking.cancelled_at = _utc_now()
            booking.cancelled_by = actor
            if prior_status == BookingStatus.booked:
                promoted = _promote_next(db, class_id, vacated_by=actor)

    logger.info(
        "Cancelled booking",
        extra={"booking_id": booking_id, "class_id": class_id, "actor": actor},
    )
    if promoted is not None:
        _publish_promotion(events, promoted)
    return CancellationResult(booking=booking, promoted=promoted)


def check_in(db: Session, booking_id: int) -> models.Booking:
    with unit_of_work(db, operation="check-in"):
        booking = db.get(models.Booking, booking_id)
        if booking is None:
            raise BookingNotFound("Booking not found")
        if booking.status != BookingStatus.booked:
            raise BookingError("Cannot check in")
        if booking.checked_in_at is None:
            booking.checked_in_at = _utc_now()
    return booking


def reconcile_waitlist(
    db: Session,
    class_id: int,
    *,
    events: EventChannel | None = None,
    locks: KeyedLock = class_locks,
) -> list[models.Booking]:
    """Fill free seats of a scheduled class from its waitlist in FIFO order."""

    promoted: list[models.Booking] = []
    with locks.hold(class_id):
        with unit_of_work(db, operation="waitlist reconciliation"):
            gym_class = lock_class(db, class_id)
            if gym_class is None:
                raise ClassNotFound("Class not found")
            if gym_class.status != ClassStatus.scheduled:
                return promoted
            free_seats = gym_class.capacity - waitlist_service.count_booked(db, class_id)
            while free_seats > 0:
                booking = _promote_next(db, class_id, vacated_by=SYSTEM_ACTOR)
                if booking is None:
                    break
                promoted.append(booking)
                free_seats -= 1
    for booking in promoted:
        _publish_promotion(events, booking)
    return promoted


def reconcile_all_waitlists(db: Session, *, events: EventChannel | None = None) -> int:
    """Run ``reconcile_waitlist`` for every scheduled class with a waitlist.

    A store failure on one class is logged and the sweep moves on to the next.
    """

    class_ids = (
        db.execute(
            select(models.Booking.class_id)
            .join(models.ClassSession)
            .where(models.ClassSession.status == ClassStatus.scheduled)
            .where(models.Booking.status == BookingStatus.waitlisted)
            .distinct()
        )
        .scalars()
        .all()
    )
    total = 0
    for class_id in class_ids:
        try:
            total += len(reconcile_waitlist(db, class_id, events=events))
        except StoreError:
            logger.exception("Waitlist reconciliation failed", extra={"class_id": class_id})
    if total:
        logger.info("Waitlist reconciliation promoted bookings", extra={"promoted": total})
    return total
