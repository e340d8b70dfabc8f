from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from ...api import deps
from ...api.errors import http_error
from ...core.constants import ALL_ROLES, MEMBER_ROLE
from ...core.security import Principal
from ...db.session import get_db
from ...db import models, schemas
from ...events import EventChannel
from ...services import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _to_schema(booking: models.Booking | None) -> schemas.Booking | None:
    return schemas.Booking.model_validate(booking) if booking is not None else None


@router.get("", response_model=list[schemas.Booking])
def list_bookings(
    class_id: int | None = None,
    member_id: int | None = None,
    status_filter: models.BookingStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles("admin", "manager", "staff")),
):
    query = db.query(models.Booking)
    if class_id:
        query = query.filter(models.Booking.class_id == class_id)
    if member_id:
        query = query.filter(models.Booking.member_id == member_id)
    if status_filter:
        query = query.filter(models.Booking.status == status_filter)
    return query.order_by(models.Booking.booked_at, models.Booking.id).all()


@router.post("", response_model=schemas.Booking, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    deps.ensure_member_scope(principal, payload.member_id)
    try:
        return booking_service.create_booking(db, payload.class_id, payload.member_id)
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc


@router.post("/{booking_id}/cancel", response_model=schemas.BookingCancelResult)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    events: EventChannel = Depends(deps.get_event_channel),
    principal: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    if principal.role == MEMBER_ROLE:
        booking = db.get(models.Booking, booking_id)
        if booking is not None:
            deps.ensure_member_scope(principal, booking.member_id)
    try:
        result = booking_service.cancel_booking(
            db, booking_id, actor=principal.subject, events=events
        )
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc
    return schemas.BookingCancelResult(
        booking=_to_schema(result.booking),
        promoted=_to_schema(result.promoted),
    )


@router.post("/{booking_id}/check-in", response_model=schemas.Booking)
def check_in(
    booking_id: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles("admin", "manager", "staff")),
):
    try:
        return booking_service.check_in(db, booking_id)
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc


@router.get("/stats", response_model=schemas.BookingStats)
def booking_stats(
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles("admin", "manager")),
):
    now = datetime.now(timezone.utc)
    by_status = dict(
        db.query(models.Booking.status, func.count(models.Booking.id))
        .group_by(models.Booking.status)
        .all()
    )
    checked_in = (
        db.query(models.Booking)
        .filter(models.Booking.checked_in_at.isnot(None))
        .count()
    )
    started_booked = (
        db.query(models.Booking)
        .join(models.ClassSession)
        .filter(models.ClassSession.starts_at < now)
        .filter(models.Booking.status == models.BookingStatus.booked)
    )
    started_total = started_booked.count()
    attended = started_booked.filter(models.Booking.checked_in_at.isnot(None)).count()
    attendance_rate = (attended / started_total) * 100 if started_total else 0.0

    return schemas.BookingStats(
        total=sum(by_status.values()),
        booked=by_status.get(models.BookingStatus.booked, 0),
        waitlisted=by_status.get(models.BookingStatus.waitlisted, 0),
        cancelled=by_status.get(models.BookingStatus.cancelled, 0),
        checked_in=checked_in,
        attendance_rate=attendance_rate,
    )
