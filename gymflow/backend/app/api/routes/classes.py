from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...api.errors import http_error
from ...core.constants import ALL_ROLES
from ...core.security import Principal
from ...db.session import get_db
from ...db import models, schemas
from ...events import EventChannel
from ...services import booking_service, schedule_service, waitlist_service

router = APIRouter(prefix="/classes", tags=["classes"])


def _get_class_or_404(db: Session, class_id: int) -> models.ClassSession:
    gym_class = db.get(models.ClassSession, class_id)
    if not gym_class:
        raise HTTPException(status_code=404, detail="Class not found")
    return gym_class


@router.get("", response_model=list[schemas.ClassSession])
def list_classes(
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    classes = schedule_service.list_classes(db, from_dt=from_dt, to_dt=to_dt)
    counts = waitlist_service.seat_counts(db, [gym_class.id for gym_class in classes])
    for gym_class in classes:
        class_counts = counts.get(gym_class.id, {})
        booked = class_counts.get(models.BookingStatus.booked, 0)
        setattr(gym_class, "booked_seats", booked)
        setattr(gym_class, "available_seats", max(gym_class.capacity - booked, 0))
        setattr(gym_class, "waitlist_count", class_counts.get(models.BookingStatus.waitlisted, 0))
    return classes


@router.post("", response_model=schemas.ClassSession)
def create_class(
    payload: schemas.ClassSessionCreate,
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles("admin", "manager")),
):
    try:
        return schedule_service.create_class(db, **payload.model_dump())
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc


@router.patch("/{class_id}", response_model=schemas.ClassSession)
def update_class(
    class_id: int,
    payload: schemas.ClassSessionUpdate,
    db: Session = Depends(get_db),
    events: EventChannel = Depends(deps.get_event_channel),
    _: Principal = Depends(deps.require_roles("admin", "manager")),
):
    gym_class = _get_class_or_404(db, class_id)
    try:
        return schedule_service.update_class(
            db,
            gym_class,
            payload.model_dump(exclude_unset=True, exclude_none=True),
            events=events,
        )
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc


@router.post("/{class_id}/cancel", response_model=schemas.ClassSession)
def cancel_class(
    class_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles("admin", "manager")),
):
    gym_class = _get_class_or_404(db, class_id)
    try:
        return schedule_service.cancel_class(db, gym_class, actor=principal.subject)
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc


@router.get("/{class_id}/occupancy", response_model=schemas.ClassOccupancy)
def class_occupancy(
    class_id: int,
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    gym_class = _get_class_or_404(db, class_id)
    occupancy = waitlist_service.class_occupancy(db, gym_class)
    return schemas.ClassOccupancy(
        class_id=occupancy.class_id,
        status=occupancy.status,
        capacity=occupancy.capacity,
        booked=occupancy.booked,
        available=occupancy.available,
        waitlist=[
            schemas.WaitlistEntry(
                position=entry.position,
                booking=schemas.Booking.model_validate(entry.booking),
            )
            for entry in occupancy.waitlist
        ],
    )
