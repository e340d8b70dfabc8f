from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...api.errors import http_error
from ...core.constants import ALL_ROLES
from ...core.security import Principal
from ...db.session import get_db
from ...db import models, schemas
from ...services import booking_service, preferences_service, waitlist_service

router = APIRouter(prefix="/members", tags=["members"])


def _get_member_or_404(db: Session, member_id: int) -> models.Member:
    member = db.get(models.Member, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


@router.get("/{member_id}/bookings", response_model=list[schemas.Booking])
def member_bookings(
    member_id: int,
    active_only: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    deps.ensure_member_scope(principal, member_id)
    _get_member_or_404(db, member_id)
    return waitlist_service.list_member_bookings(db, member_id, active_only=active_only)


@router.get(
    "/{member_id}/notification-preferences",
    response_model=list[schemas.NotificationPreference],
)
def list_notification_preferences(
    member_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    deps.ensure_member_scope(principal, member_id)
    _get_member_or_404(db, member_id)
    return preferences_service.list_preferences(db, member_id)


@router.put(
    "/{member_id}/notification-preferences",
    response_model=schemas.NotificationPreference,
)
def update_notification_preference(
    member_id: int,
    payload: schemas.NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(*ALL_ROLES)),
):
    deps.ensure_member_scope(principal, member_id)
    _get_member_or_404(db, member_id)
    try:
        return preferences_service.set_preference(
            db, member_id, payload.event, payload.channel, payload.enabled
        )
    except booking_service.BookingError as exc:
        raise http_error(exc) from exc
