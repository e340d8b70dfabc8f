from sqlalchemy.orm import Session

from ..db import models
from ..db.models.notification_preference import NotificationChannel
from . import booking_service


def is_notification_enabled(
    db: Session,
    member_id: int,
    event: str,
    channel: NotificationChannel = NotificationChannel.email,
) -> bool:
    preference = (
        db.query(models.NotificationPreference)
        .filter_by(member_id=member_id, event=event, channel=channel)
        .first()
    )
    # no stored preference means the member has not opted out
    return preference.enabled if preference else True


def list_preferences(db: Session, member_id: int) -> list[models.NotificationPreference]:
    return (
        db.query(models.NotificationPreference)
        .filter_by(member_id=member_id)
        .order_by(models.NotificationPreference.event, models.NotificationPreference.channel)
        .all()
    )


def set_preference(
    db: Session,
    member_id: int,
    event: str,
    channel: NotificationChannel,
    enabled: bool,
) -> models.NotificationPreference:
    with booking_service.unit_of_work(db, operation="preference update"):
        preference = (
            db.query(models.NotificationPreference)
            .filter_by(member_id=member_id, event=event, channel=channel)
            .first()
        )
        if preference is None:
            preference = models.NotificationPreference(
                member_id=member_id, event=event, channel=channel, enabled=enabled
            )
            db.add(preference)
        else:
            preference.enabled = enabled
    db.refresh(preference)
    return preference
