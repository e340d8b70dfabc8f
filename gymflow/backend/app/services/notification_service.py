from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import httpx
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core.constants import BOOKING_PROMOTED_EVENT
from ..db import models
from ..db.models.notification_preference import NotificationChannel
from ..events import BookingPromoted, EventChannel
from . import preferences_service

logger = logging.getLogger(__name__)

PROMOTED_SUBJECT = "Your spot in class is confirmed"


@dataclass(slots=True)
class EmailMessage:
    to: str
    subject: str
    template: str
    text: str
    variables: dict


def build_promotion_message(
    *, member_name: str | None, class_title: str | None, starts_at: datetime
) -> str:
    settings = get_settings()
    if starts_at.tzinfo is None:
        starts_at = starts_at.replace(tzinfo=timezone.utc)
    local_dt = starts_at.astimezone(ZoneInfo(settings.timezone))
    formatted_dt = local_dt.strftime("%d.%m.%Y %H:%M")
    return (
        f"Hello {member_name or 'there'},\n\n"
        "Good news: a spot opened up and your booking is now confirmed.\n\n"
        f"Class: {class_title or 'Class'}\n"
        f"Date: {formatted_dt}\n\n"
        "See you there,\n"
        "The gym team"
    )


def send_email(message: EmailMessage) -> bool:
    settings = get_settings()
    if not settings.email_function_url:
        logger.warning("Email function URL is not configured; skipping email")
        return False

    headers = {}
    if settings.email_api_key:
        headers["Authorization"] = f"Bearer {settings.email_api_key}"
    with httpx.Client(timeout=10) as client:
        try:
            response = client.post(
                settings.email_function_url,
                headers=headers,
                json={
                    "from": settings.email_from,
                    "to": message.to,
                    "subject": message.subject,
                    "template": message.template,
                    "text": message.text,
                    "variables": message.variables,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to send email", extra={"template": message.template})
            return False
    return True


def notify_booking_promoted(db: Session, event: BookingPromoted) -> bool:
    booking = (
        db.query(models.Booking)
        .options(selectinload(models.Booking.member), selectinload(models.Booking.gym_class))
        .filter(models.Booking.id == event.booking_id)
        .first()
    )
    if booking is None:
        return False
    member = booking.member
    if member is None or not member.email:
        logger.info("Promoted member has no email address", extra={"member_id": event.member_id})
        return False
    if not preferences_service.is_notification_enabled(
        db, member.id, BOOKING_PROMOTED_EVENT, NotificationChannel.email
    ):
        logger.info("Promotion email disabled by member", extra={"member_id": member.id})
        return False

    gym_class = booking.gym_class
    text = build_promotion_message(
        member_name=member.full_name,
        class_title=gym_class.title,
        starts_at=gym_class.starts_at,
    )
    return send_email(
        EmailMessage(
            to=member.email,
            subject=PROMOTED_SUBJECT,
            template="booking-promoted",
            text=text,
            variables={
                "memberName": member.full_name,
                "classTitle": gym_class.title,
                "classDate": gym_class.starts_at.isoformat(),
            },
        )
    )


def register_handlers(events: EventChannel, session_factory: Callable[[], Session]) -> None:
    def on_booking_promoted(event: BookingPromoted) -> None:
        with session_factory() as db:
            notify_booking_promoted(db, event)

    events.subscribe(BookingPromoted, on_booking_promoted)
