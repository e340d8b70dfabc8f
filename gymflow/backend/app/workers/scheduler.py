import logging
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.orm import Session

from ..config import get_settings
from ..events import EventChannel
from ..services import booking_service

logger = logging.getLogger(__name__)


def dispatch_events(events: EventChannel) -> None:
    delivered = events.dispatch_pending()
    if delivered:
        logger.debug("Dispatched events", extra={"delivered": delivered})


def reconcile_waitlists(session_factory: Callable[[], Session], events: EventChannel) -> None:
    with session_factory() as db:
        booking_service.reconcile_all_waitlists(db, events=events)


def get_scheduler(events: EventChannel, session_factory: Callable[[], Session]) -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        dispatch_events,
        "interval",
        seconds=settings.event_dispatch_interval_sec,
        args=[events],
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        reconcile_waitlists,
        "interval",
        minutes=settings.waitlist_reconcile_interval_min,
        args=[session_factory, events],
        max_instances=1,
        coalesce=True,
    )
    return scheduler
