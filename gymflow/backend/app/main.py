import logging

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import bookings, classes, members, misc
from .db.session import Base, engine, SessionLocal
from .config import get_settings
from .events import EventChannel
from .services import notification_service
from .workers.scheduler import get_scheduler


settings = get_settings()
logging.basicConfig(level=settings.log_level.upper())

app = FastAPI(title="GymFlow Booking API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(classes.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(members.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")

app.state.events = EventChannel(maxsize=settings.event_queue_size)
notification_service.register_handlers(app.state.events, SessionLocal)


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
    if settings.scheduler_enabled:
        scheduler = get_scheduler(app.state.events, SessionLocal)
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    # flush whatever promotions are still queued before the process exits
    await run_in_threadpool(app.state.events.dispatch_pending)
