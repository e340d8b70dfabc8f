from fastapi import APIRouter, Depends

from ...api import deps
from ...events import EventChannel

router = APIRouter(tags=["misc"])


@router.get("/health")
def health_check(events: EventChannel = Depends(deps.get_event_channel)):
    return {"status": "ok", "pending_events": events.pending(), "dropped_events": events.dropped}
