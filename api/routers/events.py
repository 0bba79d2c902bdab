from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from app.config import events_cache_control, settings
from app.core.clock import Clock, system_clock
from app.models.civic_events import CanonicalEvent, EventsResponse, EventStoreSnapshot
from services.civic_events_repository import get_default_snapshot
from services.civic_events_service import get_event, parse_filters, query_events, upcoming_events
from services.ics_service import IcsEncoder

router = APIRouter(
    prefix="/events",
    tags=["events"],
)


def get_snapshot() -> EventStoreSnapshot:
    return get_default_snapshot()


def get_clock() -> Clock:
    return system_clock


def _calendar_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": events_cache_control(),
        },
    )


@router.get("", response_model=EventsResponse)
@router.get("/", response_model=EventsResponse, include_in_schema=False)
async def list_events(
    response: Response,
    event_type: Optional[str] = Query(
        default=None,
        alias="type",
        description="Comma-separated event types (debate,town_hall,...).",
    ),
    office: Optional[str] = Query(default=None, description="Comma-separated office levels."),
    party: Optional[str] = Query(default=None, description="Comma-separated candidate parties."),
    city: Optional[str] = Query(default=None, description="Comma-separated venue cities."),
    date_from: Optional[str] = Query(default=None, alias="from", description="Inclusive YYYY-MM-DD."),
    date_to: Optional[str] = Query(default=None, alias="to", description="Inclusive YYYY-MM-DD."),
    verified: Optional[str] = Query(default=None, description="true/false."),
    q: Optional[str] = Query(default=None, description="Free-text search."),
    upcoming: Optional[str] = Query(default=None, description="true hides past events."),
    snapshot: EventStoreSnapshot = Depends(get_snapshot),
    clock: Clock = Depends(get_clock),
) -> EventsResponse:
    # Unknown values are not rejected; they just match nothing.
    filters = parse_filters(
        event_type=event_type,
        office=office,
        party=party,
        city=city,
        date_from=date_from,
        date_to=date_to,
        verified=verified,
        q=q,
        upcoming=upcoming,
        today=clock.now().date(),
    )
    response.headers["Cache-Control"] = events_cache_control()
    return query_events(snapshot, filters)


@router.get("/ics", response_class=Response)
async def export_calendar(
    snapshot: EventStoreSnapshot = Depends(get_snapshot),
    clock: Clock = Depends(get_clock),
) -> Response:
    """Downloadable calendar of all upcoming events."""
    events = upcoming_events(snapshot, clock.now().date())
    body = IcsEncoder(clock=clock).encode(events)
    return _calendar_response(body, settings.ICS_FILENAME)


@router.get("/{event_id}", response_model=CanonicalEvent)
async def read_event(
    response: Response,
    event_id: str = Path(..., description="Event id"),
    snapshot: EventStoreSnapshot = Depends(get_snapshot),
) -> CanonicalEvent:
    event = get_event(snapshot, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    response.headers["Cache-Control"] = events_cache_control()
    return event


@router.get("/{event_id}/ics", response_class=Response)
async def export_event_calendar(
    event_id: str = Path(..., description="Event id"),
    snapshot: EventStoreSnapshot = Depends(get_snapshot),
    clock: Clock = Depends(get_clock),
) -> Response:
    event = get_event(snapshot, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    body = IcsEncoder(clock=clock).encode_event(event)
    return _calendar_response(body, f"{event.id}.ics")
