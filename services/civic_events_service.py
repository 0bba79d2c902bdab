"""
Filtering and ordering of the curated civic event store.

Filter values are parsed permissively: anything unrecognised is kept and
simply matches nothing, so a bad query string yields an empty list instead of
a 4xx. Only the store itself is validated strictly (see the repository).
"""
from __future__ import annotations

from datetime import date
from typing import FrozenSet, Iterable, List, Optional

from app.core.logging import get_logger
from app.models.civic_events import CanonicalEvent, EventFilters, EventsResponse, EventStoreSnapshot

logger = get_logger().bind(module="civic_events")

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def _split_multi(value: Optional[str]) -> Optional[FrozenSet[str]]:
    if value is None:
        return None
    parts = frozenset(fragment.strip() for fragment in value.split(",") if fragment.strip())
    return parts or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def parse_filters(
    *,
    event_type: Optional[str] = None,
    office: Optional[str] = None,
    party: Optional[str] = None,
    city: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    verified: Optional[str] = None,
    q: Optional[str] = None,
    upcoming: Optional[str] = None,
    today: Optional[date] = None,
) -> EventFilters:
    """Build EventFilters from raw query-string values (comma-separated multi-values)."""
    verified_flag: Optional[bool] = None
    verified_invalid = False
    raw_verified = _clean(verified)
    if raw_verified is not None:
        lowered = raw_verified.lower()
        if lowered in _TRUE_VALUES:
            verified_flag = True
        elif lowered in _FALSE_VALUES:
            verified_flag = False
        else:
            verified_invalid = True

    upcoming_from: Optional[str] = None
    raw_upcoming = _clean(upcoming)
    if raw_upcoming is not None and raw_upcoming.lower() in _TRUE_VALUES:
        upcoming_from = (today or date.today()).isoformat()

    return EventFilters(
        event_types=_split_multi(event_type),
        office_levels=_split_multi(office),
        parties=_split_multi(party),
        cities=_split_multi(city),
        date_from=_clean(date_from),
        date_to=_clean(date_to),
        verified=verified_flag,
        verified_invalid=verified_invalid,
        search=_clean(q),
        upcoming_from=upcoming_from,
    )


def _search_haystack(event: CanonicalEvent) -> str:
    return " ".join((event.title, event.description, event.office, event.venue.name)).lower()


def event_matches(event: CanonicalEvent, filters: EventFilters) -> bool:
    if filters.event_types is not None and event.event_type not in filters.event_types:
        return False
    if filters.office_levels is not None and event.office_level not in filters.office_levels:
        return False
    if filters.parties is not None and not any(c.party in filters.parties for c in event.candidates):
        return False
    if filters.cities is not None and event.venue.city not in filters.cities:
        return False
    # ISO dates are zero-padded, so string order is calendar order.
    if filters.date_from is not None and event.date < filters.date_from:
        return False
    if filters.date_to is not None and event.date > filters.date_to:
        return False
    if filters.upcoming_from is not None and event.date < filters.upcoming_from:
        return False
    if filters.verified_invalid:
        return False
    if filters.verified is not None and event.verified is not filters.verified:
        return False
    if filters.search is not None and filters.search.lower() not in _search_haystack(event):
        return False
    return True


def filter_events(events: Iterable[CanonicalEvent], filters: EventFilters) -> List[CanonicalEvent]:
    """AND of all present predicates, sorted by date ascending (stable on ties)."""
    matched = [event for event in events if event_matches(event, filters)]
    return sorted(matched, key=lambda event: event.date)


def query_events(snapshot: EventStoreSnapshot, filters: EventFilters) -> EventsResponse:
    events = filter_events(snapshot.events, filters)
    logger.info(
        "civic_events_query",
        total=len(snapshot.events),
        matched=len(events),
        filtered=not filters.is_empty(),
    )
    return EventsResponse(events=events, total_count=len(events), metadata=dict(snapshot.metadata))


def upcoming_events(snapshot: EventStoreSnapshot, today: date) -> List[CanonicalEvent]:
    return filter_events(snapshot.events, EventFilters(upcoming_from=today.isoformat()))


def get_event(snapshot: EventStoreSnapshot, event_id: str) -> Optional[CanonicalEvent]:
    for event in snapshot.events:
        if event.id == event_id:
            return event
    return None
