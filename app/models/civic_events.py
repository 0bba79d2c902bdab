from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

EVENT_TYPES = (
    "debate",
    "town_hall",
    "rally",
    "meet_greet",
    "forum",
    "listening_session",
    "candidate_appearance",
)
OFFICE_LEVELS = ("local", "county", "state", "federal")
PARTIES = ("Republican", "Democrat", "Independent", "Non-Partisan")

EventType = Literal[
    "debate",
    "town_hall",
    "rally",
    "meet_greet",
    "forum",
    "listening_session",
    "candidate_appearance",
]
OfficeLevel = Literal["local", "county", "state", "federal"]
Party = Literal["Republican", "Democrat", "Independent", "Non-Partisan"]

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

_CAMEL = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    extra="forbid",
)


class Coordinates(BaseModel):
    model_config = _CAMEL

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class Venue(BaseModel):
    model_config = _CAMEL

    name: str
    address: str
    city: str
    state: str
    zip: str
    coordinates: Optional[Coordinates] = None
    accessible: bool = False

    def one_line(self) -> str:
        return f"{self.name}, {self.address}, {self.city}, {self.state} {self.zip}"


class Candidate(BaseModel):
    model_config = _CAMEL

    name: str
    party: Party
    incumbent: bool = False


class CanonicalEvent(BaseModel):
    """Curated civic event; read-only for the lifetime of a store snapshot."""

    model_config = _CAMEL

    id: str
    title: str
    date: str
    start_time: str
    end_time: str
    timezone: str = "America/Chicago"
    venue: Venue
    event_type: EventType
    office: str
    office_level: OfficeLevel
    candidates: List[Candidate] = Field(default_factory=list)
    description: str = ""
    source_url: str
    registration_url: Optional[str] = None
    live_stream_url: Optional[str] = None
    featured: bool = False
    verified: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("id", "title")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("must not be empty")
        return trimmed

    @field_validator("date")
    @classmethod
    def _validate_date(cls, value: str) -> str:
        if not _DATE_RE.match(value):
            raise ValueError(f"date must be YYYY-MM-DD, got {value!r}")
        try:
            date_type.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"date is not a valid calendar date: {value!r}") from exc
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        if not _TIME_RE.match(value):
            raise ValueError(f"time must be zero-padded HH:MM (24-hour), got {value!r}")
        return value

    @model_validator(mode="after")
    def _start_before_end(self) -> "CanonicalEvent":
        if self.start_time >= self.end_time:
            raise ValueError(
                f"startTime {self.start_time} must precede endTime {self.end_time} (event {self.id})"
            )
        return self


class EventStoreSnapshot(BaseModel):
    """One versioned deployment snapshot of the curated event store."""

    model_config = ConfigDict(frozen=True)

    metadata: Dict[str, Any] = Field(default_factory=dict)
    events: List[CanonicalEvent] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> "EventStoreSnapshot":
        seen: set[str] = set()
        for event in self.events:
            if event.id in seen:
                raise ValueError(f"duplicate event id: {event.id}")
            seen.add(event.id)
        return self


@dataclass(frozen=True)
class EventFilters:
    """
    Conjunction of optional predicates. ``None`` means "no constraint";
    an empty frozenset is never produced by the parser.
    """

    event_types: Optional[FrozenSet[str]] = None
    office_levels: Optional[FrozenSet[str]] = None
    parties: Optional[FrozenSet[str]] = None
    cities: Optional[FrozenSet[str]] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    verified: Optional[bool] = None
    # Set when the raw `verified` value was neither true nor false.
    verified_invalid: bool = False
    search: Optional[str] = None
    upcoming_from: Optional[str] = None

    def is_empty(self) -> bool:
        return self == EventFilters()


class EventsResponse(BaseModel):
    """Payload for /api/v1/events."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    events: List[CanonicalEvent]
    total_count: int
    metadata: Dict[str, Any] = Field(default_factory=dict)
