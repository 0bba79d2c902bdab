"""
iCalendar (VCALENDAR/VEVENT) export of curated civic events.

Output is deterministic for a given clock: every field except DTSTAMP comes
from the event itself, and DTSTAMP is read from the injected clock. With the
system clock, DTSTAMP (and therefore the document bytes) changes per run.
"""
from __future__ import annotations

import re
from datetime import timezone
from typing import Iterable, List, Optional

from app.config import settings
from app.core.clock import Clock, system_clock
from app.models.civic_events import CanonicalEvent

CRLF = "\r\n"
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def escape_text(value: str) -> str:
    """Collapse embedded line breaks into the literal two-character ``\\n``."""
    return _LINE_BREAK_RE.sub(r"\\n", value)


def format_local_datetime(day: str, hhmm: str) -> str:
    """``2026-03-10`` + ``18:30`` → ``20260310T183000``."""
    return f"{day.replace('-', '')}T{hhmm.replace(':', '')}00"


class IcsEncoder:
    def __init__(
        self,
        *,
        clock: Clock = system_clock,
        tzid: Optional[str] = None,
        prodid: Optional[str] = None,
        calendar_name: Optional[str] = None,
        uid_domain: Optional[str] = None,
    ) -> None:
        self.clock = clock
        self.tzid = tzid or settings.ICS_TIMEZONE
        self.prodid = prodid or settings.ICS_PRODID
        self.calendar_name = calendar_name or settings.ICS_CALENDAR_NAME
        self.uid_domain = uid_domain or settings.ICS_UID_DOMAIN

    def uid_for(self, event: CanonicalEvent) -> str:
        return f"{event.id}@{self.uid_domain}"

    def _dtstamp(self) -> str:
        return self.clock.now().astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    def _header(self) -> List[str]:
        return [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{self.prodid}",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
            f"X-WR-CALNAME:{self.calendar_name}",
        ]

    def _vevent(self, event: CanonicalEvent, dtstamp: str) -> List[str]:
        lines = [
            "BEGIN:VEVENT",
            f"DTSTART;TZID={self.tzid}:{format_local_datetime(event.date, event.start_time)}",
            f"DTEND;TZID={self.tzid}:{format_local_datetime(event.date, event.end_time)}",
            f"SUMMARY:{escape_text(event.title)}",
            f"DESCRIPTION:{escape_text(event.description)}",
            f"LOCATION:{escape_text(event.venue.one_line())}",
            f"URL:{event.source_url}",
            f"UID:{self.uid_for(event)}",
            f"DTSTAMP:{dtstamp}",
        ]
        if event.registration_url:
            lines.append(f"X-REGISTRATION-URL:{event.registration_url}")
        lines.extend(["STATUS:CONFIRMED", "END:VEVENT"])
        return lines

    def encode(self, events: Iterable[CanonicalEvent]) -> str:
        """Encode all given events, in the given order, into one calendar."""
        dtstamp = self._dtstamp()
        lines = self._header()
        for event in events:
            lines.extend(self._vevent(event, dtstamp))
        lines.append("END:VCALENDAR")
        return CRLF.join(lines)

    def encode_event(self, event: CanonicalEvent) -> str:
        return self.encode([event])
