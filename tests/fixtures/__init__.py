# tests/fixtures/__init__.py
"""
Factory functions for civic event test data:
- event_payload()
- make_event()
"""
from __future__ import annotations

from typing import Any, Dict

from app.models.civic_events import CanonicalEvent


def event_payload(**overrides: Any) -> Dict[str, Any]:
    base: Dict[str, Any] = {
        "id": "evt-test",
        "title": "Candidate Forum",
        "date": "2026-03-10",
        "startTime": "18:30",
        "endTime": "20:00",
        "timezone": "America/Chicago",
        "venue": {
            "name": "Civic Center",
            "address": "2000 Civic Center Ln",
            "city": "Waxahachie",
            "state": "TX",
            "zip": "75165",
            "accessible": True,
        },
        "eventType": "forum",
        "office": "County Judge",
        "officeLevel": "county",
        "candidates": [{"name": "Pat Doe", "party": "Republican", "incumbent": False}],
        "description": "Questions from residents.",
        "sourceUrl": "https://example.test/forum",
        "featured": False,
        "verified": True,
        "createdAt": "2026-01-01T00:00:00Z",
        "updatedAt": "2026-01-02T00:00:00Z",
    }
    base.update(overrides)
    return base


def make_event(**overrides: Any) -> CanonicalEvent:
    return CanonicalEvent.model_validate(event_payload(**overrides))
