from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from app.config import settings
from app.core.logging import get_logger
from app.models.civic_events import EventStoreSnapshot

logger = get_logger().bind(module="civic_events_repository")


class EventStoreError(RuntimeError):
    """The curated event store is missing or violates its invariants."""


class EventRepository(Protocol):
    def load(self) -> EventStoreSnapshot:
        ...


class JsonEventRepository:
    """
    Reads a curated snapshot file shaped like::

        {"metadata": {...}, "events": [CanonicalEvent, ...]}

    Validation is strict: unknown enum values, bad dates/times and duplicate
    ids fail the whole load instead of being dropped one by one.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> EventStoreSnapshot:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise EventStoreError(f"cannot read event store {self.path}: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EventStoreError(f"event store {self.path.name} is not valid JSON: {exc}") from exc

        try:
            snapshot = EventStoreSnapshot.model_validate(payload)
        except ValidationError as exc:
            logger.error("civic_events_store_invalid", path=str(self.path), errors=exc.error_count())
            raise EventStoreError(f"event store {self.path.name} failed validation: {exc}") from exc

        logger.info(
            "civic_events_store_loaded",
            path=str(self.path),
            events=len(snapshot.events),
            version=snapshot.metadata.get("version"),
        )
        return snapshot


@lru_cache(maxsize=1)
def get_default_snapshot() -> EventStoreSnapshot:
    # Immutable per deployment; read once.
    return JsonEventRepository(settings.CIVIC_EVENTS_PATH).load()
