from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CommunitySourceLabel = Literal["Italy ISD", "City of Italy"]
CommunityCategory = Literal["meeting", "announcement", "alert", "general"]
FeedProvenance = Literal["live", "fallback"]

COMMUNITY_CATEGORIES = ("meeting", "announcement", "alert", "general")


class CommunityNewsItem(BaseModel):
    """Scraped (or curated fallback) community event mention."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    title: str
    date: Optional[str] = None
    source: CommunitySourceLabel
    source_url: str
    category: CommunityCategory

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("title cannot be empty")
        return trimmed

    @field_validator("date")
    @classmethod
    def _empty_date_is_absent(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class CommunityFeedResponse(BaseModel):
    """Payload for /api/v1/community-feed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[CommunityNewsItem] = Field(default_factory=list)
    source: FeedProvenance
    fetched_at: datetime
