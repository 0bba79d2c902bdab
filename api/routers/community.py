from __future__ import annotations

from fastapi import APIRouter, Response

from app.config import community_cache_control
from app.models.community_feed import CommunityFeedResponse
from services.community_feed_service import get_community_feed

router = APIRouter(prefix="/community-feed", tags=["community"])


@router.get("", response_model=CommunityFeedResponse)
@router.get("/", response_model=CommunityFeedResponse, include_in_schema=False)
async def read_community_feed(response: Response) -> CommunityFeedResponse:
    """
    Recent meetings/announcements scraped from the ISD and city sites.

    Always 200: when both sites fail, curated items are returned with
    ``source: "fallback"``.
    """
    feed = await get_community_feed()
    response.headers["Cache-Control"] = community_cache_control()
    return feed
