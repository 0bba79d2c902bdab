from __future__ import annotations

import asyncio
import time
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import yaml

from app.config import settings
from app.core.clock import Clock, system_clock
from app.core.logging import get_logger
from app.models.community_feed import CommunityFeedResponse, CommunityNewsItem
from services.community_extraction_service import CommunitySourceStrategy, default_strategies
from services.community_fetcher import CommunityFetcher

logger = get_logger().bind(module="community_feed")


class FallbackRepository(Protocol):
    def load(self) -> List[CommunityNewsItem]:
        ...


class YamlFallbackRepository:
    """Curated fallback items from a YAML file (top-level ``items`` list)."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> List[CommunityNewsItem]:
        with self.path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path.name} must contain a top-level object")
        raw_items = data.get("items") or []
        if not isinstance(raw_items, list) or not raw_items:
            raise ValueError(f"{self.path.name} must define a non-empty 'items' list")
        return [CommunityNewsItem.model_validate(entry) for entry in raw_items]


@lru_cache(maxsize=1)
def get_default_fallback_items() -> List[CommunityNewsItem]:
    """Configured fallback items, read and validated once per process."""
    items = YamlFallbackRepository(settings.COMMUNITY_FALLBACK_PATH).load()
    logger.info("community_fallback_loaded", path=str(settings.COMMUNITY_FALLBACK_PATH), items=len(items))
    return items


class CommunityFeedService:
    """
    Runs every source concurrently and merges the results.

    Output order is the configured source order, never re-sorted. An empty
    merge is replaced by the curated fallback items, so callers always get a
    non-empty list. Fallback items are loaded when the service is built, so a
    broken fallback file fails construction instead of a request.
    """

    def __init__(
        self,
        *,
        strategies: Optional[Sequence[CommunitySourceStrategy]] = None,
        fallback: Optional[FallbackRepository] = None,
        clock: Clock = system_clock,
        fetcher_factory: Callable[[], CommunityFetcher] = CommunityFetcher,
        max_items: Optional[int] = None,
    ) -> None:
        self.strategies = list(
            strategies
            if strategies is not None
            else default_strategies(settings.ISD_EVENTS_URL, settings.CITY_CALENDAR_URL)
        )
        self.fallback_items: List[CommunityNewsItem] = (
            fallback.load() if fallback is not None else get_default_fallback_items()
        )
        self.clock = clock
        self.fetcher_factory = fetcher_factory
        self.max_items = max_items if max_items is not None else settings.COMMUNITY_FEED_MAX_ITEMS

    async def _collect_source(
        self,
        fetcher: CommunityFetcher,
        strategy: CommunitySourceStrategy,
        stamp: int,
    ) -> List[CommunityNewsItem]:
        html = await fetcher.fetch_html(strategy.url)
        if html is None:
            return []
        return strategy.extract_items(html, stamp=stamp, limit=self.max_items)

    async def build_feed(self) -> CommunityFeedResponse:
        started = self.clock.now()
        # One stamp per invocation; tag+index keep ids unique within it.
        stamp = int(started.timestamp() * 1000)

        async with self.fetcher_factory() as fetcher:
            results = await asyncio.gather(
                *(self._collect_source(fetcher, strategy, stamp) for strategy in self.strategies),
                return_exceptions=True,
            )

        combined: List[CommunityNewsItem] = []
        for strategy, result in zip(self.strategies, results):
            if isinstance(result, BaseException):
                logger.error(
                    "community_source_crashed",
                    source=strategy.tag,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                continue
            combined.extend(result)

        if combined:
            items = combined[: self.max_items]
            logger.info("community_feed_live", items=len(items), merged=len(combined))
            return CommunityFeedResponse(items=items, source="live", fetched_at=self.clock.now())

        items = list(self.fallback_items)
        logger.warning("community_feed_fallback", sources=[s.tag for s in self.strategies], items=len(items))
        return CommunityFeedResponse(items=items, source="fallback", fetched_at=self.clock.now())


# -------- Response cache -----------------------------------------------------
# Upstream sites are low-capacity: a feed is rebuilt at most once per window.

_cache: Dict[str, object] = {"expires_at": 0.0, "result": None}


def clear_feed_cache() -> None:
    _cache["expires_at"] = 0.0
    _cache["result"] = None


async def get_community_feed(service: Optional[CommunityFeedService] = None) -> CommunityFeedResponse:
    now = time.monotonic()
    cached = _cache.get("result")
    if cached is not None and now < float(_cache.get("expires_at", 0.0)):
        logger.debug("community_feed_cache_hit")
        return cached  # type: ignore[return-value]

    result = await (service or CommunityFeedService()).build_feed()
    # Fallback results are kept briefly so a recovered site shows up soon.
    ttl = (
        settings.COMMUNITY_FEED_CACHE_TTL_S
        if result.source == "live"
        else settings.COMMUNITY_FALLBACK_CACHE_TTL_S
    )
    _cache["result"] = result
    _cache["expires_at"] = time.monotonic() + ttl
    return result
