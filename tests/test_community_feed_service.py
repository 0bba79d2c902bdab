from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

from app.config import settings
from app.core.clock import FixedClock
from app.models.community_feed import CommunityFeedResponse, CommunityNewsItem
from services import community_feed_service
from services.community_extraction_service import CityCalendarStrategy, IsdEventsStrategy
from services.community_feed_service import (
    CommunityFeedService,
    YamlFallbackRepository,
    clear_feed_cache,
    get_community_feed,
    get_default_fallback_items,
)

ISD_URL = "https://isd.test/events"
CITY_URL = "https://city.test/calendar"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
STAMP = int(NOW.timestamp() * 1000)


def _isd_html(*titles: str) -> str:
    rows = "".join(f'<div class="event-row"><h3>{t}</h3></div>' for t in titles)
    return f"<div>{rows}</div>"


def _city_html(*titles: str) -> str:
    rows = "".join(f"<li>{t}</li>" for t in titles)
    return f"<ul>{rows}</ul>"


class FakeFetcher:
    """Stands in for CommunityFetcher; ``None`` means the site failed."""

    def __init__(self, pages: Dict[str, Optional[str]]) -> None:
        self.pages = pages
        self.requested: List[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def fetch_html(self, url: str) -> Optional[str]:
        self.requested.append(url)
        return self.pages.get(url)


class StaticFallback:
    def __init__(self, items: List[CommunityNewsItem]) -> None:
        self.items = items

    def load(self) -> List[CommunityNewsItem]:
        return list(self.items)


FALLBACK_ITEMS = [
    CommunityNewsItem(
        id="fallback-1",
        title="Italy City Council Regular Meeting",
        date="2026-03-10",
        source="City of Italy",
        source_url="http://ci.italy.tx.us",
        category="meeting",
    )
]


def _service(pages: Dict[str, Optional[str]], fetcher: Optional[FakeFetcher] = None) -> CommunityFeedService:
    fake = fetcher or FakeFetcher(pages)
    return CommunityFeedService(
        strategies=[IsdEventsStrategy(ISD_URL), CityCalendarStrategy(CITY_URL)],
        fallback=StaticFallback(FALLBACK_ITEMS),
        clock=FixedClock(NOW),
        fetcher_factory=lambda: fake,
    )


@pytest.mark.asyncio
async def test_live_feed_concatenates_in_source_order() -> None:
    fetcher = FakeFetcher(
        {
            ISD_URL: _isd_html("ISD Board Meeting", "Budget Workshop"),
            CITY_URL: _city_html("City Council Meeting", "Public Hearing: Zoning"),
        }
    )

    feed = await _service({}, fetcher).build_feed()

    assert feed.source == "live"
    assert feed.fetched_at == NOW
    assert [item.title for item in feed.items] == [
        "ISD Board Meeting",
        "Budget Workshop",
        "City Council Meeting",
        "Public Hearing: Zoning",
    ]
    assert sorted(fetcher.requested) == sorted([ISD_URL, CITY_URL])
    assert len({item.id for item in feed.items}) == len(feed.items)
    assert feed.items[0].id == f"isd-0-{STAMP}"
    assert feed.items[2].id == f"city-0-{STAMP}"


@pytest.mark.asyncio
async def test_live_feed_truncates_to_five() -> None:
    pages = {
        ISD_URL: _isd_html(*(f"Board Meeting {n}" for n in range(4))),
        CITY_URL: _city_html(*(f"Council Meeting {n}" for n in range(4))),
    }

    feed = await _service(pages).build_feed()

    assert feed.source == "live"
    assert len(feed.items) == 5
    assert [item.source for item in feed.items] == ["Italy ISD"] * 4 + ["City of Italy"]


@pytest.mark.asyncio
async def test_one_failed_source_still_live() -> None:
    feed = await _service({ISD_URL: None, CITY_URL: _city_html("Council agenda posted")}).build_feed()

    assert feed.source == "live"
    assert [item.title for item in feed.items] == ["Council agenda posted"]


@pytest.mark.asyncio
async def test_no_keyword_matches_uses_fallback() -> None:
    pages = {
        ISD_URL: _isd_html("Ribbon Cutting Ceremony"),
        CITY_URL: _city_html("Spring Festival Parade"),
    }

    feed = await _service(pages).build_feed()

    assert feed.source == "fallback"
    assert feed.items == FALLBACK_ITEMS


@pytest.mark.asyncio
async def test_crashing_source_is_contained() -> None:
    class ExplodingFetcher(FakeFetcher):
        async def fetch_html(self, url: str) -> Optional[str]:
            if url == ISD_URL:
                raise RuntimeError("unexpected")
            return await super().fetch_html(url)

    fetcher = ExplodingFetcher({CITY_URL: _city_html("City Council Meeting")})

    feed = await _service({}, fetcher).build_feed()

    assert feed.source == "live"
    assert [item.title for item in feed.items] == ["City Council Meeting"]


@pytest.mark.asyncio
async def test_both_sources_time_out_returns_exact_fallback(httpx_mock) -> None:
    httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=ISD_URL)
    httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=CITY_URL)
    fallback = YamlFallbackRepository(settings.COMMUNITY_FALLBACK_PATH)
    service = CommunityFeedService(
        strategies=[IsdEventsStrategy(ISD_URL), CityCalendarStrategy(CITY_URL)],
        fallback=fallback,
        clock=FixedClock(NOW),
    )

    feed = await service.build_feed()

    assert feed.source == "fallback"
    assert feed.items == fallback.load()
    assert [item.id for item in feed.items] == ["fallback-1", "fallback-2", "fallback-3"]
    payload = feed.model_dump(by_alias=True, mode="json")
    assert payload["items"][2]["title"] == "March 3 Primary Election — Polls Open 7AM–7PM"
    assert payload["items"][0]["sourceUrl"] == "http://ci.italy.tx.us"
    assert payload["fetchedAt"].startswith("2026-03-01T12:00:00")


def test_yaml_fallback_rejects_empty_items(tmp_path: Path) -> None:
    path = tmp_path / "fallback.yml"
    path.write_text("items: []\n", encoding="utf-8")

    with pytest.raises(ValueError, match="non-empty"):
        YamlFallbackRepository(path).load()


def test_yaml_fallback_rejects_unknown_category(tmp_path: Path) -> None:
    path = tmp_path / "fallback.yml"
    path.write_text(
        "items:\n"
        "  - id: x\n"
        "    title: Something official\n"
        "    source: City of Italy\n"
        "    sourceUrl: http://example.test\n"
        "    category: gossip\n",
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        YamlFallbackRepository(path).load()


@pytest.mark.asyncio
async def test_get_community_feed_caches_live_result() -> None:
    clear_feed_cache()
    calls = {"n": 0}

    class CountingService:
        async def build_feed(self) -> CommunityFeedResponse:
            calls["n"] += 1
            return CommunityFeedResponse(items=FALLBACK_ITEMS, source="live", fetched_at=NOW)

    try:
        first = await get_community_feed(CountingService())  # type: ignore[arg-type]
        second = await get_community_feed(CountingService())  # type: ignore[arg-type]
    finally:
        clear_feed_cache()

    assert calls["n"] == 1
    assert first is second


@pytest.mark.asyncio
async def test_get_community_feed_fallback_uses_short_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    clear_feed_cache()
    monkeypatch.setattr(community_feed_service.settings, "COMMUNITY_FALLBACK_CACHE_TTL_S", 0)
    calls = {"n": 0}

    class FallbackService:
        async def build_feed(self) -> CommunityFeedResponse:
            calls["n"] += 1
            return CommunityFeedResponse(items=FALLBACK_ITEMS, source="fallback", fetched_at=NOW)

    try:
        await get_community_feed(FallbackService())  # type: ignore[arg-type]
        await get_community_feed(FallbackService())  # type: ignore[arg-type]
    finally:
        clear_feed_cache()

    assert calls["n"] == 2


class SlowFetcher(FakeFetcher):
    def __init__(self, pages: Dict[str, Optional[str]], delay_s: float) -> None:
        super().__init__(pages)
        self.delay_s = delay_s

    async def fetch_html(self, url: str) -> Optional[str]:
        await asyncio.sleep(self.delay_s)
        return await super().fetch_html(url)


@pytest.mark.asyncio
async def test_sources_are_fetched_concurrently() -> None:
    fetcher = SlowFetcher(
        {ISD_URL: _isd_html("ISD Board Meeting"), CITY_URL: _city_html("City Council Meeting")},
        delay_s=0.2,
    )
    service = _service({}, fetcher=fetcher)

    started = time.monotonic()
    feed = await service.build_feed()
    elapsed = time.monotonic() - started

    assert feed.source == "live"
    assert elapsed < 0.35


class CountingFallback(StaticFallback):
    def __init__(self, items: List[CommunityNewsItem]) -> None:
        super().__init__(items)
        self.loads = 0

    def load(self) -> List[CommunityNewsItem]:
        self.loads += 1
        return super().load()


@pytest.mark.asyncio
async def test_fallback_is_loaded_once_when_service_is_built() -> None:
    fallback = CountingFallback(FALLBACK_ITEMS)
    service = CommunityFeedService(
        strategies=[IsdEventsStrategy(ISD_URL), CityCalendarStrategy(CITY_URL)],
        fallback=fallback,
        clock=FixedClock(NOW),
        fetcher_factory=lambda: FakeFetcher({}),
    )
    assert fallback.loads == 1

    first = await service.build_feed()
    second = await service.build_feed()

    assert fallback.loads == 1
    assert first.source == second.source == "fallback"
    assert first.items == FALLBACK_ITEMS


def test_missing_fallback_file_fails_when_service_is_built(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        CommunityFeedService(fallback=YamlFallbackRepository(tmp_path / "missing.yml"))


def test_invalid_default_fallback_fails_on_load(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "fallback.yml"
    path.write_text("items: []\n", encoding="utf-8")
    monkeypatch.setattr(community_feed_service.settings, "COMMUNITY_FALLBACK_PATH", path)
    get_default_fallback_items.cache_clear()
    try:
        with pytest.raises(ValueError, match="non-empty"):
            CommunityFeedService()
    finally:
        get_default_fallback_items.cache_clear()
