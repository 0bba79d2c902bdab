"""
Extraction and classification of community event mentions from civic sites.

Each upstream site gets its own extraction strategy: a prioritized list of
CSS selector groups (first group with any match wins) plus a rule for pulling
title and date out of a matched element. Everything after that (length and
keyword screening, categorization, ids, truncation) is shared.

The selectors are guesswork against markup we do not control, so they are
expected to break when the sites are redesigned; a broken strategy simply
yields nothing and the feed falls back to curated items.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from selectolax.parser import HTMLParser, Node

from app.core.logging import get_logger
from app.models.community_feed import CommunityCategory, CommunityNewsItem, CommunitySourceLabel

logger = get_logger().bind(module="community_extraction")

MIN_TITLE_LENGTH = 5
DEFAULT_MAX_ITEMS = 5

RELEVANCE_KEYWORDS: Tuple[str, ...] = (
    "meeting",
    "board",
    "school closed",
    "election",
    "vote",
    "council",
    "workshop",
    "public hearing",
    "agenda",
)

# Ordered: the first rule whose terms occur in the title decides the category.
CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], CommunityCategory], ...] = (
    (("meeting", "board", "council", "hearing"), "meeting"),
    (("closed", "alert", "emergency"), "alert"),
    (("election", "vote"), "meeting"),
)
DEFAULT_CATEGORY: CommunityCategory = "announcement"

FREE_TEXT_DATE_RE = re.compile(r"\b(\w+ \d{1,2},? \d{4}|\d{1,2}/\d{1,2}/\d{2,4})\b")
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ExtractedFragment:
    index: int
    title: str
    date: Optional[str] = None


def matches_keywords(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in RELEVANCE_KEYWORDS)


def classify_title(text: str) -> CommunityCategory:
    lowered = text.lower()
    for terms, category in CATEGORY_RULES:
        if any(term in lowered for term in terms):
            return category
    return DEFAULT_CATEGORY


def is_relevant_title(title: str) -> bool:
    return len(title) > MIN_TITLE_LENGTH and matches_keywords(title)


def make_item_id(tag: str, index: int, stamp: int) -> str:
    return f"{tag}-{index}-{stamp}"


def _collapse(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


class CommunitySourceStrategy(ABC):
    """One upstream site: where to fetch, which elements to look at, how to read them."""

    tag: str
    label: CommunitySourceLabel
    candidate_selectors: Tuple[str, ...] = ()

    def __init__(self, url: str) -> None:
        self.url = url

    def select_candidates(self, tree: HTMLParser) -> List[Node]:
        for selector in self.candidate_selectors:
            nodes = tree.css(selector)
            if nodes:
                logger.debug("community_selector_matched", source=self.tag, selector=selector, count=len(nodes))
                return list(nodes)
        return []

    @abstractmethod
    def read_fragment(self, node: Node) -> Tuple[str, Optional[str]]:
        """Return ``(title, date)`` for one candidate element."""
        raise NotImplementedError

    def extract(self, markup: str) -> List[ExtractedFragment]:
        tree = HTMLParser(markup)
        fragments: List[ExtractedFragment] = []
        for index, node in enumerate(self.select_candidates(tree)):
            title, date = self.read_fragment(node)
            fragments.append(ExtractedFragment(index=index, title=title, date=date or None))
        return fragments

    def extract_items(
        self,
        markup: str,
        *,
        stamp: int,
        limit: int = DEFAULT_MAX_ITEMS,
    ) -> List[CommunityNewsItem]:
        """
        Full per-source pipeline: extract, screen, classify, assign ids, truncate.

        Parser failures are absorbed here and yield an empty list, the same
        outcome as an unreachable site.
        """
        try:
            fragments = self.extract(markup)
        except Exception as exc:
            logger.warning(
                "community_extract_failed",
                source=self.tag,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return []

        items: List[CommunityNewsItem] = []
        for fragment in fragments:
            if not is_relevant_title(fragment.title):
                continue
            items.append(
                CommunityNewsItem(
                    id=make_item_id(self.tag, fragment.index, stamp),
                    title=fragment.title,
                    date=fragment.date,
                    source=self.label,
                    source_url=self.url,
                    category=classify_title(fragment.title),
                )
            )
            if len(items) >= limit:
                break

        logger.info(
            "community_extract_done",
            source=self.tag,
            candidates=len(fragments),
            kept=len(items),
        )
        return items


class IsdEventsStrategy(CommunitySourceStrategy):
    """School-district site: CMS event list with headings and date fields."""

    tag = "isd"
    label: CommunitySourceLabel = "Italy ISD"
    candidate_selectors = (
        '[class*="event"]',
        '[class*="calendar"] li',
        ".view-content .views-row",
        "article",
    )
    title_selector = "h2, h3, .field-title, .title, a"
    date_selector = '.date-display-single, time, .field-date, [class*="date"]'

    def read_fragment(self, node: Node) -> Tuple[str, Optional[str]]:
        title_node = node.css_first(self.title_selector)
        title = _collapse(title_node.text(deep=True)) if title_node is not None else ""

        date: Optional[str] = None
        date_node = node.css_first(self.date_selector)
        if date_node is not None:
            machine = (date_node.attributes.get("datetime") or "").strip()
            date = machine or _collapse(date_node.text(deep=True)) or None
        return title, date


class CityCalendarStrategy(CommunitySourceStrategy):
    """City site: plain tables/lists, title is the first text line of the row."""

    tag = "city"
    label: CommunitySourceLabel = "City of Italy"
    candidate_selectors = (
        "table tr",
        "li",
        '[class*="event"]',
        '[class*="cal"]',
    )

    def read_fragment(self, node: Node) -> Tuple[str, Optional[str]]:
        text = (node.text(deep=True) or "").strip()
        first_line = text.split("\n", 1)[0] if text else ""
        title = _collapse(first_line)

        match = FREE_TEXT_DATE_RE.search(text)
        return title, match.group(0) if match else None


def default_strategies(isd_url: str, city_url: str) -> Sequence[CommunitySourceStrategy]:
    """Configured sources in feed order."""
    return (IsdEventsStrategy(isd_url), CityCalendarStrategy(city_url))
