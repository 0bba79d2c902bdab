# app/config.py
from __future__ import annotations

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root: app/config.py → parent = project
PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = PROJECT_ROOT / ".env"
load_dotenv(ENV_FILE, override=False)  # pre-load in process environment


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "0.1.0"
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "https://pivotalvoice.com",
        ]
    )

    # ---- Community feed (scraped) ----
    # Upstream sites are small civic servers: one request per run, no retries.
    COMMUNITY_FETCH_TIMEOUT_S: float = 8.0
    COMMUNITY_USER_AGENT: str = "PivotalVoice-CivicBot/1.0 (+https://pivotalvoice.com)"
    COMMUNITY_FEED_MAX_ITEMS: int = 5
    COMMUNITY_FEED_CACHE_TTL_S: int = 21600  # 6 hours
    COMMUNITY_FALLBACK_CACHE_TTL_S: int = 300
    COMMUNITY_FEED_STALE_S: int = 86400
    ISD_EVENTS_URL: str = "https://www.italyisd.org/events"
    CITY_CALENDAR_URL: str = "http://ci.italy.tx.us/community/calendar"
    COMMUNITY_FALLBACK_PATH: Path = PROJECT_ROOT / "config" / "community_fallback.yml"

    # ---- Canonical events ----
    CIVIC_EVENTS_PATH: Path = PROJECT_ROOT / "data" / "civic_events.json"
    EVENTS_CACHE_TTL_S: int = 3600

    # ---- Calendar export ----
    ICS_TIMEZONE: str = "America/Chicago"
    ICS_PRODID: str = "-//Pivotal Voice//Ellis County Events//EN"
    ICS_CALENDAR_NAME: str = "Pivotal Voice – Ellis County Political Events"
    ICS_UID_DOMAIN: str = "pivotalvoice.com"
    ICS_FILENAME: str = "pivotal-voice-ellis-county-events.ics"

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # ignore unrelated .env keys
    )


settings = Settings()


def community_cache_control() -> str:
    return (
        f"public, s-maxage={settings.COMMUNITY_FEED_CACHE_TTL_S}, "
        f"stale-while-revalidate={settings.COMMUNITY_FEED_STALE_S}"
    )


def events_cache_control() -> str:
    return (
        f"public, s-maxage={settings.EVENTS_CACHE_TTL_S}, "
        f"stale-while-revalidate={settings.COMMUNITY_FEED_STALE_S}"
    )
