from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from app.core.clock import system_clock
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.civic_events_repository import get_default_snapshot
from services.civic_events_service import upcoming_events
from services.community_feed_service import CommunityFeedService
from services.ics_service import IcsEncoder

configure_logging(service_name="worker")
logger = get_logger().bind(worker="community_feed_bot")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="CommunityFeedBot: scrape civic sites once and print the community feed."
    )
    parser.add_argument(
        "--ics-out",
        type=Path,
        default=None,
        help="Also write the upcoming-events calendar (.ics) to this path.",
    )
    return parser.parse_args(argv)


async def run_feed(ics_out: Optional[Path]) -> int:
    feed = await CommunityFeedService().build_feed()
    sys.stdout.write(feed.model_dump_json(by_alias=True, indent=2) + "\n")
    logger.info("community_feed_bot_finished", source=feed.source, items=len(feed.items))

    if ics_out is not None:
        snapshot = get_default_snapshot()
        events = upcoming_events(snapshot, system_clock.now().date())
        body = IcsEncoder(clock=system_clock).encode(events)
        # Keep CRLF line endings as encoded.
        ics_out.write_bytes(body.encode("utf-8"))
        logger.info("community_feed_bot_ics_written", path=str(ics_out), events=len(events))
    return 0


async def main_async(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    with with_run_id():
        return await run_feed(ics_out=args.ics_out)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
