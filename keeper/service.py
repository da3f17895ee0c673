from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import KeeperSettings, load_config
from .datasource.http_api import HttpBeaconFeed, HttpBeaconFeedConfig
from .lottery_client import LotteryClient
from .scheduler import KeeperScheduler, TickResult


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def build_feed(settings: KeeperSettings) -> HttpBeaconFeed:
    beacon = settings.beacon
    if settings.delivers_randomness and not beacon.url:
        raise RuntimeError("BEACON__URL is not configured.")
    return HttpBeaconFeed(
        HttpBeaconFeedConfig(
            url=beacon.url,
            round_key=beacon.round_key,
            randomness_key=beacon.randomness_key,
            timeout_seconds=beacon.timeout_seconds,
        )
    )


async def run(args: argparse.Namespace) -> Optional[TickResult]:
    settings = load_config(args.env_file)
    configure_logging(args.verbose)
    logger = logging.getLogger("lottery.keeper")

    feed = build_feed(settings)
    client = LotteryClient(settings)
    scheduler = KeeperScheduler(settings, feed, client, logger=logger)

    try:
        if args.once or settings.run_once:
            result = await scheduler.run_once()
            logger.info("Keeper tick round=%s actions=%s", result.round_id, result.actions)
            return result

        await scheduler.run_forever()
        return None
    finally:
        client.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lottery keeper: closes, draws and reopens rounds")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file with settings")
    parser.add_argument("--once", action="store_true", help="Run a single tick and exit.")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Keeper stopped by user.")


if __name__ == "__main__":
    main()
