#!/usr/bin/env python3
"""
Depth Ladder - Live price ladder for a single instrument.

Usage:
    python -m depth_ladder.main --url wss://host/ws --rows 40

    Headless (log last traded price changes only):
    python -m depth_ladder.main --headless

Controls:
    q - Quit
    c - Re-center on last traded price
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def main(url: str, window: int, rows: int, headless: bool = False) -> None:
    """Main entry point - runs data feed and UI concurrently."""

    # Import here to avoid slow startup for --help
    from .datafeed.ws_client import DepthFeedClient
    from .engine.ladder import LadderAggregator
    from .ui.ladder_view import QUEUE_SIZE, push_latest, run_ui

    print(f"Starting Depth Ladder on {url}...")
    print(f"  Window: +/-{window}")
    print(f"  Rows: {rows}")
    print()

    aggregator = LadderAggregator(window=window)
    client = DepthFeedClient(url, aggregator)

    if headless:
        aggregator.subscribe_last_traded_price(
            lambda price: logger.info("Last traded price: %d", price)
        )
        try:
            await client.run()
        finally:
            client.stop()
        return

    snapshot_queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
    aggregator.subscribe_ladder(lambda snap: push_latest(snapshot_queue, snap))

    async def run_feed() -> None:
        try:
            await client.run()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Feed error")

    feed_task = asyncio.create_task(run_feed())

    try:
        # Run UI (blocks until quit)
        await run_ui(snapshot_queue, rows, lambda: client.is_connected)
    finally:
        client.stop()
        feed_task.cancel()
        try:
            await feed_task
        except asyncio.CancelledError:
            pass


def cli() -> None:
    """CLI entry point."""
    from .datafeed.ws_client import DEFAULT_URL
    from .engine.ladder import WINDOW
    from .ui.ladder_view import DEFAULT_VISIBLE_ROWS

    parser = argparse.ArgumentParser(
        description="Depth Ladder - Live price ladder centered on the last traded price",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m depth_ladder.main
    python -m depth_ladder.main --url ws://0.0.0.0:4649/ws --rows 60
    python -m depth_ladder.main --headless --log-level DEBUG
        """
    )

    parser.add_argument(
        "--url",
        default=DEFAULT_URL,
        help=f"Depth feed WebSocket URL (default: {DEFAULT_URL})"
    )

    parser.add_argument(
        "--window",
        type=int,
        default=WINDOW,
        help=f"Ladder half-width in price ticks (default: {WINDOW})"
    )

    parser.add_argument(
        "--rows",
        type=int,
        default=DEFAULT_VISIBLE_ROWS,
        help=f"Number of visible ladder rows (default: {DEFAULT_VISIBLE_ROWS})"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run the feed without the UI, logging last traded price changes"
    )

    args = parser.parse_args()

    if args.window <= 0:
        parser.error("--window must be positive")

    # Headless mode is only useful if price changes are visible
    level = "INFO" if args.headless and args.log_level == "WARNING" else args.log_level
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(main(args.url, args.window, args.rows, args.headless))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
