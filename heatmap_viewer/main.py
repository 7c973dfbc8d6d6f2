#!/usr/bin/env python3
"""
Heatmap Viewer - headless runner.

Runs the feed + aggregation engine without a window and logs every frame.
Useful on servers and for checking connectivity.

Usage:
    python -m heatmap_viewer.main @107 --sig-figs 5

    Or the windowed version:
    python -m heatmap_viewer.gui @107
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import AppConfig, add_arguments, config_from_args, configure_logging

logger = logging.getLogger(__name__)


async def main(config: AppConfig) -> None:
    """Main entry point - runs the engine until interrupted."""

    # Import here to avoid slow startup for --help
    from .engine.events import LoggingEventSink
    from .engine.runner import HeatmapEngine

    logger.info("Starting Heatmap Viewer for %s...", config.feed.coin)
    logger.info("  Sig figs: %d", config.feed.n_sig_figs)
    logger.info("  Window: %ds", config.heatmap.window_ms // 1000)

    engine = HeatmapEngine(config, LoggingEventSink())
    try:
        await engine.run()
    finally:
        engine.stop()


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Heatmap Viewer - headless order book heatmap engine for Hyperliquid",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m heatmap_viewer.main @107
    python -m heatmap_viewer.main BTC --sig-figs 4
    python -m heatmap_viewer.main ETH --window-sec 120 --log-level DEBUG
        """
    )
    add_arguments(parser)
    args = parser.parse_args()

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(config.log_level)

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
