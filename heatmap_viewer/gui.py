#!/usr/bin/env python3
"""
Heatmap Viewer GUI - Standalone window version.

Usage:
    python -m heatmap_viewer.gui @107 --sig-figs 5 --window-sec 300
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading

from .config import AppConfig, add_arguments, config_from_args, configure_logging

logger = logging.getLogger(__name__)


def run_async_engine(engine, loop: asyncio.AbstractEventLoop) -> None:
    """Run the async engine in a separate thread."""
    try:
        logger.info("Starting async engine thread...")
        asyncio.set_event_loop(loop)
        loop.run_until_complete(engine.run())
    except Exception:
        logger.exception("Engine thread crashed")


def main(config: AppConfig) -> None:
    """Main entry point - runs the engine in background, GUI in main thread."""

    from .engine.events import QueueEventSink
    from .engine.runner import HeatmapEngine
    from .ui.heatmap_window import run_gui

    logger.info("Starting Heatmap Viewer GUI for %s...", config.feed.coin)
    logger.info("  Sig figs: %d", config.feed.n_sig_figs)
    logger.info("  Window: %ds", config.heatmap.window_ms // 1000)

    # Frames cross from the engine thread to the Qt thread through this queue
    sink = QueueEventSink(maxsize=5)
    engine = HeatmapEngine(config, sink)

    loop = asyncio.new_event_loop()

    engine_thread = threading.Thread(
        target=run_async_engine,
        args=(engine, loop),
        daemon=True
    )
    engine_thread.start()

    # Run GUI in main thread (required by Qt)
    try:
        run_gui(sink, config.feed.coin)
    finally:
        # engine.stop() touches the asyncio channel, so it must run on the loop thread
        loop.call_soon_threadsafe(engine.stop)
        engine_thread.join(timeout=5.0)


def cli() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Heatmap Viewer GUI - Order book liquidity heatmap for Hyperliquid",
    )
    add_arguments(parser)
    args = parser.parse_args()

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(config.log_level)

    try:
        main(config)
    except KeyboardInterrupt:
        logger.info("Shutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
