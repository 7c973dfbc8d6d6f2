"""
Configuration for Heatmap Viewer.

All settings are plain frozen dataclasses with defaults; entry points fill
them from command-line arguments.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field

# Hyperliquid public WebSocket endpoint
WS_URL = "wss://api.hyperliquid.xyz/ws"

DEFAULT_COIN = "@107"
DEFAULT_SIG_FIGS = 5
DEFAULT_WINDOW_MS = 300_000  # 5 minutes


@dataclass(frozen=True)
class FeedConfig:
    """Connection and subscription settings for the L2 book feed."""
    url: str = WS_URL
    coin: str = DEFAULT_COIN
    n_sig_figs: int = DEFAULT_SIG_FIGS
    queue_size: int = 100
    backoff_cap_sec: float = 30.0
    heartbeat_sec: float = 20.0


@dataclass(frozen=True)
class HeatmapConfig:
    """Canvas geometry and history window for the heatmap."""
    width: int = 1920
    height: int = 1080
    right_margin: int = 300  # Reserved for the price axis legend
    window_ms: int = DEFAULT_WINDOW_MS
    price_steps: int = 10
    label_decimals: int = 3
    level_height: int = 1

    def __post_init__(self) -> None:
        if self.right_margin >= self.width:
            raise ValueError("right_margin must be smaller than width")
        if self.window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {self.window_ms}")
        if self.price_steps < 1:
            raise ValueError(f"price_steps must be at least 1, got {self.price_steps}")

    @property
    def plot_width(self) -> int:
        """Width of the heatmap area, excluding the legend margin."""
        return self.width - self.right_margin


@dataclass(frozen=True)
class AppConfig:
    feed: FeedConfig = field(default_factory=FeedConfig)
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)
    log_level: int = logging.INFO


def add_arguments(parser: argparse.ArgumentParser) -> None:
    """Register the options shared by every entry point."""
    parser.add_argument(
        "coin",
        nargs="?",
        default=DEFAULT_COIN,
        help=f"Instrument to subscribe to (default: {DEFAULT_COIN})"
    )

    parser.add_argument(
        "--sig-figs",
        type=int,
        default=DEFAULT_SIG_FIGS,
        help=f"Price precision in significant figures (default: {DEFAULT_SIG_FIGS})"
    )

    parser.add_argument(
        "--window-sec",
        type=float,
        default=DEFAULT_WINDOW_MS / 1000,
        help="History window shown in the heatmap, in seconds (default: 300)"
    )

    parser.add_argument(
        "--url",
        default=WS_URL,
        help=f"Feed WebSocket URL (default: {WS_URL})"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )


def config_from_args(args: argparse.Namespace) -> AppConfig:
    """Build an AppConfig from parsed command-line arguments."""
    if args.sig_figs < 2 or args.sig_figs > 5:
        raise ValueError(f"--sig-figs must be between 2 and 5, got {args.sig_figs}")
    if args.window_sec <= 0:
        raise ValueError(f"--window-sec must be positive, got {args.window_sec}")

    return AppConfig(
        feed=FeedConfig(url=args.url, coin=args.coin, n_sig_figs=args.sig_figs),
        heatmap=HeatmapConfig(window_ms=int(args.window_sec * 1000)),
        log_level=getattr(logging, args.log_level),
    )


def configure_logging(level: int = logging.INFO) -> None:
    """Route log records through rich's console handler."""
    from rich.logging import RichHandler

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
