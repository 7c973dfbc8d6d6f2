#!/usr/bin/env python3
"""
Micro-benchmark for Heatmap Viewer performance.

Tests:
1. Message decoding throughput
2. Order book apply + history append throughput
3. Heatmap render time for a full 5 minute window

Usage:
    python -m heatmap_viewer.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

import orjson

from .config import HeatmapConfig
from .datafeed.messages import decode_book_message
from .datafeed.orderbook import OrderBookState
from .engine.heatmap import HeatmapRenderer
from .types import BookUpdate, PriceLevel


def generate_mock_message(base_price: float, timestamp_ms: int, levels: int = 20) -> str:
    """Generate a mock l2Book message with `levels` per side."""
    tick_size = 0.01

    bids = []
    asks = []

    for i in range(levels):
        bids.append({
            "px": f"{base_price - (i + 1) * tick_size:.2f}",
            "sz": f"{random.uniform(1, 100):.2f}",
            "n": random.randint(1, 10),
        })
        asks.append({
            "px": f"{base_price + (i + 1) * tick_size:.2f}",
            "sz": f"{random.uniform(1, 100):.2f}",
            "n": random.randint(1, 10),
        })

    return orjson.dumps({
        "channel": "l2Book",
        "data": {"coin": "@107", "time": timestamp_ms, "levels": [bids, asks]},
    }).decode()


def generate_mock_update(base_price: float, timestamp_ms: int, levels: int = 20) -> BookUpdate:
    """Generate a mock decoded update."""
    tick_size = 0.01
    buy = tuple(
        PriceLevel(round(base_price - (i + 1) * tick_size, 2), random.uniform(1, 100), 1)
        for i in range(levels)
    )
    sell = tuple(
        PriceLevel(round(base_price + (i + 1) * tick_size, 2), random.uniform(1, 100), 1)
        for i in range(levels)
    )
    return BookUpdate("@107", buy, sell, timestamp_ms)


def benchmark_decoding(iterations: int = 10000) -> None:
    """Benchmark wire decoding throughput."""
    print("\n=== Message Decoding Benchmark ===")

    messages = [generate_mock_message(30.0, i * 1000) for i in range(iterations)]

    start = time.perf_counter()
    for raw in messages:
        decode_book_message(raw)
    elapsed = time.perf_counter() - start

    print(f"  Messages decoded: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {iterations / elapsed:,.0f} msgs/sec")
    print(f"  Per message: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_apply(iterations: int = 10000) -> None:
    """Benchmark apply_update + history purge throughput."""
    print("\n=== Order Book Apply Benchmark ===")

    state = OrderBookState()
    updates = [
        generate_mock_update(30.0 + random.uniform(-0.5, 0.5), i * 1000)
        for i in range(iterations)
    ]

    start = time.perf_counter()
    for u in updates:
        state.apply_update(u)
    elapsed = time.perf_counter() - start

    print(f"  Updates applied: {iterations:,}")
    print(f"  History length: {len(state)}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {iterations / elapsed:,.0f} updates/sec")


def benchmark_render(iterations: int = 20) -> None:
    """Benchmark rendering a full window (1 snapshot per second)."""
    print("\n=== Heatmap Render Benchmark ===")

    config = HeatmapConfig()
    state = OrderBookState(config.window_ms)
    for i in range(config.window_ms // 1000):
        state.apply_update(generate_mock_update(30.0 + random.uniform(-0.5, 0.5), i * 1000))

    renderer = HeatmapRenderer(config)
    history = state.history_view()

    # Warm up
    renderer.render(history)

    times = []
    size = 0
    for _ in range(iterations):
        start = time.perf_counter()
        size = len(renderer.render(history))
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Snapshots: {len(history)}")
    print(f"  SVG size: {size / 1024:.0f}KB")
    print(f"  Avg time: {avg_time:.1f}ms")
    print(f"  Std dev: {std_time:.1f}ms")
    print(f"  Max FPS possible: {1000/avg_time:,.1f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Heatmap Viewer Performance Benchmark")
    print("=" * 60)

    benchmark_decoding()
    benchmark_apply()
    benchmark_render()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
