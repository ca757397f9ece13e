#!/usr/bin/env python3
"""
Micro-benchmark for Depth Ladder performance.

Tests:
1. Message decode throughput
2. Ladder apply() throughput
3. Full decode + apply path (what the feed does per message)

Usage:
    python -m depth_ladder.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev
from types import MappingProxyType

from .datafeed.decoder import decode_depth_update, encode_depth_update
from .engine.ladder import LadderAggregator
from .types import DepthUpdate, PriceLevel


def generate_mock_update(base_price: int = 1000, levels: int = 40, spread: int = 150) -> DepthUpdate:
    """Generate a mock depth update around base_price."""
    book: dict[int, PriceLevel] = {}

    for _ in range(levels):
        offset = random.randint(1, spread)
        bid_price = base_price - offset
        ask_price = base_price + offset
        book[bid_price] = PriceLevel(bid_price, random.uniform(1, 100), 0, 0.0)
        book[ask_price] = PriceLevel(0, 0.0, ask_price, random.uniform(1, 100))

    return DepthUpdate(
        levels=MappingProxyType(book),
        command=None,
        last_traded_price=base_price + random.randint(-3, 3),
        last_traded_qty=random.uniform(0.1, 10),
    )


def benchmark_decode(iterations: int = 10000) -> None:
    """Benchmark message decode throughput."""
    print("\n=== Decode Benchmark ===")

    messages = [encode_depth_update(generate_mock_update()) for _ in range(iterations)]

    start = time.perf_counter()
    for raw in messages:
        decode_depth_update(raw)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Messages decoded: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} msgs/sec")
    print(f"  Per message: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_apply(iterations: int = 1000) -> None:
    """Benchmark ladder rebuild."""
    print("\n=== Ladder Apply Benchmark ===")

    aggregator = LadderAggregator()
    updates = [generate_mock_update() for _ in range(iterations)]

    # Warm up
    for u in updates[:10]:
        aggregator.apply(u)

    times = []
    for u in updates:
        start = time.perf_counter()
        aggregator.apply(u)
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_full_path(iterations: int = 1000) -> None:
    """Benchmark decode + apply (what the feed runs per message)."""
    print("\n=== Full Message Path Benchmark ===")

    aggregator = LadderAggregator()
    messages = [encode_depth_update(generate_mock_update()) for _ in range(iterations)]

    times = []
    for raw in messages:
        start = time.perf_counter()
        aggregator.apply(decode_depth_update(raw))
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Max msgs/sec possible: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Depth Ladder Performance Benchmark")
    print("=" * 60)

    benchmark_decode()
    benchmark_apply()
    benchmark_full_path()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
