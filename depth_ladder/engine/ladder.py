"""
Ladder aggregation engine.

HOT PATH: apply() is called once per decoded depth message.

Performance strategy:
1. Full rebuild per update - no incremental patching, no accumulated drift
2. Direct index computation for price -> row (O(1) per level, no scans)
3. Quantities staged in preallocated numpy arrays, converted once to rows
4. Published state replaced by a single attribute assignment

Thread-safety: NOT thread-safe. apply() must be called serially from one
execution context (the asyncio loop running the feed).
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import numpy as np

from ..types import (
    EMPTY_SNAPSHOT,
    EMPTY_UPDATE,
    DepthUpdate,
    LadderSnapshot,
    PriceRow,
)

logger = logging.getLogger(__name__)

# Half-width of the ladder in price ticks
WINDOW = 100

LadderCallback = Callable[[LadderSnapshot], None]
PriceCallback = Callable[[int], None]


def build_ladder(update: DepthUpdate, window: int = WINDOW) -> tuple[PriceRow, ...]:
    """
    Convert a sparse depth update into a dense, descending ladder.

    Rows cover [ltp - window, ltp + window), highest price first. Levels whose
    price falls outside that range are dropped.
    """
    center = update.last_traded_price
    top = center + window - 1
    size = window * 2

    bids = np.zeros(size, dtype=np.float64)
    asks = np.zeros(size, dtype=np.float64)

    # Row index for price p in descending order is top - p
    for level in update.levels.values():
        if level.best_ask_price > 0:
            idx = top - level.best_ask_price
            if 0 <= idx < size:
                asks[idx] = level.ask_qty

        if level.best_bid_price > 0:
            idx = top - level.best_bid_price
            if 0 <= idx < size:
                bids[idx] = level.bid_qty

    last_idx = top - center

    return tuple(
        PriceRow(top - i, bid, ask, i == last_idx)
        for i, (bid, ask) in enumerate(zip(bids.tolist(), asks.tolist()))
    )


class LadderAggregator:
    """
    Holds the latest depth update and the ladder derived from it.

    Usage:
        aggregator = LadderAggregator()
        aggregator.subscribe_ladder(lambda snap: ...)
        aggregator.apply(update)
    """

    __slots__ = (
        'window', 'current_update', 'last_traded_price', 'snapshot',
        'update_count', '_ladder_callbacks', '_price_callbacks',
    )

    def __init__(self, window: int = WINDOW) -> None:
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        self.window = window

        self.current_update: DepthUpdate = EMPTY_UPDATE
        self.last_traded_price: int = 0
        self.snapshot: LadderSnapshot = EMPTY_SNAPSHOT
        self.update_count: int = 0

        self._ladder_callbacks: list[LadderCallback] = []
        self._price_callbacks: list[PriceCallback] = []

    @property
    def current_ladder(self) -> tuple[PriceRow, ...]:
        """Current ladder, highest price first. Empty until the first apply()."""
        return self.snapshot.rows

    def apply(self, update: DepthUpdate) -> None:
        """
        Replace the current update and recompute the ladder.

        HOT PATH. Ladder subscribers are notified on every call; last traded
        price subscribers only when the price actually changed.
        """
        self.current_update = update

        price_changed = update.last_traded_price != self.last_traded_price
        if price_changed:
            self.last_traded_price = update.last_traded_price

        rows = build_ladder(update, self.window)
        self.update_count += 1

        self.snapshot = LadderSnapshot(
            rows=rows,
            last_traded_price=update.last_traded_price,
            last_traded_qty=update.last_traded_qty,
            command=update.command,
            update_count=self.update_count,
            timestamp_ms=int(time.time() * 1000),
        )

        snapshot = self.snapshot
        for callback in tuple(self._ladder_callbacks):
            self._notify(callback, snapshot)

        if price_changed:
            for callback in tuple(self._price_callbacks):
                self._notify(callback, update.last_traded_price)

    @staticmethod
    def _notify(callback: Callable, value: object) -> None:
        # A failing subscriber must not starve the others
        try:
            callback(value)
        except Exception:
            logger.exception("Ladder subscriber %r failed", callback)

    def subscribe_ladder(self, callback: LadderCallback) -> Callable[[], None]:
        """Call `callback(snapshot)` after every apply(). Returns an unsubscribe function."""
        self._ladder_callbacks.append(callback)
        return lambda: self._remove(self._ladder_callbacks, callback)

    def subscribe_last_traded_price(self, callback: PriceCallback) -> Callable[[], None]:
        """Call `callback(price)` when the last traded price changes. Returns an unsubscribe function."""
        self._price_callbacks.append(callback)
        return lambda: self._remove(self._price_callbacks, callback)

    @staticmethod
    def _remove(callbacks: list, callback: Callable) -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    def row_for_price(self, price: int) -> Optional[PriceRow]:
        """Row at `price`, or None if outside the current window. O(1)."""
        rows = self.snapshot.rows
        if not rows:
            return None
        idx = rows[0].price - price
        if 0 <= idx < len(rows):
            return rows[idx]
        return None

    def last_trade_index(self) -> Optional[int]:
        """Position of the last-trade row in current_ladder, for re-centering."""
        if not self.snapshot.rows:
            return None
        # Window is centered on the last traded price
        return self.window - 1

    def reset(self) -> None:
        """Return to the initial empty state. Subscribers are kept but not notified."""
        self.current_update = EMPTY_UPDATE
        self.last_traded_price = 0
        self.snapshot = EMPTY_SNAPSHOT
        self.update_count = 0
