"""
Data types for the depth ladder.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Rows are rebuilt wholesale on every update; nothing here is patched in place
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


class PriceLevel(NamedTuple):
    """Best bid/ask reference point keyed by price in a depth update."""
    best_bid_price: int   # 0 if no bid level
    bid_qty: float
    best_ask_price: int   # 0 if no ask level
    ask_qty: float


class DepthUpdate(NamedTuple):
    """
    One decoded depth message for a single instrument.

    `levels` is sparse: it holds reference points, not every ladder row.
    """
    levels: Mapping[int, PriceLevel]
    command: Optional[str]
    last_traded_price: int    # 0 = no trade yet
    last_traded_qty: float


EMPTY_UPDATE = DepthUpdate(
    levels=MappingProxyType({}),
    command=None,
    last_traded_price=0,
    last_traded_qty=0.0,
)


class PriceRow(NamedTuple):
    """
    One row of the ladder. `price` is the row identity.

    This is what the UI consumes.
    """
    price: int
    bid_qty: float = 0.0
    ask_qty: float = 0.0
    is_last_trade: bool = False

    @property
    def bid_exists(self) -> bool:
        return self.bid_qty > 0

    @property
    def ask_exists(self) -> bool:
        return self.ask_qty > 0


class LadderSnapshot(NamedTuple):
    """
    Complete ladder state published after each apply().

    Pushed to subscribers and the UI queue.
    """
    rows: tuple[PriceRow, ...]   # Sorted by price descending
    last_traded_price: int
    last_traded_qty: float
    command: Optional[str]
    update_count: int
    timestamp_ms: int


EMPTY_SNAPSHOT = LadderSnapshot(
    rows=(),
    last_traded_price=0,
    last_traded_qty=0.0,
    command=None,
    update_count=0,
    timestamp_ms=0,
)
