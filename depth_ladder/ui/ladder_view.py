"""
Price ladder TUI using Textual.

Displays:
- Left: Resting bid quantity (blue)
- Middle: Price, last traded price highlighted
- Right: Resting ask quantity (red)

Performance notes:
- Only the visible slice of the ladder is rendered
- The view re-centers only when the last traded price changes
- Snapshot queue is bounded; stale snapshots are dropped, never blocked on
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable, Optional

from rich.console import RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Static

if TYPE_CHECKING:
    from ..types import LadderSnapshot, PriceRow

# Color scheme (dark theme)
BID_BG = "#1d4ed8"        # Blue
ASK_BG = "#b91c1c"        # Red
LAST_TRADE_BG = "#6b7280" # Gray
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"

DEFAULT_VISIBLE_ROWS = 40
QUEUE_SIZE = 5


def format_qty(qty: float) -> str:
    """Format quantity for display. Zero is blank."""
    if qty > 0:
        return f"{int(qty)}"
    return ""


def push_latest(snapshot_queue: asyncio.Queue, snapshot: LadderSnapshot) -> None:
    """Non-blocking put; if the queue is full, drop the oldest snapshot."""
    try:
        snapshot_queue.put_nowait(snapshot)
    except asyncio.QueueFull:
        snapshot_queue.get_nowait()
        snapshot_queue.put_nowait(snapshot)


def centered_start(rows: tuple[PriceRow, ...], visible_rows: int) -> int:
    """First visible row index that puts the last-trade row mid-screen."""
    center = next((i for i, row in enumerate(rows) if row.is_last_trade), len(rows) // 2)
    start = center - visible_rows // 2
    return max(0, min(start, len(rows) - visible_rows))


def ladder_cells(row: PriceRow) -> tuple[Text, Text, Text]:
    """Bid, price and ask cells for one row. Blue bids, red asks, grey last trade."""
    return (
        Text(format_qty(row.bid_qty),
             style=Style(bgcolor=BID_BG) if row.bid_exists else ""),
        Text(f"{row.price}", style=Style(
            color=PRICE_COLOR,
            bgcolor=LAST_TRADE_BG if row.is_last_trade else None,
        )),
        Text(format_qty(row.ask_qty),
             style=Style(bgcolor=ASK_BG) if row.ask_exists else ""),
    )


class LadderTable(Static):
    """Main ladder display widget."""

    DEFAULT_CSS = """
    LadderTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, visible_rows: int = DEFAULT_VISIBLE_ROWS) -> None:
        super().__init__()
        self.visible_rows = visible_rows
        self._snapshot: LadderSnapshot | None = None
        self._start = 0

    def update_snapshot(self, snapshot: LadderSnapshot, recenter: bool) -> None:
        """Update with new ladder snapshot."""
        self._snapshot = snapshot
        if recenter:
            self._start = centered_start(snapshot.rows, self.visible_rows)
        self.refresh()

    def recenter(self) -> None:
        if self._snapshot is not None:
            self._start = centered_start(self._snapshot.rows, self.visible_rows)
            self.refresh()

    def visible(self) -> tuple[PriceRow, ...]:
        """Rows currently on screen."""
        if self._snapshot is None:
            return ()
        return self._snapshot.rows[self._start:self._start + self.visible_rows]

    def render(self) -> RenderableType:
        """Render the visible slice of the ladder as a Rich Table."""
        if self._snapshot is None:
            return Text("Waiting for data...", style="dim")

        rows = self._snapshot.rows
        if not rows:
            return Text("No levels", style="dim")

        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
            expand=True,
        )
        table.add_column("Bid", justify="center", ratio=1)
        table.add_column("Price", justify="center", ratio=1)
        table.add_column("Ask", justify="center", ratio=1)

        for row in self.visible():
            table.add_row(*ladder_cells(row))

        return table


class StatusBar(Static):
    """Status bar showing connection state, last trade and update count."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self, is_connected: Optional[Callable[[], bool]] = None) -> None:
        super().__init__()
        self._is_connected = is_connected
        self._snapshot: LadderSnapshot | None = None

    def update_snapshot(self, snapshot: LadderSnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        connected = self._is_connected() if self._is_connected else True
        result = Text()
        result.append(" LIVE " if connected else " OFFLINE ",
                      style="bold white on #15803d" if connected else "bold white on #b91c1c")

        if self._snapshot is None:
            result.append("  Connecting...", style="dim")
            return result

        snap = self._snapshot
        result.append("  Last: ", style="dim")
        result.append(f"{snap.last_traded_price}", style="bold white")
        result.append(f" x {format_qty(snap.last_traded_qty) or '0'}", style="yellow")
        result.append("  │  ", style="dim")
        result.append("Updates: ", style="dim")
        result.append(f"{snap.update_count}", style="cyan")
        return result


class LadderApp(App):
    """Main ladder viewer application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("c", "recenter", "Re-center"),
    ]

    def __init__(
        self,
        snapshot_queue: asyncio.Queue,
        visible_rows: int = DEFAULT_VISIBLE_ROWS,
        is_connected: Optional[Callable[[], bool]] = None,
    ) -> None:
        super().__init__()
        self.snapshot_queue = snapshot_queue
        self.visible_rows = visible_rows
        self._is_connected = is_connected
        self._status_bar: StatusBar | None = None
        self._ladder_table: LadderTable | None = None
        self._last_traded_price: int | None = None

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar(self._is_connected)
        self._ladder_table = LadderTable(self.visible_rows)

        yield self._status_bar
        yield Container(self._ladder_table, id="main-container")
        yield Footer()

    async def on_mount(self) -> None:
        """Start the snapshot consumer task."""
        self.run_worker(self._consume_snapshots(), exclusive=True)

    async def _consume_snapshots(self) -> None:
        """Consume snapshots from the queue and update UI."""
        while True:
            try:
                snapshot = await asyncio.wait_for(self.snapshot_queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                # Keep the connection indicator fresh while the feed is quiet
                if self._status_bar:
                    self._status_bar.refresh()
                continue

            recenter = snapshot.last_traded_price != self._last_traded_price
            self._last_traded_price = snapshot.last_traded_price

            if self._status_bar:
                self._status_bar.update_snapshot(snapshot)
            if self._ladder_table:
                self._ladder_table.update_snapshot(snapshot, recenter)

    def action_recenter(self) -> None:
        """Re-center on the last traded price (bound to 'c' key)."""
        if self._ladder_table:
            self._ladder_table.recenter()


async def run_ui(
    snapshot_queue: asyncio.Queue,
    visible_rows: int = DEFAULT_VISIBLE_ROWS,
    is_connected: Optional[Callable[[], bool]] = None,
) -> None:
    """Run the TUI application."""
    app = LadderApp(snapshot_queue, visible_rows, is_connected)
    await app.run_async()
