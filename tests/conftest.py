from types import MappingProxyType
from typing import Awaitable, Callable

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from depth_ladder.engine.ladder import LadderAggregator
from depth_ladder.types import DepthUpdate, PriceLevel


@pytest.fixture
def aggregator() -> LadderAggregator:
    """Creates a fresh ladder aggregator for testing."""
    return LadderAggregator()


def make_update(
    last_traded_price: int,
    levels: dict[int, PriceLevel] | None = None,
    last_traded_qty: float = 1.0,
    command: str | None = None,
) -> DepthUpdate:
    """Creates a DepthUpdate for testing."""
    return DepthUpdate(
        levels=MappingProxyType(dict(levels or {})),
        command=command,
        last_traded_price=last_traded_price,
        last_traded_qty=last_traded_qty,
    )


class FakeDepthServer:
    """
    Local WebSocket depth server.

    `script(server, ws)` runs once per connection; afterwards the server just
    records client text frames until the socket closes.
    """

    def __init__(self) -> None:
        self.url = ""
        self.received: list[str] = []
        self.connections = 0
        self.script: Callable[["FakeDepthServer", web.WebSocketResponse], Awaitable[None]] | None = None

    async def next_ack(self, ws: web.WebSocketResponse) -> str:
        message = await ws.receive_str()
        self.received.append(message)
        return message

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections += 1

        if self.script is not None:
            await self.script(self, ws)

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                self.received.append(msg.data)
        return ws


@pytest.fixture
async def depth_server():
    """Starts a local WebSocket depth server for testing."""
    server = FakeDepthServer()
    app = web.Application()
    app.router.add_get("/ws", server.handle)

    test_server = TestServer(app)
    await test_server.start_server()
    server.url = f"ws://{test_server.host}:{test_server.port}/ws"
    yield server
    await test_server.close()
