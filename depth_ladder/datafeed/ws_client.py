"""
Depth feed WebSocket client with async orchestration.

Handles:
1. WebSocket connection with connect timeout
2. Ack-paced message flow (server pushes the next update after each ack)
3. Decoding each frame and applying it to the ladder aggregator
4. Reconnection with exponential backoff

Performance notes:
- Uses orjson for fast JSON parsing
- Minimal logging in hot path
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from .decoder import decode_depth_update
from ..engine.ladder import LadderAggregator
from ..errors import ConnectionLost, MalformedMessage

logger = logging.getLogger(__name__)

DEFAULT_URL = "wss://depth-ws-jpjpjr6wka-uc.a.run.app/ws"
ACK_MESSAGE = "hi"
CONNECT_TIMEOUT_SEC = 5.0
RECONNECT_DELAY_SEC = 1.0
MAX_RECONNECT_DELAY_SEC = 30.0


class DepthFeedClient:
    """
    Async WebSocket client feeding a LadderAggregator.

    Usage:
        aggregator = LadderAggregator()
        client = DepthFeedClient(DEFAULT_URL, aggregator)
        await client.run()
    """

    def __init__(
        self,
        url: str,
        aggregator: LadderAggregator,
        *,
        ack_message: Optional[str] = ACK_MESSAGE,
        connect_timeout: float = CONNECT_TIMEOUT_SEC,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY_SEC,
    ) -> None:
        self.url = url
        self.aggregator = aggregator
        self.ack_message = ack_message
        self.connect_timeout = connect_timeout
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay

        # State
        self.is_connected = False
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._close_task: Optional[asyncio.Task] = None

        # Counters
        self.messages_received: int = 0
        self.messages_dropped: int = 0
        self.reconnects: int = 0
        self.last_backoff: float = 0.0

    def handle_message(self, raw: str | bytes) -> bool:
        """
        Decode one frame and apply it to the aggregator.

        HOT PATH - called for every message.

        Returns False if the message was malformed and dropped.
        """
        self.messages_received += 1
        try:
            update = decode_depth_update(raw)
        except MalformedMessage as e:
            self.messages_dropped += 1
            logger.warning("Dropping malformed depth message: %s", e)
            return False

        self.aggregator.apply(update)
        return True

    async def _send_ack(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        if self.ack_message is not None:
            await ws.send_str(self.ack_message)

    async def _consume(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Read frames until the socket closes. Raises ConnectionLost when it does."""
        await self._send_ack(ws)

        async for msg in ws:
            if not self._running:
                return

            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self.handle_message(msg.data)
                await self._send_ack(ws)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ConnectionLost(f"websocket error: {ws.exception()}")
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                break

        if self._running:
            raise ConnectionLost(f"websocket closed with code {ws.close_code}")

    async def _connect_once(self, session: aiohttp.ClientSession) -> None:
        async with session.ws_connect(self.url) as ws:
            if not self._running:
                return
            self._ws = ws
            self.is_connected = True
            logger.info("Websocket connected to %s", self.url)
            try:
                await self._consume(ws)
            finally:
                self.is_connected = False
                self._ws = None

    def next_delay(self, delay: float) -> float:
        """Backoff step: double, capped at max_reconnect_delay."""
        return min(delay * 2, self.max_reconnect_delay)

    async def run(self) -> None:
        """
        Main run loop. Connects, processes messages, reconnects on failure.

        Returns once stop() is called.
        """
        self._running = True
        self._stop_event = asyncio.Event()
        delay = self.reconnect_delay

        timeout = aiohttp.ClientTimeout(total=None, connect=self.connect_timeout)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            while self._running:
                received_before = self.messages_received
                try:
                    await self._connect_once(session)
                except (aiohttp.ClientError, ConnectionError, asyncio.TimeoutError) as e:
                    logger.warning("Websocket disconnected: %s", e)

                if not self._running:
                    break

                # A session that delivered data resets the backoff
                if self.messages_received > received_before:
                    delay = self.reconnect_delay

                self.reconnects += 1
                self.last_backoff = delay
                logger.info("Reconnecting in %.1fs", delay)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                delay = self.next_delay(delay)

        if self._close_task is not None:
            await asyncio.wait([self._close_task])
            self._close_task = None

        logger.info("Depth feed stopped")

    def stop(self) -> None:
        """Signal the client to stop. Call from the event loop running run()."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

        # A quiet server never wakes the receive loop; closing the socket does
        ws = self._ws
        if ws is not None and not ws.closed:
            self._close_task = asyncio.get_running_loop().create_task(ws.close())
