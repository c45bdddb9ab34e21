"""
Bridge Channel - WebSocket transport between host, canvas and surface

Every party connects to the same bridge, joins a named channel with its
role, and from then on exchanges JSON envelopes that the bridge relays to
the other members of the channel.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

logger = logging.getLogger(__name__)

MESSAGE_TYPE_JOIN = "join"
MESSAGE_TYPE_PING = "ping"

ROLE_HOST = "host"
ROLE_SURFACE = "surface"

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]
ConnectHandler = Callable[[], Awaitable[None]]


class BridgeChannel:
    """
    Handles the bridge connection for one party.

    This class manages:
    - Connecting and joining the channel with a role
    - Sending JSON envelopes
    - Dispatching every decoded inbound envelope to `on_message`
    - Keep-alive pings and reconnection with exponential backoff
    """

    def __init__(
        self,
        bridge_url: str,
        channel: str,
        role: str,
        on_message: Optional[MessageHandler] = None,
        on_connect: Optional[ConnectHandler] = None,
        keep_alive_interval: int = 30,
    ):
        self.bridge_url = bridge_url
        self.channel = channel
        self.role = role
        self.on_message = on_message
        self.on_connect = on_connect
        self.keep_alive_interval = keep_alive_interval
        self.websocket = None
        self.running = True
        self.reconnect_delay = 1  # Start with 1 second
        self.max_reconnect_delay = 30
        self._keep_alive_task: Optional[asyncio.Task] = None

    async def send_json(self, payload: Dict[str, Any]) -> None:
        """Send a JSON-serializable payload over the websocket if connected."""
        if not self.websocket:
            raise RuntimeError("WebSocket not connected")
        await self.websocket.send(json.dumps(payload))
        logger.debug(f"📤 Sent {payload.get('type')} envelope")

    async def connect(self) -> bool:
        """Connect to the bridge and join the channel"""
        try:
            logger.info(f"Connecting to bridge at {self.bridge_url}")
            # Remove size limits so expanded selection trees fit in one frame
            self.websocket = await websockets.connect(self.bridge_url, max_size=None)

            await self.send_json({
                "type": MESSAGE_TYPE_JOIN,
                "role": self.role,
                "channel": self.channel,
            })
            logger.info(f"Sent join message for channel: {self.channel} (role={self.role})")

            await self.send_json({"type": MESSAGE_TYPE_PING})
            logger.info("🏓 Sent ping message to test WebSocket bidirectional communication")

            self._keep_alive_task = asyncio.create_task(self._websocket_keep_alive())
            logger.info("💓 Started WebSocket keep-alive mechanism")

            self.reconnect_delay = 1
            if self.on_connect:
                await self.on_connect()
            return True

        except Exception as e:
            logger.error(f"Failed to connect: {e}")
            self._stop_keep_alive()
            await self._close_websocket()
            return False

    async def _close_websocket(self) -> None:
        websocket, self.websocket = self.websocket, None
        if websocket is None:
            return
        try:
            await websocket.close()
        except Exception as e:
            logger.warning(f"⚠️ Error closing half-open websocket: {e}")

    async def listen(self) -> None:
        """Listen for envelopes from the bridge until the socket closes"""
        logger.info("🎧 Starting to listen for messages from bridge")
        while self.running and self.websocket:
            try:
                raw_message = await self.websocket.recv()
            except asyncio.CancelledError:
                logger.info("🛑 Listen loop cancelled")
                break
            except Exception as e:
                logger.error(f"❌ Error receiving message: {e}")
                break

            if not raw_message:
                logger.warning("📡 Received empty WebSocket message")
                continue

            logger.debug(f"📡 Raw WebSocket message received: {raw_message[:200]}...")
            try:
                message = json.loads(raw_message)
            except json.JSONDecodeError as e:
                logger.error(f"❌ Failed to decode message: {e}, Raw: {raw_message[:200]}")
                continue
            if not isinstance(message, dict):
                logger.debug(f"Ignoring non-object envelope: {type(message).__name__}")
                continue
            if not self.on_message:
                continue
            try:
                await self.on_message(message)
            except Exception as e:
                logger.error(f"❌ Error handling message: {e}")

    async def _websocket_keep_alive(self) -> None:
        """Keep WebSocket connection alive with periodic pings"""
        try:
            while self.running and self.websocket:
                await asyncio.sleep(self.keep_alive_interval)
                if not self.websocket:
                    break
                try:
                    pong_waiter = await self.websocket.ping()
                    await asyncio.wait_for(pong_waiter, timeout=10)
                    logger.debug("💓 WebSocket keep-alive ping successful")
                except asyncio.TimeoutError:
                    logger.warning("💔 WebSocket keep-alive ping timed out")
                    break
                except Exception as e:
                    logger.error(f"💔 WebSocket keep-alive ping failed: {e}")
                    break
        except asyncio.CancelledError:
            logger.debug("💓 WebSocket keep-alive task cancelled")

    def _stop_keep_alive(self) -> None:
        if self._keep_alive_task and not self._keep_alive_task.done():
            self._keep_alive_task.cancel()
            logger.debug("💓 Cancelled WebSocket keep-alive task")
        self._keep_alive_task = None

    async def run_with_reconnect(self) -> None:
        """Main loop with reconnection logic"""
        while self.running:
            if await self.connect():
                logger.info("🌉 Connected to bridge successfully")
                await self.listen()
            else:
                logger.warning("Failed to connect to bridge")
            self._stop_keep_alive()

            if self.running:
                logger.info(f"Reconnecting in {self.reconnect_delay} seconds...")
                await asyncio.sleep(self.reconnect_delay)

                # Exponential backoff up to max delay
                self.reconnect_delay = min(self.reconnect_delay * 2, self.max_reconnect_delay)

    def shutdown(self) -> None:
        """Graceful shutdown"""
        logger.info(f"Shutting down {self.role} channel")
        self.running = False
        self._stop_keep_alive()
        self.websocket = None
