import asyncio
import logging

import websockets

from network.protocol import decode_frame, encode_frame
from utils.error_codes import ChatError, ErrorCodes

logger = logging.getLogger(__name__)


class TransportLayer:
    def __init__(self, uri="ws://localhost:3000", max_size=50 * 1024 * 1024):
        self.uri = uri
        self.max_size = max_size
        self.websocket = None
        self.listener = None
        self.on_event_callback = None
        self.on_closed_callback = None

    async def connect(self):
        try:
            self.websocket = await websockets.connect(self.uri, max_size=self.max_size)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.InvalidURI,
                websockets.exceptions.InvalidHandshake) as e:
            raise ChatError(ErrorCodes.ERR_NETWORK, f"Could not connect to relay: {e}")
        # Start listening loop
        self.listener = asyncio.create_task(self.listen())

    async def listen(self):
        try:
            async for message in self.websocket:
                try:
                    event, data = decode_frame(message)
                except ChatError as e:
                    logger.debug("Ignoring frame: %s", e.message)
                    continue
                if self.on_event_callback:
                    await self.on_event_callback(event, data)
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if self.on_closed_callback:
                self.on_closed_callback(self.websocket.close_code, self.websocket.close_reason)

    async def send_event(self, event: str, data=None):
        if not self.websocket:
            raise ChatError(ErrorCodes.ERR_SESSION_INVALID, "Not connected")
        try:
            await self.websocket.send(encode_frame(event, data))
        except websockets.exceptions.ConnectionClosed:
            raise ChatError(ErrorCodes.ERR_PEER_DISCONNECT, "Relay connection closed")

    async def disconnect(self):
        if self.websocket:
            await self.websocket.close()
        if self.listener:
            await asyncio.gather(self.listener, return_exceptions=True)
