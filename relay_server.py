import asyncio
import logging
import uuid

import websockets

from core.chat_service import ChatService
from core.identity import make_resolver
from core.moderation import ModerationLedger
from network.protocol import decode_frame, encode_frame
from security.rate_limiter import RateLimiter
from utils.config import Settings
from utils.error_codes import ChatError, CloseCodes

logger = logging.getLogger(__name__)

_CLOSE = object()


class _Peer:
    def __init__(self, websocket):
        self.websocket = websocket
        self.outbox = asyncio.Queue()
        self.closing = False
        self.close_args = (CloseCodes.NORMAL, "")
        self.writer = asyncio.create_task(self._drain())

    async def _drain(self):
        # Single writer per socket keeps outbound frames in emit order
        try:
            while True:
                item = await self.outbox.get()
                if item is _CLOSE:
                    code, reason = self.close_args
                    await self.websocket.close(code, reason)
                    return
                await self.websocket.send(item)
        except websockets.exceptions.ConnectionClosed:
            pass


class WebSocketHub:
    """Maps connection ids to live websockets; the transport seen by ChatService."""

    def __init__(self):
        self.peers = {}

    def attach(self, cid, websocket):
        self.peers[cid] = _Peer(websocket)

    async def detach(self, cid):
        peer = self.peers.pop(cid, None)
        if peer is None:
            return
        if not peer.writer.done():
            peer.writer.cancel()
            try:
                await peer.writer
            except asyncio.CancelledError:
                pass

    def emit(self, cid, event, data=None):
        peer = self.peers.get(cid)
        if peer is None or peer.closing:
            return
        peer.outbox.put_nowait(encode_frame(event, data))

    def is_connected(self, cid):
        peer = self.peers.get(cid)
        return peer is not None and not peer.closing

    def disconnect(self, cid, code=CloseCodes.NORMAL, reason=""):
        peer = self.peers.get(cid)
        if peer is None or peer.closing:
            return
        peer.closing = True
        peer.close_args = (code, reason)
        peer.outbox.put_nowait(_CLOSE)


def client_address(websocket, trust_forwarded=False):
    if trust_forwarded:
        forwarded = websocket.request.headers.get("X-Forwarded-For")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
    remote = websocket.remote_address
    if not remote:
        return None
    return remote[0]


def build_service(settings: Settings, transport) -> ChatService:
    ledger = ModerationLedger(
        threshold=settings.report_threshold,
        ban_seconds=settings.ban_seconds,
        tally_ttl=settings.tally_ttl_seconds,
    )
    resolver = make_resolver(settings.identity_scheme, settings.identity_secret)
    return ChatService(transport, ledger=ledger, resolver=resolver)


class RelayServer:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.hub = WebSocketHub()
        self.service = build_service(settings, self.hub)

    async def handler(self, websocket):
        cid = uuid.uuid4().hex
        address = client_address(websocket, self.settings.trust_forwarded)
        user_agent = websocket.request.headers.get("User-Agent", "")
        limiter = RateLimiter(self.settings.rate_limit, self.settings.rate_period)
        limited = False

        self.hub.attach(cid, websocket)
        try:
            if not self.service.connect(cid, address, user_agent):
                await websocket.wait_closed()
                return

            async for raw in websocket:
                try:
                    event, data = decode_frame(raw)
                except ChatError as e:
                    logger.debug("Dropped frame from %s: %s", cid, e.message)
                    continue

                if not limiter.check():
                    if not limited:
                        logger.warning("Rate limit hit by %s", cid)
                        self.hub.emit(cid, "rate_limited")
                    limited = True
                    continue
                limited = False

                self.service.handle(cid, event, data)

        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            self.service.disconnect(cid)
            await self.hub.detach(cid)

    async def sweep_forever(self):
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            bans, tallies = self.service.sweep()
            logger.info("Sweep: %s (expired bans %d, stale tallies %d)",
                        self.service.snapshot(), bans, tallies)

    async def serve(self):
        async with websockets.serve(
            self.handler,
            self.settings.host,
            self.settings.port,
            max_size=self.settings.max_payload,
        ):
            logger.info("Chat relay listening on %s:%s", self.settings.host, self.settings.port)
            sweeper = asyncio.create_task(self.sweep_forever())
            try:
                await asyncio.Future()  # run forever
            finally:
                sweeper.cancel()


def main(settings: Settings):
    asyncio.run(RelayServer(settings).serve())
