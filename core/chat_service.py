"""
Pairing, relay and moderation state for anonymous one-to-one chat.

ChatService owns every shared structure (waiting queue, partner registry,
consent flags, identities, report ledger, pending media) and exposes only
lifecycle entry points: connect, handle, disconnect and sweep. Each entry
point runs to completion under one coarse lock, so the pairing stays mutual
and queue membership stays exclusive with pairing whatever the caller's
scheduling model.
"""
import logging
import threading
from typing import Any, Dict, Optional

from core.consent import ConsentGate
from core.identity import FingerprintResolver, IdentityResolver
from core.matching import MatchingQueue, PartnerRegistry
from core.media import PendingMediaExchange, PendingOffer, photo_exchange, video_exchange
from core.moderation import ModerationLedger
from core.relay import RelayDispatcher, Transport
from utils.error_codes import CloseCodes
from utils.validators import clean_message

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, transport: Transport, ledger: Optional[ModerationLedger] = None,
                 resolver: Optional[IdentityResolver] = None):
        self._relay = RelayDispatcher(transport)
        self._ledger = ledger or ModerationLedger()
        self._resolver = resolver or FingerprintResolver()
        self._consent = ConsentGate()
        self._queue = MatchingQueue()
        self._partners = PartnerRegistry()
        self._media: Dict[str, PendingMediaExchange] = {
            exchange.kind: exchange for exchange in (photo_exchange(), video_exchange())
        }
        self._identities: Dict[str, str] = {}
        self._lock = threading.RLock()

        self._handlers = {
            "find": self._find,
            "stop": self._stop,
            "next": self._next,
            "message": self._message,
            "report": self._report,
        }
        for kind in self._media:
            self._handlers[f"{kind}_offer"] = self._media_handler(self._offer, kind)
            self._handlers[f"{kind}_accept"] = self._media_handler(self._accept, kind)
            self._handlers[f"{kind}_decline"] = self._media_handler(self._decline, kind)

    # ----- lifecycle -----

    def connect(self, cid: str, address: Optional[str], client_signature: Optional[str]) -> bool:
        """
        Admits a new connection. Returns False (after sending `banned` and
        closing it) when its identity is under a temporary ban; nothing is
        registered for a refused connection.
        """
        identity = self._resolver.resolve(address, client_signature)
        with self._lock:
            if self._ledger.is_banned(identity):
                logger.info("Refused banned connection %s", cid)
                self._relay.send(cid, "banned", {"until": self._ledger.ban_expiry(identity)})
                self._relay.close(cid, CloseCodes.BANNED, "banned")
                return False

            self._identities[cid] = identity
            self._consent.register(cid)
            logger.info("Connected %s", cid)
            self._relay.send(cid, "need_agree")
            return True

    def handle(self, cid: str, event: str, data: Any = None):
        with self._lock:
            if cid not in self._identities:
                return
            if event == "agree":
                self._consent.grant(cid)
                self._relay.send(cid, "agreed_ok")
                return

            if not self._consent.is_agreed(cid):
                self._relay.send(cid, "need_agree")
                return
            handler = self._handlers.get(event)
            if handler is None:
                logger.debug("Dropped unknown event %r from %s", event, cid)
                return
            handler(cid, data)

    def disconnect(self, cid: str):
        with self._lock:
            if self._forget(cid):
                logger.info("Disconnected %s", cid)

    def _forget(self, cid) -> bool:
        """Drops every trace of `cid`; later events from it are ignored."""
        known = self._identities.pop(cid, None) is not None
        self._teardown(cid)
        for exchange in self._media.values():
            exchange.discard_for(cid)
        self._consent.discard(cid)
        return known

    def sweep(self):
        with self._lock:
            return self._ledger.sweep()

    # ----- queries -----

    def identity_of(self, cid: str) -> Optional[str]:
        return self._identities.get(cid)

    def partner_of(self, cid: str) -> Optional[str]:
        return self._partners.partner_of(cid)

    def is_queued(self, cid: str) -> bool:
        return cid in self._queue

    def is_agreed(self, cid: str) -> bool:
        return self._consent.is_agreed(cid)

    def pending_offer(self, kind: str, receiver: str) -> Optional[PendingOffer]:
        return self._media[kind].peek(receiver)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "connections": len(self._identities),
                "queued": len(self._queue),
                "pairs": len(self._partners),
                "pending_media": sum(len(exchange) for exchange in self._media.values()),
                "bans": self._ledger.active_bans,
                "tallies": self._ledger.open_tallies,
            }

    # ----- pairing -----

    def _find(self, cid, data=None):
        if self._partners.is_paired(cid) or cid in self._queue:
            return

        while len(self._queue):
            other = self._queue.pop()
            # Stale entries: ourselves, or someone paired through another path
            if other == cid or self._partners.is_paired(other):
                continue
            self._partners.pair(cid, other)
            logger.debug("Paired %s with %s", cid, other)
            self._relay.send(cid, "matched")
            self._relay.send(other, "matched")
            return

        self._queue.push(cid)
        self._relay.send(cid, "searching")

    def _teardown(self, cid) -> Optional[str]:
        """Unpairs and dequeues `cid`; safe to call repeatedly from any path."""
        partner = self._partners.unpair(cid)
        if partner is not None:
            for exchange in self._media.values():
                exchange.discard_between(cid, partner)
            self._relay.send(partner, "partner_left")
        self._queue.remove(cid)
        return partner

    def _stop(self, cid, data=None):
        self._teardown(cid)
        self._relay.send(cid, "stopped")

    def _next(self, cid, data=None):
        self._teardown(cid)
        self._find(cid)

    # ----- relay -----

    def _message(self, cid, data):
        text = clean_message(data)
        if text is None:
            return
        partner = self._partners.partner_of(cid)
        if partner is not None:
            self._relay.send(partner, "message", text)

    # ----- moderation -----

    def _report(self, cid, data=None):
        partner = self._partners.partner_of(cid)
        if partner is None:
            return
        target = self._identities.get(partner)
        reporter = self._identities.get(cid)
        if target is None or reporter is None:
            return

        banned = self._ledger.file_report(target, reporter)
        self._relay.send(cid, "report_received")

        self._teardown(cid)
        self._relay.send(cid, "partner_left")

        if not banned:
            return
        until = self._ledger.ban_expiry(target)
        self._relay.send(cid, "reported_and_banned")
        for other, identity in list(self._identities.items()):
            if identity != target:
                continue
            self._relay.send(other, "reported_and_banned", {"until": until})
            self._relay.close(other, CloseCodes.BANNED, "banned")
            # Frames still in flight from the closing socket must not reach the queue
            self._forget(other)
            logger.info("Removed banned connection %s", other)

    # ----- media -----

    def _media_handler(self, action, kind):
        exchange = self._media[kind]

        def handler(cid, data=None):
            action(exchange, cid, data)
        return handler

    def _offer(self, exchange: PendingMediaExchange, cid, data):
        receiver = self._partners.partner_of(cid)
        if receiver is None:
            return
        if not exchange.accepts(data):
            return
        exchange.offer(receiver, cid, data)
        self._relay.send(receiver, exchange.request_event)
        self._relay.send(cid, exchange.sent_event)

    def _accept(self, exchange: PendingMediaExchange, cid, data=None):
        pending = exchange.take(cid)
        if pending is None:
            return
        self._relay.send(cid, exchange.deliver_event, {"dataUrl": pending.payload})
        self._relay.send(pending.sender, exchange.accepted_event)

    def _decline(self, exchange: PendingMediaExchange, cid, data=None):
        pending = exchange.take(cid)
        if pending is None:
            return
        self._relay.send(pending.sender, exchange.declined_event)
