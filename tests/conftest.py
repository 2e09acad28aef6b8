import pytest

from core.chat_service import ChatService
from core.moderation import REPORT_THRESHOLD, ModerationLedger


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingTransport:
    """Transport double that records every emit and close per connection."""

    def __init__(self):
        self.connected = set()
        self.sent = []
        self.closed = {}

    def open(self, cid):
        self.connected.add(cid)

    def emit(self, cid, event, data=None):
        self.sent.append((cid, event, data))

    def is_connected(self, cid):
        return cid in self.connected

    def disconnect(self, cid, code=1000, reason=""):
        self.connected.discard(cid)
        self.closed[cid] = code

    def events(self, cid):
        return [event for to, event, _ in self.sent if to == cid]

    def payloads(self, cid, event):
        return [data for to, name, data in self.sent if to == cid and name == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def ledger(request, clock):
    """Ledger on the fake clock; `report_threshold(n)` marks lower the threshold."""
    marker = request.node.get_closest_marker("report_threshold")
    threshold = marker.args[0] if marker else REPORT_THRESHOLD
    return ModerationLedger(threshold=threshold, clock=clock)


@pytest.fixture
def service(transport, ledger):
    return ChatService(transport, ledger=ledger)


@pytest.fixture
def join(service, transport):
    """Connects `cid` from its own address and grants consent."""
    def _join(cid, address=None, user_agent="pytest-browser", agree=True):
        transport.open(cid)
        admitted = service.connect(cid, address or f"10.0.0.{cid}", user_agent)
        if admitted and agree:
            service.handle(cid, "agree")
        return admitted
    return _join


@pytest.fixture
def pair(service, join):
    """Joins `a` and `b` and pairs them through find."""
    def _pair(a, b):
        join(a)
        join(b)
        service.handle(a, "find")
        service.handle(b, "find")
        assert service.partner_of(a) == b
    return _pair
